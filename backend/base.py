from datetime import date, datetime
from sqlalchemy.orm import declarative_base

class DictMixin:
    """
    Mixin providing a standardized dictionary serialization for SQLAlchemy models.
    """
    def to_dict(self):
        result = {}
        for c in self.__table__.columns:
            value = getattr(self, c.key)
            if isinstance(value, (datetime, date)):
                value = value.isoformat()
            result[c.key] = value
        return result

Base = declarative_base(cls=DictMixin)
