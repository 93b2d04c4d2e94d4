import pytest
from unittest.mock import patch
from flask import Flask
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from base import Base
from routes.auth import auth_bp
from routes.products import products_bp
from routes.categories import categories_bp
from routes.cart import cart_bp
from routes.wishlist import wishlist_bp
from routes.orders import orders_bp
from routes.discounts import discounts_bp
from routes.analytics import analytics_bp
from routes.cronjobs import cronjobs_bp
import schema

ROUTE_MODULES = (
    "routes.auth",
    "routes.products",
    "routes.categories",
    "routes.orders",
    "routes.discounts",
    "routes.analytics",
    "routes.cronjobs",
)

@pytest.fixture(autouse=True)
def _pricing_env(monkeypatch):
    """Every test starts from the production pricing defaults."""
    monkeypatch.delenv("PRICING_STRICT_MODE", raising=False)
    monkeypatch.delenv("DISCOUNT_POLICY", raising=False)

@pytest.fixture
def engine():
    """In-memory SQLite DB for fast testing."""
    _engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(_engine)
    yield _engine
    Base.metadata.drop_all(_engine)

@pytest.fixture
def db_session(engine):
    """Provides a database session for seeding and assertions."""
    TestSession = sessionmaker(bind=engine)
    s = TestSession()
    try:
        yield s
    finally:
        s.close()

@pytest.fixture
def app(engine):
    """Provides a Flask app with every blueprint registered and get_db patched onto the test engine."""
    TestSession = sessionmaker(bind=engine)

    def mock_get_db():
        s = TestSession()
        try:
            yield s
        finally:
            s.close()

    flask_app = Flask(__name__)
    for bp in (auth_bp, products_bp, categories_bp, cart_bp, wishlist_bp,
               orders_bp, discounts_bp, analytics_bp, cronjobs_bp):
        flask_app.register_blueprint(bp, url_prefix="/api/v1")
    flask_app.config["TESTING"] = True

    patches = [patch(f"{module}.get_db", mock_get_db) for module in ROUTE_MODULES]
    patches += [patch("db.SessionLocal", TestSession), patch("db.get_db", mock_get_db)]
    for p in patches:
        p.start()
    try:
        yield flask_app
    finally:
        for p in reversed(patches):
            p.stop()

@pytest.fixture
def client(app):
    """Provides a Flask test client."""
    return app.test_client()
