from typing import List, Literal, Optional
from pydantic import BaseModel, EmailStr, Field, ValidationError, field_validator, model_validator


def validation_errors(exc: ValidationError):
    """
    Flattens a pydantic ValidationError into ``[{"field", "message"}]`` for JSON responses.
    """
    return [
        {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]


class SignupForm(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr


class OfferForm(BaseModel):
    name: str = ""
    type: Literal["direct", "quantity"]
    value: float = Field(gt=0, le=100)
    min_quantity: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode="after")
    def _quantity_needs_threshold(self):
        if self.type == "quantity" and self.min_quantity is None:
            raise ValueError("min_quantity is required for quantity discounts")
        if self.type == "direct":
            self.min_quantity = None
        return self


class DiscountForm(OfferForm):
    """A standalone discount scoped to everything, or to listed categories, subcategories or products."""
    id: Optional[int] = None
    apply_to: Literal["all", "categories", "subcategories", "products"] = "products"
    category_ids: List[int] = []
    subcategory_ids: List[int] = []
    product_ids: List[int] = []

    @model_validator(mode="after")
    def _scope_needs_targets(self):
        if self.apply_to != "all" and not self.target_ids:
            raise ValueError(f"apply_to={self.apply_to} needs at least one target id")
        return self

    @property
    def target_ids(self):
        return {
            "all": [],
            "categories": self.category_ids,
            "subcategories": self.subcategory_ids,
            "products": self.product_ids,
        }[self.apply_to]


class PromoCodeForm(BaseModel):
    id: Optional[int] = None
    product_id: Optional[int] = None
    code: str = Field(min_length=3, max_length=32)
    type: Literal["percentage", "amount"]
    value: float = Field(gt=0)

    @field_validator("code")
    @classmethod
    def _normalize_code(cls, v):
        return v.strip().upper()

    @model_validator(mode="after")
    def _percentage_bound(self):
        if self.type == "percentage" and self.value > 100:
            raise ValueError("percentage promo codes cannot exceed 100")
        return self


class InventorySize(BaseModel):
    size_id: int
    quantity: int = Field(ge=0)


class InventoryColor(BaseModel):
    color_id: int
    sizes: List[InventorySize] = []


class ProductForm(BaseModel):
    """Admin create/edit form for a product and everything hanging off it."""
    id: Optional[int] = None
    title: str = Field(min_length=3)
    description: str = Field(min_length=1)
    price: float = Field(gt=0)
    is_active: bool = True
    category_id: int
    subcategory_id: int
    tags: List[str] = []
    images: List[str] = []
    discounts: List[OfferForm] = []
    promocodes: List[PromoCodeForm] = []
    inventory: List[InventoryColor] = Field(min_length=1)


class CategoryForm(BaseModel):
    id: Optional[int] = None
    name: str = Field(min_length=1)
    description: str = ""
    is_active: bool = True


class SubcategoryForm(BaseModel):
    id: Optional[int] = None
    name: str = Field(min_length=1)
    is_active: bool = True
    category_ids: List[int] = []


class SizeForm(BaseModel):
    name: str = Field(min_length=1)
    size_number: Optional[int] = None
    type: Optional[str] = None
    category_id: Optional[int] = None


class ColorForm(BaseModel):
    name: str = Field(min_length=1)
    color_code: str = Field(pattern=r"^#[0-9A-Fa-f]{6}$")


class AddressForm(BaseModel):
    id: int = 0
    first_name: str = Field(min_length=1)
    last_name: str = ""
    address1: str = Field(min_length=1)
    address2: Optional[str] = None
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    country: str = Field(min_length=1)
    pincode: str = Field(pattern=r"^[0-9A-Za-z -]{3,10}$")
    phone: str = Field(pattern=r"^\+?[0-9 -]{7,15}$")
    is_default: bool = False


class CheckoutForm(BaseModel):
    address_id: int
    payment_method: Literal["cod", "card", "upi", "netbanking"]
    promocode: Optional[str] = None


class ReviewForm(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = None
