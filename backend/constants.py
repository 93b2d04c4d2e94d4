import os

CURRENCY_SYMBOL = os.environ.get("CURRENCY_SYMBOL", "₹")
FREE_SHIPPING_LIMIT = float(os.environ.get("FREE_SHIPPING_LIMIT", "999"))
SHIPPING_CHARGES = float(os.environ.get("SHIPPING_CHARGES", "99"))
TAX_PERCENTAGE = float(os.environ.get("TAX_PERCENTAGE", "18"))

# Cart items are cleared nightly at local midnight in this zone
STORE_TIMEZONE = os.environ.get("STORE_TIMEZONE", "Asia/Kolkata")
CART_URGENT_HOURS = 2

CRON_SECRET = os.environ.get("CRON_SECRET", "dev-cron-secret")

ROLES = ("customer", "admin", "userbot")

ORDER_STATUSES = (
    "pending",
    "confirmed",
    "processing",
    "shipped",
    "delivered",
    "cancelled",
    "refunded",
)

DEFAULT_CARRIER = "PK-Couriers"

DISCOUNT_SCOPES = ("all", "categories", "subcategories", "products")

PRODUCTS_PER_PAGE = 12
MAX_PER_PAGE = 50
