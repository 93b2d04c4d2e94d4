import os
import logging
from typing import Any
from dotenv import load_dotenv

# Initialize environment configuration from local or project-level .env files
dotenv_paths = [
    os.path.join(os.path.dirname(__file__), '.env'),
    os.path.join(os.path.dirname(os.path.dirname(__file__)), '.env'),
    os.path.join(os.path.dirname(os.path.dirname(__file__)), '.env.example')
]

for path in dotenv_paths:
    if os.path.exists(path):
        load_dotenv(path)
        break

from flask import Flask, jsonify
from flask_cors import CORS
from db import init_db
from routes.auth import auth_bp
from routes.products import products_bp
from routes.categories import categories_bp
from routes.cart import cart_bp
from routes.wishlist import wishlist_bp
from routes.orders import orders_bp
from routes.discounts import discounts_bp
from routes.analytics import analytics_bp
from routes.cronjobs import cronjobs_bp

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

BLUEPRINTS = (
    auth_bp,
    products_bp,
    categories_bp,
    cart_bp,
    wishlist_bp,
    orders_bp,
    discounts_bp,
    analytics_bp,
    cronjobs_bp,
)

app = Flask(__name__)
CORS(app)

for bp in BLUEPRINTS:
    app.register_blueprint(bp, url_prefix="/api/v1")

@app.route("/api/v1/health")
def health() -> Any:
    """
    Verifies the operational status of the Flask application.

    Returns:
        A JSON response indicating the service is healthy.
    """
    return jsonify({"status": "ok"})

if __name__ == "__main__":
    init_db()
    app.run(port=int(os.environ.get("PORT", "8000")), debug=os.environ.get("FLASK_DEBUG", "false").lower() == "true")
