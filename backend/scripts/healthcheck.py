import os
import sys
import requests
from dotenv import load_dotenv
from sqlalchemy import create_engine, inspect

REQUIRED_TABLES = ['users', 'products', 'product_variants', 'discounts', 'discount_products', 'cart_items', 'orders', 'cron_jobs']

def print_status(check_name: str, status: bool, details: str = ""):
    """
    Prints one health check result to the console.

    Args:
        check_name: Human-readable identifier for the check.
        status: Boolean indicating success or failure.
        details: Optional supplementary information (e.g., URLs, masked secrets).
    """
    color = "\033[92m[OK]\033[0m" if status else "\033[91m[FAIL]\033[0m"
    print(f"{color} {check_name:<30} {details}")

def run_healthcheck():
    """
    Verifies the storefront backend environment.

    Checks the .env file and its settings, that the database schema exists,
    and that a running API answers on its health endpoint.
    """
    print("\n=== Storefront Health Verification ===\n")

    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    env_path = os.path.join(base_dir, ".env")

    has_env = os.path.exists(env_path)
    print_status(".env file exists", has_env, env_path)
    if has_env:
        load_dotenv(env_path)

    for v in ['DATABASE_URL', 'CRON_SECRET']:
        val = os.environ.get(v)
        masked = f"{val[:5]}...{val[-4:]}" if val and len(val) > 10 else "***"
        print_status(f"Env var: {v}", bool(val), masked if val else "Using default")

    database_url = os.environ.get("DATABASE_URL", "sqlite:///storefront.db")
    try:
        tables = inspect(create_engine(database_url)).get_table_names()
        missing = [t for t in REQUIRED_TABLES if t not in tables]
        print_status("Database schema initialized", not missing, f"Missing: {missing}" if missing else f"Found {len(tables)} tables")
        if missing:
            sys.exit(1)
    except Exception as e:
        print_status("Database connection", False, str(e))
        sys.exit(1)

    api_url = os.environ.get("STOREFRONT_API_URL", "http://localhost:8000")
    try:
        r = requests.get(f"{api_url}/api/v1/health", timeout=5)
        print_status("API health endpoint", r.status_code == 200, f"HTTP {r.status_code}")
    except requests.RequestException as e:
        print_status("API health endpoint", False, str(e))

    print("\nHealth check completed.")

if __name__ == "__main__":
    run_healthcheck()
