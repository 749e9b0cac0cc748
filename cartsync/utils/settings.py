# cartsync/utils/settings.py
import os
from decimal import Decimal
from dotenv import load_dotenv

load_dotenv()

REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
CART_SERVICE_URL = os.getenv("CART_SERVICE_URL", "http://localhost:3001/api")
CART_SERVICE_TIMEOUT = float(os.getenv("CART_SERVICE_TIMEOUT", 10))
CART_TTL_SECONDS = int(os.getenv("CART_TTL_SECONDS", 24 * 60 * 60))
CART_STORAGE_KEY = os.getenv("CART_STORAGE_KEY", "cart")
AUTH_TOKEN_KEY = os.getenv("AUTH_TOKEN_KEY", "authToken")

# pricing policy
TAX_RATE = Decimal(os.getenv("TAX_RATE", "0.08"))
FREE_SHIPPING_THRESHOLD = Decimal(os.getenv("FREE_SHIPPING_THRESHOLD", "100"))
SHIPPING_FEE = Decimal(os.getenv("SHIPPING_FEE", "10"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
