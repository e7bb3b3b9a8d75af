import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./eventro.db")

# Shared with the hosted auth provider that issues user tokens.
SECRET_KEY = os.getenv("SECRET_KEY", "supersecretkey")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# Serverless functions (generate-email, financial-insights, analyze-receipt).
# Leave empty to always use the local fallbacks.
FUNCTIONS_BASE_URL = os.getenv("FUNCTIONS_BASE_URL", "").rstrip("/")
FUNCTIONS_API_KEY = os.getenv("FUNCTIONS_API_KEY", "")
FUNCTIONS_TIMEOUT_SECONDS = float(os.getenv("FUNCTIONS_TIMEOUT_SECONDS", "10"))

CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"

MAX_TICKETS_PER_ORDER = int(os.getenv("MAX_TICKETS_PER_ORDER", "10"))
DEFAULT_ITEM_TYPES = [
    item.strip()
    for item in os.getenv("DEFAULT_ITEM_TYPES", "T-shirt,Badge,Swag Bag,Meal Voucher,Welcome Kit").split(",")
    if item.strip()
]
