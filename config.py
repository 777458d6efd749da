import os

from dotenv import load_dotenv

load_dotenv()

MONGODB_URI = os.getenv("MONGODB_URI") or os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

JWT_SECRET = os.getenv("JWT_SECRET", "change-me-secret")
JWT_ALG = "HS256"
JWT_EXPIRE_DAYS = int(os.getenv("JWT_EXPIRE_DAYS", 7))

PORT = int(os.getenv("PORT", 5000))
BASE_URL = os.getenv("BASE_URL", "http://localhost:5000").rstrip("/")
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", 10 * 1024 * 1024))

# seed.py creates this account when both are set
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")


def cors_origins(raw=None):
    """Split CORS_ORIGIN into an allow-list; "*" (or unset) allows everything."""
    raw = raw if raw is not None else os.getenv("CORS_ORIGIN", "*")
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    if not origins or "*" in origins:
        return ["*"]
    return origins


def is_production() -> bool:
    return ENVIRONMENT == "production"
