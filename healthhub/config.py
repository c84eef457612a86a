import os
import warnings
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./healthhub.db")
if DATABASE_URL.startswith("postgres://"):
    # Hosted platforms still hand out the legacy scheme
    DATABASE_URL = "postgresql://" + DATABASE_URL[len("postgres://") :]

# Hosted auth platform (Supabase-compatible) - access tokens are HS256 JWTs
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET")
SUPABASE_JWT_AUDIENCE = os.getenv("SUPABASE_JWT_AUDIENCE", "authenticated")
if not SUPABASE_JWT_SECRET:
    warnings.warn(
        "SUPABASE_JWT_SECRET not set! Using insecure default - DO NOT USE IN PRODUCTION",
        RuntimeWarning,
        stacklevel=2,
    )
    SUPABASE_JWT_SECRET = "INSECURE-DEV-JWT-SECRET"  # noqa: S105 - Dev fallback only

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION",
        RuntimeWarning,
        stacklevel=2,
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

# Frontend base URL for redirects and CORS
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", f"{FRONTEND_URL},http://localhost:3000").split(",")

# Cloudflare R2 (S3 compatible) storage for chat attachments and documents
R2_ACCOUNT_ID = os.getenv("R2_ACCOUNT_ID")
R2_ACCESS_KEY_ID = os.getenv("R2_ACCESS_KEY_ID")
R2_SECRET_ACCESS_KEY = os.getenv("R2_SECRET_ACCESS_KEY")
R2_BUCKET_NAME = os.getenv("R2_BUCKET_NAME", "chat-attachments")

# Employee PIN sessions
EMPLOYEE_SESSION_HOURS = int(os.getenv("EMPLOYEE_SESSION_HOURS", "24"))
EMPLOYEE_COOKIE_SECURE = os.getenv("EMPLOYEE_COOKIE_SECURE", "true").lower() == "true"

# Marketplace currency (Algerian dinar)
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "DZD")

# Outgoing inventory webhooks
WEBHOOK_TIMEOUT_SECONDS = float(os.getenv("WEBHOOK_TIMEOUT_SECONDS", "10"))

SECURITY_HEADERS_ENABLED = os.getenv("SECURITY_HEADERS_ENABLED", "true").lower() == "true"
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
