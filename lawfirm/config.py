from decimal import Decimal

from decouple import Csv, config

# Database
DATABASE_URL = config("DATABASE_URL", default="sqlite:///./lawfirm.db")

# Auth
SECRET_KEY = config("SECRET_KEY", default="change-this-in-production")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = config("ACCESS_TOKEN_EXPIRE_MINUTES", default=60 * 8, cast=int)
PASSWORD_RESET_EXPIRE_MINUTES = config("PASSWORD_RESET_EXPIRE_MINUTES", default=30, cast=int)

# Case assignment and lifecycle policy
MAX_ACTIVE_CASES_PER_LAWYER = config("MAX_ACTIVE_CASES_PER_LAWYER", default=5, cast=int)
MIN_HEARINGS_TO_CLOSE = config("MIN_HEARINGS_TO_CLOSE", default=1, cast=int)
DEFAULT_ADMIN_SHARE_PERCENT = config("DEFAULT_ADMIN_SHARE_PERCENT", default="10", cast=Decimal)

# Payment policy: percentage of the total fee collected at the advance stage.
# The final stage collects the remainder.
ADVANCE_PAYMENT_PERCENT = config("ADVANCE_PAYMENT_PERCENT", default="50", cast=Decimal)

# "pending_first" or "account_first"
REGISTRATION_DUPLICATE_CHECK_ORDER = config("REGISTRATION_DUPLICATE_CHECK_ORDER", default="pending_first")

# Required to create the first admin when set; empty allows it while no admin exists
ADMIN_SETUP_TOKEN = config("ADMIN_SETUP_TOKEN", default="")

# SSLCommerz gateway
SSLCOMMERZ_STORE_ID = config("SSLCOMMERZ_STORE_ID", default="")
SSLCOMMERZ_STORE_PASS = config("SSLCOMMERZ_STORE_PASS", default="")
SSLCOMMERZ_IS_SANDBOX = config("SSLCOMMERZ_IS_SANDBOX", default=True, cast=bool)
PAYMENT_RETURN_BASE_URL = config("PAYMENT_RETURN_BASE_URL", default="http://localhost:8000")
PAYMENT_CURRENCY = config("PAYMENT_CURRENCY", default="BDT")
GATEWAY_TIMEOUT_SECONDS = config("GATEWAY_TIMEOUT_SECONDS", default=30, cast=int)
PAYMENT_SESSION_TTL_MINUTES = config("PAYMENT_SESSION_TTL_MINUTES", default=60, cast=int)

# Email
SMTP_HOST = config("SMTP_HOST", default="")
SMTP_PORT = config("SMTP_PORT", default=587, cast=int)
SMTP_USER = config("SMTP_USER", default="")
SMTP_PASSWORD = config("SMTP_PASSWORD", default="")
SMTP_FROM = config("SMTP_FROM", default="no-reply@lawfirm.local")
SMTP_USE_TLS = config("SMTP_USE_TLS", default=True, cast=bool)
ADMIN_NOTIFY_EMAIL = config("ADMIN_NOTIFY_EMAIL", default="")
FRONTEND_URL = config("FRONTEND_URL", default="http://localhost:8080")

# Documents
UPLOAD_DIR = config("UPLOAD_DIR", default="uploads/documents")
MAX_UPLOAD_BYTES = config("MAX_UPLOAD_BYTES", default=50 * 1024 * 1024, cast=int)

# HTTP
CORS_ORIGINS = config("CORS_ORIGINS", default="http://localhost:8080", cast=Csv())
LOG_LEVEL = config("LOG_LEVEL", default="INFO")
