from dotenv import load_dotenv
import os

# Load environment variables from a .env file
load_dotenv()

def _to_bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "on"}

def _to_int(val: str | None, default: int) -> int:
    try:
        return int(val) if val is not None else default
    except ValueError:
        return default

# Retrieve parts of the database URL from environment variables
DB_USER = os.getenv("DB_USERNAME", "root")
DB_PASSWORD = os.getenv("DB_PASSWORD", "")
DB_HOST = os.getenv("DB_HOST", "127.0.0.1")
DB_PORT = os.getenv("DB_PORT", "3306")
DB_NAME = os.getenv("DB_NAME", "wardrobe")

# A full DATABASE_URL wins over the individual parts
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"mysql+pymysql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
)

# API keys are JWTs signed with the platform secret
SECRET_KEY = os.getenv("SECRET_KEY", "secret")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ALLOWED_TOKEN_ROLES = [
    role.strip()
    for role in os.getenv("ALLOWED_TOKEN_ROLES", "anon,authenticated,service_role").split(",")
    if role.strip()
]

# OTP configuration
# Codes are 4 to 6 digits; the column holds at most 6
OTP_LENGTH = min(max(_to_int(os.getenv("OTP_LENGTH"), 4), 4), 6)
OTP_EXPIRE_MINUTES = _to_int(os.getenv("OTP_EXPIRE_MINUTES"), 5)
OTP_MAX_ATTEMPTS = _to_int(os.getenv("OTP_MAX_ATTEMPTS"), 3)
OTP_RESEND_SECONDS = _to_int(os.getenv("OTP_RESEND_SECONDS"), 32)
# Only for debug deployments: echoes the plaintext code back to the caller
OTP_EXPOSE_CODE = _to_bool(os.getenv("OTP_EXPOSE_CODE"), False)

# SMS dispatch ("mock" or "twilio")
SMS_PROVIDER = os.getenv("SMS_PROVIDER", "mock").strip().lower()
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_FROM = os.getenv("TWILIO_FROM")                    # e.g. +12565550123
TWILIO_MESSAGING_SID = os.getenv("TWILIO_MESSAGING_SID")  # e.g. MGxxxxxxxx...

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Client side
API_BASE_URL = os.getenv("API_BASE_URL", "http://127.0.0.1:8000")
API_KEY = os.getenv("API_KEY", "")
