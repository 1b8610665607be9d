import os
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEBUG = LOG_LEVEL == "DEBUG"

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise ValueError("DATABASE_URL must be set in the environment")

ALLOWED_ORIGINS_RAW = os.getenv("ALLOWED_ORIGINS", "*")

ALLOWED_ORIGINS: list[str] = [
    origin.strip() for origin in ALLOWED_ORIGINS_RAW.split(",")
]

# Payment intents
PAYMENT_TTL_MINUTES = int(os.getenv("PAYMENT_TTL_MINUTES", "10"))
DEFAULT_PAYMENT_METHOD = os.getenv("DEFAULT_PAYMENT_METHOD", "esewa")
PLATFORM_ACCOUNT = os.getenv("PLATFORM_ACCOUNT", "9841234567")
MERCHANT_NAME = os.getenv("MERCHANT_NAME", "RentEase Platform")

PRICE_QUANTUM = Decimal("0.01")

# One-time passcodes
OTP_TTL_SECONDS = int(os.getenv("OTP_TTL_SECONDS", "180"))
OTP_RESEND_GAP_SECONDS = int(os.getenv("OTP_RESEND_GAP_SECONDS", "60"))
OTP_MAX_REQUESTS = int(os.getenv("OTP_MAX_REQUESTS", "5"))
OTP_BLOCK_SECONDS = int(os.getenv("OTP_BLOCK_SECONDS", "600"))
