import os
import warnings

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.environ.get("DATABASE_URL")
DB_ECHO = os.getenv("DB_ECHO", "false").lower() == "true"

SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

PORT = int(os.getenv("PORT", "8099"))

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# Tables are numbered 1..TOTAL_TABLES
TOTAL_TABLES = int(os.getenv("TOTAL_TABLES", "10"))

SERVICE_TIMES = [
    t.strip()
    for t in os.getenv("SERVICE_TIMES", "12:00,13:00,18:00,19:00,20:00,21:00").split(",")
    if t.strip()
]

# Owner recorded for API bookings made without a logged-in user
API_OWNER_ID = "API_USER"

FACEBOOK_CLIENT_ID = os.getenv("FACEBOOK_CLIENT_ID")
FACEBOOK_CLIENT_SECRET = os.getenv("FACEBOOK_CLIENT_SECRET")
FACEBOOK_CALLBACK_URL = os.getenv("FACEBOOK_CALLBACK_URL", "http://localhost:8099/auth/facebook/callback")
FACEBOOK_GRAPH_URL = os.getenv("FACEBOOK_GRAPH_URL", "https://graph.facebook.com/v19.0")
FACEBOOK_DIALOG_URL = os.getenv("FACEBOOK_DIALOG_URL", "https://www.facebook.com/v19.0/dialog/oauth")
