import os
from dotenv import load_dotenv

load_dotenv()

# -------- JWT --------
JWT_SECRET = os.getenv("JWT_SECRET", "dev_secret")
JWT_ALGO = "HS256"

ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "15"))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "30"))

# -------- OTP --------
OTP_LENGTH = int(os.getenv("OTP_LENGTH", "6"))
OTP_EXPIRE_MINUTES = int(os.getenv("OTP_EXPIRE_MINUTES", "5"))

# -------- Roles --------
# comma separated, these emails become superadmin on first login
SUPERADMIN_EMAILS = [
    e.strip().lower()
    for e in os.getenv("SUPERADMIN_EMAILS", "").split(",")
    if e.strip()
]

# -------- Sales --------
TAX_RATE = float(os.getenv("TAX_RATE", "0.12"))

# -------- Database --------
DATABASE_URL = os.getenv("DATABASE_URL")

# -------- CORS / Logging --------
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# -------- Email --------
EMAIL_DELIVERY = os.getenv("EMAIL_DELIVERY", "console")  # console / sendgrid
SENDGRID_API_KEY = os.getenv("SENDGRID_API_KEY")
SENDGRID_FROM_EMAIL = os.getenv("SENDGRID_FROM_EMAIL")  # verified sender in sendgrid
