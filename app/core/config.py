import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./ticket_hold.db")

# Booking hold window
BOOKING_HOLD_MINUTES = int(os.getenv("BOOKING_HOLD_MINUTES", "15"))

# Expiry sweep
SWEEP_INTERVAL_SECONDS = int(os.getenv("SWEEP_INTERVAL_SECONDS", "60"))
SWEEP_LOCK_TIMEOUT_SECONDS = int(os.getenv("SWEEP_LOCK_TIMEOUT_SECONDS", "30"))

# Caller identity
JWT_SECRET = os.getenv("JWT_SECRET", "local-dev-secret")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7)))

DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "KSH")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]
