import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


# --- Environment ---
ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()
IS_PRODUCTION = ENVIRONMENT == "production"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# --- Database ---
# Default to local SQLite, but prefer environment variable (Postgres in production)
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./data/habitflow.db")

# Fix for common SQLAlchemy issues with postgres:// vs postgresql://
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

# --- Sessions & credentials ---
SESSION_COOKIE_NAME = "sessionId"
SESSION_TTL_DAYS = int(os.getenv("SESSION_TTL_DAYS", "7"))
SESSION_SWEEP_MINUTES = int(os.getenv("SESSION_SWEEP_MINUTES", "60"))
COOKIE_SECURE = _env_bool("COOKIE_SECURE", default=IS_PRODUCTION)
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
PASSWORD_RESET_TTL_MINUTES = int(os.getenv("PASSWORD_RESET_TTL_MINUTES", "60"))
# Returning the reset token in the API response is a development convenience only
EXPOSE_RESET_TOKEN = _env_bool("EXPOSE_RESET_TOKEN", default=not IS_PRODUCTION)

# --- Habits ---
COMPLETION_WINDOW_DAYS = int(os.getenv("COMPLETION_WINDOW_DAYS", "30"))
STREAK_MILESTONES = [7, 14, 21, 30, 60, 90, 100, 365]
NOTIFICATION_LIMIT = int(os.getenv("NOTIFICATION_LIMIT", "50"))

# --- AI ---
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
AI_TIMEOUT_SECONDS = float(os.getenv("AI_TIMEOUT_SECONDS", "30"))

# --- Background jobs ---
SCHEDULER_ENABLED = _env_bool("SCHEDULER_ENABLED", default=True)
NUDGE_INTERVAL_MINUTES = int(os.getenv("NUDGE_INTERVAL_MINUTES", "60"))

# --- Demo account ---
DEMO_USER_ENABLED = _env_bool("DEMO_USER_ENABLED", default=not IS_PRODUCTION)
DEMO_USERNAME = os.getenv("DEMO_USERNAME", "demo-user")
DEMO_EMAIL = os.getenv("DEMO_EMAIL", "demo@habitflow.local")
DEMO_PASSWORD = os.getenv("DEMO_PASSWORD", "demo-password")

# --- WebSocket ---
WS_SEND_TIMEOUT = float(os.getenv("WS_SEND_TIMEOUT", "5"))
