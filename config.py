"""
TravelPro Desk - configuration.
Values come from the environment (or a local .env file) with sane defaults
for a single-user desktop installation.
"""

import os
from dotenv import load_dotenv

load_dotenv()

# ==================== PATHS ====================
BASE_DIR = os.path.abspath(os.path.dirname(__file__))
INSTANCE_DIR = os.path.join(BASE_DIR, "instance")

# ==================== STORAGE ====================
_default_db = f"sqlite:///{os.path.join(INSTANCE_DIR, 'travelpro.db')}"
DATABASE_URL = os.getenv("DATABASE_URL", _default_db)

# ==================== TEXT GENERATION ====================
OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY")
OPENROUTER_URL = os.getenv("OPENROUTER_URL", "https://openrouter.ai/api/v1/chat/completions")
MODEL = os.getenv("MODEL", "mistralai/mistral-small-creative")
MAX_TOKENS = int(os.getenv("MAX_TOKENS", "400"))
TEMPERATURE = float(os.getenv("TEMPERATURE", "0.7"))
LLM_TIMEOUT = int(os.getenv("LLM_TIMEOUT", "60"))

# ==================== BOOKINGS ====================
URGENT_WINDOW_HOURS = int(os.getenv("URGENT_WINDOW_HOURS", "48"))
DISPLAY_TIMEZONE = os.getenv("DISPLAY_TIMEZONE", "Africa/Casablanca")
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "MAD")

# ==================== LOGGING ====================
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY") or "dev-key-change-in-production"
    DATABASE_URL = DATABASE_URL
    LOG_LEVEL = LOG_LEVEL
    URGENT_WINDOW_HOURS = URGENT_WINDOW_HOURS
    DISPLAY_TIMEZONE = DISPLAY_TIMEZONE
