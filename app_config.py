"""
Application configuration module for the Chatdeck chat client.
Contains environment variables, constants, and settings.
"""

import os
from dotenv import load_dotenv

load_dotenv()

# ═══════════════════════════════════════════
# COMPLETION SERVICE
# ═══════════════════════════════════════════

OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY", "")
COMPLETION_API_URL = os.getenv(
    "COMPLETION_API_URL", "https://openrouter.ai/api/v1/chat/completions"
)
MODELS_API_URL = os.getenv("MODELS_API_URL", "https://openrouter.ai/api/v1/models")

# Fixed per deployment, never changed at runtime
COMPLETION_MODEL = os.getenv("COMPLETION_MODEL", "openai/gpt-3.5-turbo")
COMPLETION_TEMPERATURE = float(os.getenv("COMPLETION_TEMPERATURE", "0.7"))
COMPLETION_MAX_TOKENS = int(os.getenv("COMPLETION_MAX_TOKENS", "1000"))

# Optional identifying headers sent along with each request
APP_TITLE = os.getenv("APP_TITLE", "Chatdeck")
APP_REFERER = os.getenv("APP_REFERER", "http://localhost:5009")

# ═══════════════════════════════════════════
# TIMEOUTS & RETRIES
# ═══════════════════════════════════════════

REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "20"))
LOADING_TIMEOUT_SECONDS = float(os.getenv("LOADING_TIMEOUT_SECONDS", "30"))
MAX_RETRIES = int(os.getenv("MAX_RETRIES", "3"))
RETRY_DELAY_SECONDS = float(os.getenv("RETRY_DELAY_SECONDS", "1.0"))

# ═══════════════════════════════════════════
# PERSISTENCE
# ═══════════════════════════════════════════

STORAGE_DIR = os.getenv("STORAGE_DIR", ".chatdeck")
CHAT_STORAGE_KEY = "chat-storage"
THEME_STORAGE_KEY = "theme-storage"

# ═══════════════════════════════════════════
# APP SETTINGS
# ═══════════════════════════════════════════

PORT = int(os.getenv("PORT", 5009))
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LOG_DIR", "logs")

# Values that ship in .env templates and must never reach the API
API_KEY_PLACEHOLDERS = {
    "your_api_key_here",
    "changeme",
}
