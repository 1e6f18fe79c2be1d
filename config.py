# ============================
# CHART SIGNAL ANALYZER CONFIG
# ============================

import os

# ========= GEMINI API =========

# Comma separated list: GEMINI_API_KEYS=AIza...,AIza...
GEMINI_API_KEYS = [
    k.strip() for k in os.getenv("GEMINI_API_KEYS", "").split(",") if k.strip()
]

GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
GEMINI_API_URL = os.getenv(
    "GEMINI_API_URL",
    f"https://generativelanguage.googleapis.com/v1beta/models/{GEMINI_MODEL}:generateContent",
)

REQUEST_TIMEOUT_SECONDS = int(os.getenv("REQUEST_TIMEOUT_SECONDS", "30"))

# Generation parameters sent with every chart analysis
GEMINI_GENERATION_CONFIG = {
    "temperature": 0.4,
    "topK": 32,
    "topP": 1,
    "maxOutputTokens": 2048,
}

# ============================
# KEY POOL
# ============================

KEY_COOLDOWN_MS = int(os.getenv("KEY_COOLDOWN_MS", "60000"))             # 1 min after a 429
MAX_ATTEMPTS = int(os.getenv("MAX_ATTEMPTS", "3"))
COOLDOWN_POLL_INTERVAL_MS = int(os.getenv("COOLDOWN_POLL_INTERVAL_MS", "5000"))
COOLDOWN_WAIT_MARGIN_MS = int(os.getenv("COOLDOWN_WAIT_MARGIN_MS", "1000"))

# ============================
# CHART IMAGES
# ============================

MAX_IMAGE_BYTES = int(os.getenv("MAX_IMAGE_BYTES", str(10 * 1024 * 1024)))  # 10MB

# Auto mode: seconds between two analyses
AUTO_ANALYSIS_INTERVAL = int(os.getenv("AUTO_ANALYSIS_INTERVAL", "30"))

# ============================
# SIGNAL HISTORY
# ============================

SIGNAL_HISTORY_DB = os.getenv("SIGNAL_HISTORY_DB", "data/signal_history.db")
SIGNAL_HISTORY_LIMIT = int(os.getenv("SIGNAL_HISTORY_LIMIT", "50"))

# ============================
# LOGGING
# ============================

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_DIR = os.getenv("LOG_DIR", "data/logs")
LOG_TO_FILE = os.getenv("LOG_TO_FILE", "True").lower() in ("true", "1", "yes")
