from urllib.parse import urlparse

from utils.logger import get_logger

api_log = get_logger("API_MONITOR")   # → data/logs/api_monitor.log


# ============================
# HELPERS
# ============================

def mask_key(key: str) -> str:
    """Masked form of an API key: first 10 chars + last 4, never the full secret."""
    if not key:
        return ""
    if len(key) <= 8:
        return "****"
    if len(key) <= 14:
        return f"****{key[-4:]}"
    return f"{key[:10]}...{key[-4:]}"


def _short_url(url: str) -> str:
    """Return domain+path only, no query params (hides API keys)."""
    try:
        p = urlparse(url)
        return f"{p.netloc}{p.path}"
    except Exception:
        return url[:80]


def _infer_provider(url: str) -> str:
    """Infer provider name from URL."""
    u = url.lower()
    if "generativelanguage" in u or "gemini" in u:
        return "gemini"
    return "http"


def _status_tag(status: int, error: str = "") -> str:
    if error:
        return f"ERR={error[:60]}"
    if status == 429:
        return "RATE_LIMIT(429)"
    if status == 403:
        return "FORBIDDEN(403)"
    if status >= 500:
        return f"SERVER_ERR({status})"
    if status >= 400:
        return f"CLIENT_ERR({status})"
    if status == 0:
        return "TIMEOUT/CONN"
    return f"OK({status})"


# ============================
# API MONITOR
# ============================

def log_api_call(method: str, url: str, status: int, latency_ms: float,
                 provider: str = "", key: str = "", error: str = "", note: str = ""):
    """
    Write one structured line to api_monitor.log.

    Format:
      METHOD | PROVIDER | endpoint | STATUS_TAG | 42ms [| key=AIzaSy1234...abcd] [| note]
    """
    endpoint = _short_url(url)
    prov = provider or _infer_provider(url)

    parts = [method, prov, endpoint, _status_tag(status, error), f"{latency_ms:.0f}ms"]
    if key:
        parts.append(f"key={mask_key(key)}")
    if note:
        parts.append(note)

    msg = " | ".join(parts)

    if error or status >= 500:
        api_log.error(msg)
    elif status >= 400:
        api_log.warning(msg)
    else:
        api_log.info(msg)

    return msg
