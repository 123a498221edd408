"""Runtime settings, read from the environment."""
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:8082/api/v1"
DEFAULT_STATE_DIR = Path.home() / ".config" / "storefront-session"


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r, using %s", name, raw, default)
        return default


@dataclass
class Settings:
    """Everything the client needs to reach the storefront and persist state."""
    api_url: str = DEFAULT_API_URL
    state_dir: Path = field(default_factory=lambda: DEFAULT_STATE_DIR)
    merge_settle_seconds: float = 1.0
    http_timeout: float = 10.0
    login_page_url: str = "http://localhost:5173/login"
    recaptcha_site_key: str = ""
    headless: bool = False
    debug_dir: Path = field(default_factory=lambda: DEFAULT_STATE_DIR / "debug")

    @classmethod
    def from_env(cls) -> "Settings":
        state_dir = Path(os.path.expanduser(os.environ.get("STOREFRONT_STATE_DIR", str(DEFAULT_STATE_DIR))))
        return cls(
            api_url=os.environ.get("STOREFRONT_API_URL", DEFAULT_API_URL).rstrip("/"),
            state_dir=state_dir,
            merge_settle_seconds=_env_float("STOREFRONT_MERGE_SETTLE_SECONDS", 1.0),
            http_timeout=_env_float("STOREFRONT_HTTP_TIMEOUT", 10.0),
            login_page_url=os.environ.get("STOREFRONT_LOGIN_PAGE_URL", "http://localhost:5173/login"),
            recaptcha_site_key=os.environ.get("STOREFRONT_RECAPTCHA_SITE_KEY", ""),
            headless=os.environ.get("STOREFRONT_HEADLESS", "false").lower() == "true",
            debug_dir=Path(os.path.expanduser(os.environ.get("STOREFRONT_DEBUG_DIR", str(state_dir / "debug")))),
        )
