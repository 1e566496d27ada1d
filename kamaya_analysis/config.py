"""
Configuration for the Kamaya analysis application.

Settings come from an optional ``config.json`` next to this module, with a few
values overridable through environment variables.
"""

import json
import logging
import os
from typing import Any, Dict, Optional, Tuple, cast

logger = logging.getLogger(__name__)


def load_config(config_filename: str = "config.json") -> Dict[str, Any]:
    """Loads configuration from a JSON file."""
    # Build absolute path relative to this module
    base_dir = os.path.dirname(os.path.abspath(__file__))
    config_path = os.path.join(base_dir, config_filename)

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        logger.warning("Config file not found at %s. Using defaults.", config_path)
        return {}


CONFIG: Dict[str, Any] = load_config()
_SCRAPER: Dict[str, Any] = CONFIG.get("scraper", {})
_PIPELINE: Dict[str, Any] = CONFIG.get("pipeline", {})

BASE_URL: str = cast(str, _SCRAPER.get("base_url", "https://foodhub.co.jp"))
CATEGORY: str = cast(str, _SCRAPER.get("category", "かま屋通信"))
TITLE_KEYWORDS: Tuple[str, ...] = tuple(
    _SCRAPER.get("title_keywords", ["かま屋通信", "かま屋 通信"])
)
MAX_PAGES: int = cast(int, _SCRAPER.get("max_pages", 15))
REQUEST_TIMEOUT: int = cast(int, _SCRAPER.get("timeout", 30))
USER_AGENT: str = cast(
    str,
    _SCRAPER.get(
        "user_agent",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36",
    ),
)

GEMINI_MODEL: str = cast(str, CONFIG.get("gemini_model", "gemini-2.0-flash"))

# Delays in seconds between iterations of each stage
PAGE_DELAY: float = cast(float, _PIPELINE.get("page_delay", 0.3))
DETAIL_DELAY: float = cast(float, _PIPELINE.get("detail_delay", 0.5))
DETAIL_BATCH_SIZE: int = cast(int, _PIPELINE.get("detail_batch_size", 3))
DOWNLOAD_DELAY: float = cast(float, _PIPELINE.get("download_delay", 0.5))
CACHED_DOWNLOAD_DELAY: float = cast(float, _PIPELINE.get("cached_download_delay", 0.1))
ANALYZE_DELAY: float = cast(float, _PIPELINE.get("analyze_delay", 1.0))
LOAD_BATCH_SIZE: int = cast(int, _PIPELINE.get("load_batch_size", 5))
LOAD_DELAY: float = cast(float, _PIPELINE.get("load_delay", 0.1))

# Env Vars
DOWNLOAD_DIR: str = os.environ.get(
    "KAMAYA_DOWNLOAD_DIR",
    cast(str, CONFIG.get("download_dir", os.path.join(os.getcwd(), "downloads"))),
)
PERSONA_PROMPT_PATH: str = os.environ.get(
    "KAMAYA_PERSONA_PROMPT",
    cast(
        str,
        CONFIG.get(
            "persona_prompt_path", os.path.join(DOWNLOAD_DIR, "kamaya_persona_prompt.md")
        ),
    ),
)
GEMINI_API_KEY: Optional[str] = os.environ.get("GEMINI_KEY")
