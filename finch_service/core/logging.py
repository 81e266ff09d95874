import logging
from typing import Any, Dict, Optional

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

logger = logging.getLogger("finch_service")


def configure_logging(settings: Optional[Dict[str, Any]] = None) -> None:
    """Configure root logging from the `logging` section of the settings."""
    log_cfg = (settings or {}).get("logging", {}) or {}
    level_name = str(log_cfg.get("level", "INFO")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, format=log_cfg.get("format", DEFAULT_FORMAT))
    logger.setLevel(level)
