# backend/utils/logging_setup.py
import logging
import logging.handlers
from pathlib import Path

from config import Settings

_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def setup_logging(settings: Settings) -> None:
    """Configure the root logger (console, plus a rotating file when LOG_FILE is set)."""
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    fmt = logging.Formatter(_FORMAT)

    root = logging.getLogger()
    root.setLevel(level)

    # avoid duplicate handlers when the app is created more than once (tests, reload)
    if not any(getattr(h, "_shop_inventory", False) for h in root.handlers):
        console = logging.StreamHandler()
        console.setFormatter(fmt)
        console._shop_inventory = True
        root.addHandler(console)

        if settings.LOG_FILE:
            log_path = Path(settings.LOG_FILE).expanduser()
            log_path.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.handlers.RotatingFileHandler(
                log_path, maxBytes=5_000_000, backupCount=3, encoding="utf-8"
            )
            handler.setFormatter(fmt)
            handler._shop_inventory = True
            root.addHandler(handler)

    # also wire uvicorn loggers (if present)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi"):
        logging.getLogger(name).setLevel(level)

    # SQL echo is controlled by DB_ECHO, keep the engine logger quiet otherwise
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
