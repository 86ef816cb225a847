import logging

from app.config import settings

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
_configured = False


def configure_logging(level: str | None = None) -> None:
    """Install the root handler once; later calls only adjust the level."""
    global _configured
    resolved = (level or settings.log_level or "INFO").upper()
    if not _configured:
        logging.basicConfig(level=resolved, format=_LOG_FORMAT)
        # httpx logs every request at INFO
        logging.getLogger("httpx").setLevel(logging.WARNING)
        _configured = True
    logging.getLogger().setLevel(resolved)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
