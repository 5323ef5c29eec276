import logging

from core.config import settings


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger and wire uvicorn/fastapi loggers to the same level."""
    level_name = (level or settings.log_level or "INFO").upper()
    log_level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(log_level)
    # avoid duplicate handlers on reload
    if not any(getattr(h, "_retail_ledger", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        handler._retail_ledger = True
        root.addHandler(handler)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi"):
        logging.getLogger(name).setLevel(log_level)
