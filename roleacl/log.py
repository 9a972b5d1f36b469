import logging


def _resolve_log_level(value: str) -> int:
    level = logging.getLevelName(value.upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level_name: str = "INFO") -> logging.Logger:
    """Install a root handler if none exists and set the ``roleacl`` logger level."""
    level = _resolve_log_level(level_name)
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
    logger = logging.getLogger("roleacl")
    logger.setLevel(level)
    return logger
