import os
import sys

from loguru import logger

CONSOLE_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | {name}:{line} - {message}"


def setup_logging(level: str | None = None) -> None:
    """Console plus rotating file sink; `level` overrides the configured one."""
    from agenda_engine.config import settings

    level = (level or settings.log_level).upper()
    log_dir = os.path.dirname(settings.log_path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    logger.remove()
    logger.add(sys.stdout, level=level, format=CONSOLE_FORMAT)
    logger.add(
        settings.log_path,
        level=level,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
        encoding="utf-8",
    )
    logger.debug("logging ready level={} file={}", level, settings.log_path)
