# backend/studio_engine/core/logging_config.py
import logging
from typing import Optional, Union

from .config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: Optional[Union[int, str]] = None) -> None:
    """
    Install the engine's log format on the root logger.

    Defaults to DEBUG when SQL echo is on, INFO otherwise. Safe to call more
    than once; ``basicConfig`` is a no-op after the first handler exists.
    """
    if level is None:
        level = logging.DEBUG if settings.sql_echo else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)

    # SQLAlchemy logs every statement at INFO when echo is enabled
    if not settings.sql_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
