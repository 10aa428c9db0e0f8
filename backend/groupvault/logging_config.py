"""Process-wide logging setup."""
import logging

from groupvault.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger once at startup."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format=LOG_FORMAT,
    )
    # SQL echo stays off even at DEBUG
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
