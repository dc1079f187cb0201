import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

logger = logging.getLogger("servicebell")


def setup_logging(level: str = "INFO") -> None:
    """Configura o logging da aplicação uma única vez."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    logger.setLevel(level.upper())


def mask_token(token: Optional[str]) -> str:
    """Mostra apenas o início de um token de sessão nos logs."""
    if not token:
        return "-"
    return f"{token[:4]}…"
