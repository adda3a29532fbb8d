"""
Process wide logging setup for the collector CLI.
"""
import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger once. Unknown level names fall back to INFO.
    """
    levelno = getattr(logging, str(level).upper(), logging.INFO)
    if not isinstance(levelno, int):
        levelno = logging.INFO
    logging.basicConfig(level=levelno, format=LOG_FORMAT)
    logging.getLogger("ipfix_agent").setLevel(levelno)
