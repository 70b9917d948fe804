import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level="INFO") -> None:
    """Configure a single stream handler on the root logger.

    Safe to call more than once; handlers are replaced, not stacked.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)
