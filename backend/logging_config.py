import logging
import sys


def setup_logging(level: int | str = logging.INFO) -> None:
    logger = logging.getLogger()
    if logger.handlers:
        return  # already configured (uvicorn, pytest)
    logger.setLevel(level)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s - %(message)s"
    ))
    logger.addHandler(handler)
