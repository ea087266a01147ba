## common/logging_config.py

import logging
import os


def configure_logging(level=None):
    if level is None:
        level = getattr(logging, os.getenv("LOGLEVEL", "INFO").upper(), logging.INFO)
    logger = logging.getLogger("ena-coach-agent")
    logger.setLevel(level)
    if not logger.handlers:
        ch = logging.StreamHandler()
        ch.setLevel(level)
        fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        ch.setFormatter(fmt)
        logger.addHandler(ch)
    return logger
