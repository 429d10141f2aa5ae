import sys
from loguru import logger
from showroom.core.config import settings

def setup_logging():
    logger.remove()
    logger.add(sys.stderr, level=settings.LOG_LEVEL)
    if settings.LOG_FILE:
        logger.add(settings.LOG_FILE, level=settings.LOG_LEVEL, rotation="10 MB", retention="14 days", enqueue=True)
