# backend/valerie/utils/logger.py
import os
import sys

from loguru import logger

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_DIR = os.getenv("LOG_DIR", "logs")

logger.remove()
logger.add(
    sys.stdout,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
    level=LOG_LEVEL,
)

# empty LOG_DIR disables the file sink (tests, containers logging to stdout)
if LOG_DIR:
    logger.add(
        os.path.join(LOG_DIR, "valerie_{time}.log"),
        rotation="500 MB",
        retention="10 days",
        level="DEBUG",
    )
