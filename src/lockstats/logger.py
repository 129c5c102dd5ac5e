import logging
import os
import sys

logger = logging.getLogger("lockstats")
logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())

# Keep our output separate from the root/uvicorn handlers
logger.propagate = False

if not logger.handlers:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s (%(filename)s:%(lineno)d)")
    )
    logger.addHandler(handler)
