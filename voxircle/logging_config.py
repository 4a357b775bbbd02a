"""
Log output for the viz CLI and notebooks.

Every module logs to ``logging.getLogger(__name__)``, so all records end up
under the ``voxircle`` logger.  Library code never configures handlers;
``setup_logging`` is called once by whatever front end is running.
"""

import logging
import sys
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> None:
    """Send ``voxircle`` records to stdout, and to *log_file* when given.

    Calling it again replaces the handlers from the previous call.
    """
    logger = logging.getLogger("voxircle")
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt='%H:%M:%S')

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug("logging to stdout%s", f" and {log_file}" if log_file else "")
