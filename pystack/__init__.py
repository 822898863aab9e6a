"""
The main pystack package.
"""
import logging
import sys

# Default format for logs
LOG_FORMAT = '%(asctime)s.%(msecs)03d [%(levelname)s] %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

def setup_logging(verbose: int = 0) -> None:
    """Setup logging with appropriate level based on verbosity.

    Args:
        verbose: Verbosity level
            0 = INFO and above (git/github calls are shown)
            1 = same as 0
            2 = DEBUG and above
    """
    if verbose >= 2:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logger = logging.getLogger()
    logger.setLevel(level)

    # Replace whatever handlers are installed with a single stderr handler
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT))
    logger.addHandler(handler)
