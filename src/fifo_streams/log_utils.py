import logging
from sys import stderr

__all__ = ["log", "set_up_logging"]

log = logging.getLogger()  # Provided for ease of access in other modules

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] - %(message)s"


def set_up_logging(quiet: bool = True, level: int = logging.INFO):
    """
    Initialise the log. Diagnostics always go to stderr, since stdout carries
    the FIFO paths for the consumer processes.

    Args:
      quiet : Change this flag to True/False to turn off/on console logging
              (errors are reported regardless)
      level : The level of the console handler when not ``quiet``
    """
    log.setLevel(logging.DEBUG)
    log_format = logging.Formatter(LOG_FORMAT)
    console = logging.StreamHandler(stderr)
    console.setLevel(logging.ERROR if quiet else level)
    console.setFormatter(log_format)
    log.addHandler(console)
    return console
