"""
Logging setup for the Finova backend.

The check-in, consistency, loyalty and search flows each get their own
logger so their lines can be filtered out of the general request log.
"""
import logging
import os
import sys

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logger(name=None, level=logging.INFO, log_file=None):
    """
    Configure and return a logger with a console handler and an optional file handler.

    Args:
        name (str, optional): logger name, root logger when omitted
        level (int | str, optional): logging level
        log_file (str, optional): path of a log file to append to

    Returns:
        logging.Logger: the configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Calling twice (app factory in tests) must not duplicate output
    if logger.handlers:
        logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


checkin_logger = logging.getLogger('finova.checkin')
consistency_logger = logging.getLogger('finova.consistency')
loyalty_logger = logging.getLogger('finova.loyalty')
search_logger = logging.getLogger('finova.search')


def log_check_in(message, *args):
    checkin_logger.info(message, *args)


def log_consistency(message, *args):
    consistency_logger.info(message, *args)


def log_loyalty(message, *args):
    loyalty_logger.info(message, *args)


def log_search(message, *args):
    search_logger.info(message, *args)
