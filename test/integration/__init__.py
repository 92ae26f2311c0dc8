import logging


LOG_FORMAT = "%(asctime)s.%(msecs)03d | %(levelname)-8s | %(funcName)s:%(lineno)d - %(message)s"


def get_logger(name: str) -> logging.Logger:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    logger = logging.getLogger(name)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)

    return logger
