import logging

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# per-request chatter that buries trade and turn logs at INFO
NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.pool")


def setup_logging(level: str = "INFO", quiet_libraries: bool = True):
    root_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=root_level, format=LOG_FORMAT, datefmt=DATE_FORMAT)
    if quiet_libraries and root_level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
