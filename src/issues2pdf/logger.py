import logging

logformat = "[%(asctime)s] [%(levelname)s] %(msg)s"

logger: logging.Logger = logging.getLogger("issues2pdf")


def init_logger(logger_name: str, level: int = logging.INFO) -> logging.Logger:
    global logger
    logging.basicConfig(level=level, format=logformat)
    logger = logging.getLogger(logger_name)
    logger.setLevel(level)
    return logger


def get_logger() -> logging.Logger:
    return logger
