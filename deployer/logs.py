import logging
import os
import sys

LOGGER_NAME = "deployer"
FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(log_path: str, level: int = logging.INFO) -> logging.Logger:
    """Attach a stdout handler and an append-mode file handler to the package logger.

    Safe to call more than once; handlers are replaced, not stacked.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    fmt = logging.Formatter(FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(fmt)
    handlers = [console_handler]

    log_dir = os.path.dirname(log_path)
    try:
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        file_handler.setFormatter(fmt)
        handlers.append(file_handler)
    except OSError as e:
        console_handler.stream.write(f"cannot open log file {log_path}: {e}\n")

    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    for h in handlers:
        logger.addHandler(h)
    return logger
