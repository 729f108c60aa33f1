import logging
import sys
from typing import Optional

LOGGER_NAME = "ddg_engine"

CONSOLE_FORMAT = "%(levelname)s: %(message)s"
FILE_FORMAT = "%(asctime)s - %(levelname)s - %(module)s - %(message)s"


def setup_logging(
    log_file: Optional[str],
    *,
    quiet: bool = False,
    debug: bool = False,
) -> logging.Logger:
    """Configure and return the engine logger.

    The console shows short ``LEVEL: message`` lines; a log file, when
    requested, also records the time and the emitting module so solver
    diagnostics can be traced back to smoothing, parameterization or CVT.
    With ``debug`` both handlers pass per-iteration and solver details.
    """
    logger = logging.getLogger(LOGGER_NAME)
    # pytest caplog reads records from the root logger
    logger.propagate = True

    level = logging.DEBUG if debug else logging.INFO
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, mode="w")
        except OSError as exc:
            print(f"[logging] Could not open log file '{log_file}': {exc}")
        else:
            file_handler.setLevel(level)
            file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
            logger.addHandler(file_handler)

    if not quiet:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        logger.addHandler(console_handler)

    logger.debug("Logging configured (file=%s, quiet=%s).", log_file, quiet)
    return logger
