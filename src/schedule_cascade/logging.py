import logging
from pathlib import Path


def setup_logger(name: str = "schedule_cascade", log_dir: str | None = "logs", log_file: str = "schedule_cascade.log",
                 console_level: str = "INFO", file_level: str = "DEBUG"):
    """
    Set up a logger that writes to the console and, when log_dir is given,
    to a file in log_dir.
    """
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)  # Capture all levels, handlers will filter

    # Avoid duplicate handlers
    if not logger.handlers:
        ch = logging.StreamHandler()
        ch.setLevel(getattr(logging, console_level.upper(), logging.INFO))
        ch.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
        logger.addHandler(ch)

        if log_dir:
            Path(log_dir).mkdir(parents=True, exist_ok=True)
            fh = logging.FileHandler(Path(log_dir) / log_file, encoding="utf-8")
            fh.setLevel(getattr(logging, file_level.upper(), logging.DEBUG))
            fh.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
            logger.addHandler(fh)

    return logger


def setup_logger_from_config(logging_config, name: str = "schedule_cascade", to_file: bool = True):
    """Same as setup_logger, reading destinations and levels from a LoggingConfig."""
    return setup_logger(
        name,
        log_dir=logging_config.log_dir if to_file else None,
        log_file=logging_config.log_file,
        console_level=logging_config.console_level,
        file_level=logging_config.file_level,
    )
