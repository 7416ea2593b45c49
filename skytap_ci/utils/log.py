import logging
from typing import Optional, Union

SEPARATOR = "-" * 40

# Initialize logger configuration once
def get_logger(name: str, level: Union[int, str] = logging.INFO) -> logging.Logger:
    """Get a logger instance with basic configuration"""
    logger = logging.getLogger(name)

    # Configure only if no handlers are already set
    if not logger.handlers:
        logger.setLevel(level)
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            '%(asctime)s | %(levelname)-4s | %(name)-20s | %(message)s'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


class StepLogger:
    """Logging capability handed to every component of one pipeline execution.

    Three channels:
        log: verbose diagnostics, only emitted when logging is enabled
        always_log: progress messages emitted regardless of the verbose setting
        error: failures, always emitted
    """

    def __init__(
        self,
        name: str = "skytap_ci",
        verbose: bool = True,
        logger: Optional[logging.Logger] = None,
    ):
        self.verbose = verbose
        self._logger = logger or get_logger(name)

    def log(self, message: str) -> None:
        if self.verbose:
            self._logger.info(message)
        else:
            self._logger.debug(message)

    def always_log(self, message: str) -> None:
        self._logger.info(message)

    def error(self, message: str) -> None:
        self._logger.error(message)

    def banner(self, title: str) -> None:
        self.always_log(SEPARATOR)
        self.always_log(title)
        self.always_log(SEPARATOR)
