"""
Verbosity-gated logging for the expression core.

Library code never talks to the logging module directly; it goes through the
log_* helpers below, which check the active LogLevel first. Records are sent
to the 'symbolic_algebra' logger and propagate, so pytest's caplog and
application handlers both see them.
"""

import logging
import sys
from typing import Optional
from enum import Enum


class LogLevel(Enum):
    """How much the expression core reports"""
    SILENT = 0      # Nothing but unrecoverable failures
    MINIMAL = 1     # Warnings such as recursion limits, plus dbgprint output
    MODERATE = 2    # Lifecycle events (flyweight table creation, ...)
    DETAILED = 3    # Structural events (copy-on-write clones, ...)
    VERBOSE = 4     # Parser diagnostics and everything else


LOGGER_NAME = 'symbolic_algebra'


class AlgebraLogger:
    """
    Owns the handlers of the package logger and filters by LogLevel

    Args:
        log_level: verbosity threshold
        log_path: when given, records are appended to this file as well
    """

    def __init__(self, log_level: LogLevel = LogLevel.MINIMAL, log_path: Optional[str] = None):
        self.log_level = log_level
        self.log_path = log_path

        self.logger = logging.getLogger(LOGGER_NAME)
        self.logger.setLevel(logging.DEBUG)
        self.logger.handlers.clear()
        self.logger.propagate = True

        formatter = logging.Formatter('[%(name)s] %(levelname)s %(message)s')
        handlers = []
        if log_level != LogLevel.SILENT:
            handlers.append(logging.StreamHandler(sys.stderr))
        if log_path is not None:
            handlers.append(logging.FileHandler(log_path, mode='a'))
        for handler in handlers:
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def enabled(self, required_level: LogLevel) -> bool:
        return self.log_level.value >= required_level.value

    def critical(self, message: str):
        if self.log_level != LogLevel.SILENT:
            self.logger.critical(message)

    def info(self, message: str, required_level: LogLevel = LogLevel.MODERATE):
        if self.enabled(required_level):
            self.logger.info(message)

    def warning(self, message: str):
        if self.enabled(LogLevel.MINIMAL):
            self.logger.warning(message)

    def structural(self, message: str):
        """Tree-structure events such as copy-on-write clones"""
        if self.enabled(LogLevel.DETAILED):
            self.logger.debug(message)

    def debug(self, message: str):
        if self.enabled(LogLevel.VERBOSE):
            self.logger.debug(message)


_global_logger: Optional[AlgebraLogger] = None


def get_logger() -> AlgebraLogger:
    """Package logger, created at MINIMAL on first use"""
    global _global_logger
    if _global_logger is None:
        _global_logger = AlgebraLogger()
    return _global_logger


def set_log_level(level: LogLevel):
    """Change the threshold without touching handlers"""
    logger = get_logger()
    logger.log_level = level


def configure_logging(log_level: LogLevel = LogLevel.MINIMAL,
                      log_path: Optional[str] = None) -> AlgebraLogger:
    """Rebuild the package logger with a new threshold and optional log file"""
    global _global_logger
    _global_logger = AlgebraLogger(log_level=log_level, log_path=log_path)
    return _global_logger


def log_info(message: str, level: LogLevel = LogLevel.MODERATE):
    get_logger().info(message, level)


def log_warning(message: str):
    get_logger().warning(message)


def log_structural(message: str):
    get_logger().structural(message)


def log_debug(message: str):
    get_logger().debug(message)
