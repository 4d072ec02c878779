"""
Unified Logging Configuration for the SumUp engine

This module provides a centralized logging system that combines:
- Console output with timestamps (DEBUG_MODE only)
- File output to logs/processing.log
- Debug trail in logs/debug_flow.txt
- Performance timing via Timer context manager

All modules should import logging functions from this module:
    from sumup.logging_config import debug_log, info, warning, error, Timer

Prefix messages with the component in brackets, e.g. "[QUOTA] ...".
"""

import logging
import sys
import threading
import time
from datetime import datetime

from sumup.config import DEBUG_FLOW_FILE, DEBUG_MODE, LOG_DATE_FORMAT, LOG_FILE, LOG_FORMAT

# =============================================================================
# File Logger Setup (debug_flow.txt)
# =============================================================================

class _DebugFileLogger:
    """
    Appends debug messages to debug_flow.txt regardless of DEBUG_MODE.

    The file is opened lazily on first write so importing the package has no
    file side effects beyond directory creation.
    """

    def __init__(self, path):
        self._path = path
        self._log_file = None
        self._lock = threading.Lock()
        self._disabled = False

    def write(self, message: str):
        """Write message to the debug log file."""
        if self._disabled:
            return
        with self._lock:
            try:
                if self._log_file is None:
                    self._log_file = open(self._path, 'a', encoding='utf-8')
                    self._log_file.write(f"=== SumUp Debug Log started {datetime.now().isoformat()} ===\n")
                timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
                self._log_file.write(f"[{timestamp}] {message}\n")
                self._log_file.flush()
            except OSError:
                # Debug trail is best effort; the standard logger still works
                self._disabled = True

    def close(self):
        """Close the debug log file gracefully."""
        with self._lock:
            if self._log_file:
                self._log_file.write(f"=== Ended {datetime.now().isoformat()} ===\n")
                self._log_file.close()
                self._log_file = None


_debug_file_logger = _DebugFileLogger(DEBUG_FLOW_FILE)


# =============================================================================
# Standard Python Logging Setup
# =============================================================================

def _setup_standard_logging() -> logging.Logger:
    """
    Configure the standard Python logging framework.

    Returns:
        Configured logger instance for the engine
    """
    logger = logging.getLogger('sumup')
    logger.setLevel(logging.DEBUG if DEBUG_MODE else logging.INFO)

    # Prevent duplicate handlers if called multiple times
    if logger.handlers:
        return logger

    try:
        file_handler = logging.FileHandler(LOG_FILE, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        logger.addHandler(file_handler)
    except OSError:
        logger.addHandler(logging.NullHandler())

    if DEBUG_MODE:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        logger.addHandler(console_handler)

    return logger


_logger = _setup_standard_logging()


# =============================================================================
# Timer Context Manager
# =============================================================================

class Timer:
    """
    Context manager for timing code blocks with automatic logging.

    Usage:
        with Timer("Structural analysis") as t:
            ...
        t.duration_ms

    Attributes:
        operation_name: Name of the operation being timed
        duration_ms: Duration in milliseconds (available after exit)
    """

    def __init__(self, operation_name: str, auto_log: bool = True):
        self.operation_name = operation_name
        self.auto_log = auto_log
        self.start_time: float | None = None
        self.end_time: float | None = None
        self.duration_ms: float | None = None

    def __enter__(self):
        if self.auto_log:
            debug_log(f"Starting {self.operation_name}...")
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.end_time = time.perf_counter()
        self.duration_ms = (self.end_time - self.start_time) * 1000

        if self.auto_log:
            if self.duration_ms < 1000:
                duration_str = f"{self.duration_ms:.0f} ms"
            else:
                duration_str = f"{self.duration_ms / 1000:.1f} seconds"
            debug_log(f"{self.operation_name} took {duration_str}")

        return False  # Don't suppress exceptions

    @property
    def duration_seconds(self) -> float:
        """Measured duration in seconds (0.0 until the block exits)."""
        return (self.duration_ms or 0.0) / 1000


# =============================================================================
# Public Logging Functions
# =============================================================================

def debug_log(message: str):
    """
    Log a debug message to debug_flow.txt and, in DEBUG_MODE, the console.

    Args:
        message: The message to log (prefix with [COMPONENT] for clarity)
    """
    _debug_file_logger.write(message)
    _logger.debug(message)


def debug(message: str):
    """Alias for debug_log."""
    debug_log(message)


def info(message: str):
    """Log an informational message."""
    _debug_file_logger.write(f"[INFO] {message}")
    _logger.info(message)


def warning(message: str):
    """Log a warning message."""
    _debug_file_logger.write(f"[WARNING] {message}")
    _logger.warning(message)


def error(message: str, exc_info: bool = False):
    """
    Log an error message with optional exception traceback.

    Args:
        message: The error message to log
        exc_info: If True, include exception traceback (only in DEBUG_MODE)
    """
    _debug_file_logger.write(f"[ERROR] {message}")
    _logger.error(message, exc_info=exc_info and DEBUG_MODE)


def critical(message: str, exc_info: bool = True):
    """Log a critical error, with traceback in DEBUG_MODE."""
    _debug_file_logger.write(f"[CRITICAL] {message}")
    _logger.critical(message, exc_info=exc_info and DEBUG_MODE)


def debug_timing(operation: str, elapsed_seconds: float):
    """
    Log operation timing information in human-readable format.

    Example:
        start = time.perf_counter()
        ...
        debug_timing("Chunk partitioning", time.perf_counter() - start)
    """
    if elapsed_seconds < 1:
        time_str = f"{elapsed_seconds*1000:.0f} ms"
    elif elapsed_seconds < 60:
        time_str = f"{elapsed_seconds:.2f}s"
    else:
        time_str = f"{elapsed_seconds/60:.1f}m"
    debug_log(f"{operation} took {time_str}")


def close_debug_log():
    """Close the debug log file. Call at application shutdown."""
    _debug_file_logger.close()


__all__ = [
    'debug_log',
    'debug',
    'debug_timing',
    'info',
    'warning',
    'error',
    'critical',
    'close_debug_log',
    'Timer',
    'DEBUG_MODE',
]
