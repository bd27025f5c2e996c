"""
Logging utilities
"""
import traceback
from datetime import datetime


def log(message: str):
    """Print with timestamp."""
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    print(f"[{timestamp}] {message}", flush=True)


def log_exception(message: str, error: BaseException):
    """Print a timestamped error line followed by the error's traceback."""
    log(f"❌ {message}: {type(error).__name__}: {error}")
    traceback.print_exception(type(error), error, error.__traceback__)
