"""
Custom logger with per-level formatting and structured context.
Levels: warning, info, request, error, slow, great

Context values under secret keys (passwords, codes, tokens) are masked
before they reach any handler.
"""
import logging
import traceback
from datetime import datetime, timezone
from typing import Dict, Any

from restock.logging.log_levels import LogLevel
from restock.logging.formatters import get_formatter_for_level
from restock.helpers.getters import isDebugMode


_LEVEL_MAP = {
    LogLevel.WARNING: logging.WARNING,
    LogLevel.INFO: logging.INFO,
    LogLevel.REQUEST: logging.INFO,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.SLOW: logging.WARNING,
    LogLevel.GREAT: logging.INFO,
}

MASKED = "***"
_SECRET_KEYS = {
    "password", "new_password", "confirm_password",
    "code", "access_token", "refresh_token", "token",
}
_LIBRARY_PATHS = ("site-packages", "/usr/lib/python", "/usr/local/lib/python")


def _mask(context: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: MASKED if key.lower() in _SECRET_KEYS else value
        for key, value in context.items()
    }


class CustomLogger:
    """
    Leveled logger that attaches keyword context to every record.

    Usage:
        logger = CustomLogger("restock.reset")
        logger.info("Verification code sent", email="a@b.com")
        logger.slow("Identity call was slow", duration=5.2)
    """

    def __init__(self, name: str):
        self.name = name
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG if isDebugMode() else logging.INFO)

    def _log(self, level: LogLevel, message: str, exc_info: bool = False, **context: Any) -> None:
        context = _mask(context)
        custom_data = dict(
            context,
            level=level.value,
            module=self.name,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
        if exc_info:
            custom_data["traceback"] = self._app_traceback()

        text = message
        if context:
            text += " | " + " ".join(f"{k}={v}" for k, v in context.items())

        python_level = _LEVEL_MAP[level]
        record = logging.LogRecord(self.name, python_level, "", 0, text, (), None)
        self.logger.log(
            python_level,
            get_formatter_for_level(level).format(record),
            extra={"custom_data": custom_data},
            exc_info=exc_info,
        )

    @staticmethod
    def _app_traceback() -> str:
        """Current traceback with library frames and repeated lines removed"""
        kept = []
        for line in traceback.format_exc().splitlines():
            if not line.strip() or line in kept:
                continue
            if any(path in line for path in _LIBRARY_PATHS):
                continue
            kept.append(line)
        return "\n".join(kept)

    def warning(self, message: str, **context: Any) -> None:
        self._log(LogLevel.WARNING, message, **context)

    def info(self, message: str, **context: Any) -> None:
        self._log(LogLevel.INFO, message, **context)

    def request(self, message: str, method: str, path: str, status_code: int,
                duration: float, **context: Any) -> None:
        """
        HTTP access line, e.g.
            logger.request("API request", method="POST", path="/api/password-reset",
                           status_code=201, duration=0.152)
        """
        self._log(LogLevel.REQUEST, message, method=method, path=path,
                  status_code=status_code, duration=duration, **context)

    def error(self, message: str, exc_info: bool = True, **context: Any) -> None:
        """Logs with the current traceback unless exc_info=False"""
        self._log(LogLevel.ERROR, message, exc_info=exc_info, **context)

    def slow(self, message: str, duration: float, threshold: float = 1.0, **context: Any) -> None:
        self._log(LogLevel.SLOW, message, duration=duration, threshold=threshold, **context)

    def great(self, message: str, **context: Any) -> None:
        """Notable success, e.g. a completed password reset"""
        self._log(LogLevel.GREAT, message, **context)


_loggers: Dict[str, CustomLogger] = {}


def get_logger(name: str) -> CustomLogger:
    """Shared CustomLogger for ``name``"""
    if name not in _loggers:
        _loggers[name] = CustomLogger(name)
    return _loggers[name]
