import logging
from logging.handlers import RotatingFileHandler
import os
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

_CONFIGURED = False

# Libraries that log every request at INFO; held at WARNING unless LIB_LOG_LEVEL says otherwise
NOISY_LIBRARIES = (
    "discord",
    "httpx",
    "httpcore",
    "uvicorn.access",
)

_PATTERN = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S%z"


class _TzFormatter(logging.Formatter):
    def __init__(self, *args, tz: Optional[str] = None, **kwargs):
        super().__init__(*args, **kwargs)
        # tz == "UTC" forces UTC; None/"system" uses the host zone; else an IANA name
        import datetime as _dt
        if tz == "UTC":
            self._tz = _dt.timezone.utc
        elif tz is None or tz == "system":
            self._tz = _dt.datetime.now().astimezone().tzinfo
        else:
            try:
                self._tz = ZoneInfo(tz)
            except ZoneInfoNotFoundError:
                self._tz = _dt.datetime.now().astimezone().tzinfo

    def formatTime(self, record, datefmt=None):
        import datetime as _dt
        dt = _dt.datetime.fromtimestamp(record.created, tz=self._tz)
        if datefmt:
            return dt.strftime(datefmt)
        return dt.isoformat()


def _truthy(value: Optional[str]) -> bool:
    return str(value).lower() in ("1", "true", "yes", "on")


def _rotating(path: str, level: int, tz: Optional[str]) -> Optional[logging.Handler]:
    try:
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        h = RotatingFileHandler(
            filename=path,
            mode="a",
            maxBytes=1_000_000,
            backupCount=5,
            encoding="utf-8",
        )
    except OSError:
        # Read-only hosts still get console logs
        return None
    h.setLevel(level)
    h.setFormatter(_TzFormatter(_PATTERN, tz=tz, datefmt=_DATEFMT))
    return h


def configure_logging(
    level: Optional[str] = None,
    tz: Optional[str] = None,
    lib_log_level: Optional[str] = None,
    console_to_file: bool | None = None,
    error_file: bool | None = None,
) -> None:
    global _CONFIGURED
    if _CONFIGURED:
        return
    lvl = (level or "INFO").upper()
    py_level = getattr(logging, lvl, None)
    if not isinstance(py_level, int):
        py_level = logging.INFO

    root = logging.getLogger()
    root.setLevel(py_level)
    for h in list(root.handlers):
        root.removeHandler(h)

    console = logging.StreamHandler()
    console.setLevel(py_level)
    console.setFormatter(_TzFormatter(_PATTERN, tz=tz, datefmt=_DATEFMT))
    root.addHandler(console)

    # Mirror console output to logs/log.log (LOG_CONSOLE env wins over config)
    mirror = bool(console_to_file)
    if os.getenv("LOG_CONSOLE") is not None:
        mirror = _truthy(os.getenv("LOG_CONSOLE"))
    if mirror:
        h = _rotating("logs/log.log", py_level, tz)
        if h is not None:
            root.addHandler(h)

    errors_enabled = _truthy(os.getenv("LOG_ERRORS", ""))
    if error_file is not None:
        errors_enabled = bool(error_file)
    if errors_enabled:
        h = _rotating("logs/errors.log", logging.ERROR, tz)
        if h is not None:
            root.addHandler(h)

    lib_level_name = lib_log_level or os.getenv("LIB_LOG_LEVEL")
    lib_level = getattr(logging, lib_level_name.upper(), logging.WARNING) if lib_level_name else logging.WARNING
    for name in NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(lib_level)

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    # Unconfigured callers (tests, one-shot scripts) get INFO to console in host time
    if not _CONFIGURED:
        configure_logging(level="INFO")
    return logging.getLogger(name)
