import logging
import os
from dataclasses import dataclass

import pytz
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = "behavior_data"
DEFAULT_TIMEZONE = "America/Chicago"
DEFAULT_TEACHER_ID = "current_teacher"
DEFAULT_REPORT_DAYS = 30
DEFAULT_LOG_LEVEL = "INFO"


@dataclass(frozen=True)
class Settings:
    data_dir: str = DEFAULT_DATA_DIR
    timezone: str = DEFAULT_TIMEZONE
    teacher_id: str = DEFAULT_TEACHER_ID
    report_days: int = DEFAULT_REPORT_DAYS
    log_level: str = DEFAULT_LOG_LEVEL

    @property
    def tz(self):
        return pytz.timezone(self.timezone)


def _int_from_env(environ, name, default):
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer, using %s", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Ignoring %s=%r: must be positive, using %s", name, raw, default)
        return default
    return value


def _timezone_from_env(environ):
    name = environ.get("BEHAVIOR_TIMEZONE") or DEFAULT_TIMEZONE
    try:
        pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        logger.warning("Unknown timezone %r, using %s", name, DEFAULT_TIMEZONE)
        return DEFAULT_TIMEZONE
    return name


def get_settings(environ=None):
    """Build settings from the environment (and a .env file when reading os.environ)."""
    if environ is None:
        load_dotenv()
        environ = os.environ

    return Settings(
        data_dir=environ.get("BEHAVIOR_DATA_DIR") or DEFAULT_DATA_DIR,
        timezone=_timezone_from_env(environ),
        teacher_id=environ.get("BEHAVIOR_TEACHER_ID") or DEFAULT_TEACHER_ID,
        report_days=_int_from_env(environ, "BEHAVIOR_REPORT_DAYS", DEFAULT_REPORT_DAYS),
        log_level=(environ.get("BEHAVIOR_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper(),
    )
