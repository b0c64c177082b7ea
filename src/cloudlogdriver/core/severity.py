"""Cloud Logging severity levels.

Levels are anchored at the standard library's DEBUG, INFO, WARNING and ERROR
values; the Cloud Logging specific levels sit at fixed offsets from them.
"""

import logging

DEFAULT = logging.DEBUG - 2
DEBUG = logging.DEBUG
INFO = logging.INFO
NOTICE = logging.WARNING - 2
WARNING = logging.WARNING
ERROR = logging.ERROR
CRITICAL = logging.ERROR + 2
ALERT = logging.ERROR + 4
EMERGENCY = logging.ERROR + 6

_SEVERITIES: dict[int, str] = {
    DEFAULT: "DEFAULT",
    DEBUG: "DEBUG",
    INFO: "INFO",
    NOTICE: "NOTICE",
    WARNING: "WARNING",
    ERROR: "ERROR",
    CRITICAL: "CRITICAL",
    ALERT: "ALERT",
    EMERGENCY: "EMERGENCY",
}


def level_to_severity(level: int) -> str:
    """Map a numeric level to its Cloud Logging severity name.

    Args:
        level: Numeric log level.

    Returns:
        One of DEFAULT, DEBUG, INFO, NOTICE, WARNING, ERROR, CRITICAL, ALERT,
        EMERGENCY, or an empty string if the level is not exactly one of the
        nine canonical values (logging.CRITICAL included).
    """
    return _SEVERITIES.get(level, "")
