import logging

from studio_auth.config import Settings

REDACTED = "[REDACTED]"
SENSITIVE_KEYS = ("password", "token", "otp", "secret", "authorization", "cookie")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_RECORD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


def is_sensitive(key) -> bool:
    lowered = str(key).lower()
    return any(marker in lowered for marker in SENSITIVE_KEYS)


def redact(value):
    """Mask values stored under secret-shaped keys, recursively."""
    if isinstance(value, dict):
        return {
            key: REDACTED if is_sensitive(key) and item is not None else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [redact(item) for item in value]
    if isinstance(value, tuple):
        return tuple(redact(item) for item in value)
    return value


class RedactingFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if record.args:
            record.args = redact(record.args)
        for key, value in list(vars(record).items()):
            if key in _RECORD_ATTRS:
                continue
            record.__dict__[key] = REDACTED if is_sensitive(key) and value is not None else redact(value)
        return True


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(level=settings.LOG_LEVEL, format=LOG_FORMAT)
    root = logging.getLogger()
    for handler in root.handlers:
        if not any(isinstance(existing, RedactingFilter) for existing in handler.filters):
            handler.addFilter(RedactingFilter())
