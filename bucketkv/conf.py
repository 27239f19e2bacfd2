from django.conf import settings

DEFAULT_DATABASE = "default"
DEFAULT_MIME = "text/html"


def get_database_alias() -> str:
    """Database alias used by handles built without an explicit one."""
    return getattr(settings, "BUCKETKV_DATABASE", DEFAULT_DATABASE)


def get_auto_close() -> bool:
    """Whether handles close their connection after every operation."""
    return bool(getattr(settings, "BUCKETKV_AUTO_CLOSE", False))


def get_default_mime() -> str:
    """Mime reported for keys without a stored content type."""
    return getattr(settings, "BUCKETKV_DEFAULT_MIME", DEFAULT_MIME)


