"""
Configuration settings for the gradebook app.

These values can be overridden in Django settings by prefixing with GRADEBOOK_.
For example, to change the default pass mark of a subject:
    GRADEBOOK_DEFAULT_MIN_GRADE_TO_PASS = Decimal('5.00')

All configuration values are lazily loaded to avoid Django setup issues.
"""
from decimal import Decimal


def _get_setting(name, default):
    """Get a gradebook setting from Django settings or use default."""
    from django.conf import settings
    return getattr(settings, f'GRADEBOOK_{name}', default)


_DEFAULTS = {
    # Grade domain
    'MIN_GRADE': Decimal('0'),
    'MAX_GRADE': Decimal('10'),
    'DEFAULT_MIN_GRADE_TO_PASS': Decimal('6'),

    # Display precision of averages and percentages
    'DISPLAY_DECIMAL_PLACES': 2,

    # Evaluation system conversion
    'DEFAULT_CONVERSION_DECIMAL_PLACES': 1,
    'DEFAULT_PASSING_GRADE': Decimal('6'),
    'EVALUATION_SYSTEM_CACHE_TIMEOUT': 300,  # seconds

    # At-risk detection
    'DEFAULT_AT_RISK_THRESHOLD': 2,

    # Mark import limits
    'MAX_FILE_SIZE': 5 * 1024 * 1024,  # 5 MB
    'MAX_IMPORT_ROWS': 5000,

    # Celery task settings
    'TASK_MAX_RETRIES': 3,
    'TASK_RETRY_DELAY': 60,  # seconds
}


class _ConfigProxy:
    """
    Lazy configuration proxy that loads settings only when accessed.
    """

    def __getattr__(self, name):
        if name in _DEFAULTS:
            return _get_setting(name, _DEFAULTS[name])
        raise AttributeError(f"Unknown config setting: {name}")


_config = _ConfigProxy()


def __getattr__(name):
    """Enable module-level attribute access via the config proxy."""
    return getattr(_config, name)
