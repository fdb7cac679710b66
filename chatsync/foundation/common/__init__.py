from .version import MIN_RECENT_PM_VERSION, ServerVersion

__all__ = [
    "MIN_RECENT_PM_VERSION",
    "ServerVersion",
]
