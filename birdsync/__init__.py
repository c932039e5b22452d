"""
birdsync package
"""
__all__ = [
    "classifier",
    "cli",
    "config",
    "ebird",
    "errors",
    "inat",
    "index",
    "logging_utils",
    "maintenance",
    "media",
    "observation",
    "stats",
    "sync",
]
