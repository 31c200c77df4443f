"""Core migration logic including configuration and orchestration."""

__all__ = [
    "config",
    "dispatcher",
    "enumerator",
    "migrator",
    "resume",
    "transfer",
]
