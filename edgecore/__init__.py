"""Core runtime utilities: environment detection, levelled assertions, tracked allocators and a test menu."""

__version__ = "0.1.0"
__all__ = ["environment", "assertion", "memory", "cli"]