"""LifeSync: offline-first life tracker with bidirectional sync."""

__version__ = "1.0.0"
