"""Component2020 legacy synchronization engine."""

__version__ = "0.1.0"
