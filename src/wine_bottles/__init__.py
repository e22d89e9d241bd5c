"""Wine bottle manager with streamed task execution."""

__version__ = "0.1.0"
