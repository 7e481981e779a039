"""Server-sent event streaming of UI message chunks for chat applications."""

__version__ = "0.1.0"