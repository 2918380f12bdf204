"""Package version."""

CLIENT_VERSION = "0.1.0"

__all__ = ["CLIENT_VERSION"]
