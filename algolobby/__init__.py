"""Two-player asyncio lobby server, its msgpack event protocol and a log-view model."""

__version__ = "0.1.0"

__all__ = ["events", "messages", "framing", "lobby", "server", "log_display"]