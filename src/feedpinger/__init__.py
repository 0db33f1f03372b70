"""feedpinger - notify IndexNow, Ping-O-Matic and WebSub hubs about new feed posts."""

__version__ = "1.0.0"
