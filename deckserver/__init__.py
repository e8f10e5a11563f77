"""Deck navigation and progressive-disclosure engine with an HTTP/WebSocket surface."""

__version__ = "0.1.0"
