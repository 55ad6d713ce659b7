"""The Business Club: game engine, wire messages and WebSocket server for a stock-trading board game."""

__version__ = "0.1.0"