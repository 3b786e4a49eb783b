from . import chat, debug, health

__all__ = ["chat", "debug", "health"]
