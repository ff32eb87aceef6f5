from .messages import MessageDocument

__all__ = [
    "MessageDocument",
]
