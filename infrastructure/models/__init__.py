"""Infrastructure models package exports."""
from .base import Base, metadata
from .message import MessageModel
from .profile import ProfileModel

__all__ = [
    "Base",
    "metadata",
    "MessageModel",
    "ProfileModel",
]
