"""Expose ORM models."""
from .video_session import VideoSession

__all__ = ["VideoSession"]
