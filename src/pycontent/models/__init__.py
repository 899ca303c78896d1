"""Pydantic models for content server payloads and UI notifications."""

from pycontent.models.auth import LoginResult, User
from pycontent.models.node import Node, NodeType
from pycontent.models.notification import Notification, Severity

__all__ = [
    "LoginResult",
    "Node",
    "NodeType",
    "Notification",
    "Severity",
    "User",
]
