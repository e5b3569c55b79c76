"""Chat enums."""

from enum import Enum


class MessageType(str, Enum):
    TEXT = "TEXT"
    FILE = "FILE"
    SYSTEM = "SYSTEM"
    TASK_NOTIFICATION = "TASK_NOTIFICATION"
