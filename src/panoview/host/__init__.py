"""Host tab provider contracts and the in-memory host."""

from .base import (
    ActiveInfo,
    AttachInfo,
    ChangeInfo,
    DetachInfo,
    HostEventKind,
    MoveInfo,
    RemoveInfo,
    TabHost,
    TabHostError,
    TabId,
    TabInfo,
)
from .memory import MemoryTabHost

__all__ = [
    "ActiveInfo",
    "AttachInfo",
    "ChangeInfo",
    "DetachInfo",
    "HostEventKind",
    "MemoryTabHost",
    "MoveInfo",
    "RemoveInfo",
    "TabHost",
    "TabHostError",
    "TabId",
    "TabInfo",
]
