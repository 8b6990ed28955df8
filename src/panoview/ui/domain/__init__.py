"""Domain layer of the view.

Domain Managers:
    - TabRegistry: tab node lifecycle
    - ActiveTabTracker: the single selected tab
    - GroupAssignmentResolver: group membership of newly created tabs
    - KeyboardNavigator: circular traversal across groups
    - ThumbnailCache: live/persisted previews
    - FaviconValidator: validate-then-commit icons

All managers receive their collaborators through the constructor and have no
direct dependency on a presentation toolkit.
"""

from __future__ import annotations

from .active_tab import ActiveTabTracker
from .favicons import FaviconValidator
from .group_resolver import GroupAssignmentResolver, ResolverConfig
from .navigator import KeyboardNavigator
from .tab_registry import DuplicateTabError, TabNode, TabRegistry
from .thumbnails import ThumbnailCache, ThumbnailEntry, ThumbnailTier

__all__: list[str] = [
    "ActiveTabTracker",
    "DuplicateTabError",
    "FaviconValidator",
    "GroupAssignmentResolver",
    "KeyboardNavigator",
    "ResolverConfig",
    "TabNode",
    "TabRegistry",
    "ThumbnailCache",
    "ThumbnailEntry",
    "ThumbnailTier",
]
