"""
Folder visibility rules.

The ancestor walk takes a parent lookup callback and the permission decision
works on an already-loaded chain, so both can be tested without a database.
A chain is ordered from the requested folder up to its root:
``[folder, parent, grandparent, ..., root]``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Mapping, Optional, Sequence

from mediavault.core.exceptions import CorruptHierarchy


class Permission(str, Enum):
    """Share permission levels."""

    READ_ONLY = "read_only"
    READ_WRITE = "read_write"

    @property
    def can_write(self) -> bool:
        return self is Permission.READ_WRITE


@dataclass(frozen=True)
class ShareGrant:
    """The part of a folder share that matters for access decisions."""

    folder_id: str
    permission: Permission
    include_subfolders: bool


async def walk_ancestors(
    start_id: str,
    parent_of: Callable[[str], Awaitable[Optional[str]]],
    max_depth: int,
) -> list[str]:
    """
    Follow parent links from ``start_id`` to a root.

    Args:
        start_id: Folder to start from (included in the result)
        parent_of: Returns the parent id of a folder, or None at a root
        max_depth: Maximum number of folders in the chain

    Returns:
        Folder ids ordered from ``start_id`` up to the root

    Raises:
        CorruptHierarchy: On a cycle or when the chain exceeds ``max_depth``
    """
    chain: list[str] = []
    seen: set[str] = set()
    current: Optional[str] = start_id

    while current is not None:
        if current in seen:
            raise CorruptHierarchy(f"Folder cycle detected at {current}")
        if len(chain) >= max_depth:
            raise CorruptHierarchy(f"Folder {start_id} exceeds max depth {max_depth}")
        seen.add(current)
        chain.append(current)
        current = await parent_of(current)

    return chain


def resolve_share_permission(
    chain: Sequence[str],
    grants: Mapping[str, ShareGrant],
) -> Optional[Permission]:
    """
    Decide the permission a non-owner has on ``chain[0]``.

    The nearest folder in the chain carrying a share for the user decides.
    A share on the requested folder itself always applies; a share found on
    an ancestor applies only when it includes subfolders.

    Returns:
        The effective permission, or None when access is denied
    """
    for depth, folder_id in enumerate(chain):
        grant = grants.get(folder_id)
        if grant is None:
            continue
        if depth == 0 or grant.include_subfolders:
            return grant.permission
        return None
    return None
