"""
Unit tests for folder visibility rules.
Tests the ancestor walk and the nearest-share permission decision.
"""

import pytest
from typing import Optional

from mediavault.core.exceptions import CorruptHierarchy
from mediavault.core.visibility import (
    Permission,
    ShareGrant,
    resolve_share_permission,
    walk_ancestors,
)


def parent_lookup(parents: dict[str, Optional[str]]):
    async def parent_of(folder_id: str) -> Optional[str]:
        return parents.get(folder_id)

    return parent_of


def grant(folder_id: str, permission=Permission.READ_ONLY, cascade=True) -> ShareGrant:
    return ShareGrant(folder_id=folder_id, permission=permission, include_subfolders=cascade)


class TestWalkAncestors:
    """Tests for walk_ancestors."""

    async def test_root_folder(self):
        chain = await walk_ancestors("root", parent_lookup({"root": None}), max_depth=10)
        assert chain == ["root"]

    async def test_chain_ordered_from_folder_to_root(self):
        parents = {"c": "b", "b": "a", "a": None}
        chain = await walk_ancestors("c", parent_lookup(parents), max_depth=10)
        assert chain == ["c", "b", "a"]

    async def test_cycle_raises(self):
        parents = {"a": "b", "b": "c", "c": "a"}
        with pytest.raises(CorruptHierarchy):
            await walk_ancestors("a", parent_lookup(parents), max_depth=10)

    async def test_self_parent_raises(self):
        with pytest.raises(CorruptHierarchy):
            await walk_ancestors("a", parent_lookup({"a": "a"}), max_depth=10)

    async def test_depth_cap(self):
        parents = {f"f{i}": f"f{i + 1}" for i in range(20)}
        parents["f20"] = None

        with pytest.raises(CorruptHierarchy):
            await walk_ancestors("f0", parent_lookup(parents), max_depth=5)

        chain = await walk_ancestors("f0", parent_lookup(parents), max_depth=21)
        assert len(chain) == 21


class TestResolveSharePermission:
    """Tests for resolve_share_permission."""

    def test_no_grants_denied(self):
        assert resolve_share_permission(["c", "b", "a"], {}) is None

    def test_direct_share_applies_without_cascade(self):
        grants = {"c": grant("c", Permission.READ_WRITE, cascade=False)}
        assert resolve_share_permission(["c", "b", "a"], grants) is Permission.READ_WRITE

    def test_non_cascading_ancestor_share_denied(self):
        grants = {"a": grant("a", cascade=False)}
        assert resolve_share_permission(["c", "b", "a"], grants) is None

    def test_cascading_ancestor_share_applies(self):
        grants = {"a": grant("a", Permission.READ_WRITE, cascade=True)}
        assert resolve_share_permission(["c", "b", "a"], grants) is Permission.READ_WRITE

    def test_nearest_share_overrides_inherited(self):
        """Test a closer share decides even when it grants less."""
        grants = {
            "a": grant("a", Permission.READ_WRITE, cascade=True),
            "b": grant("b", Permission.READ_ONLY, cascade=True),
        }
        assert resolve_share_permission(["c", "b", "a"], grants) is Permission.READ_ONLY

    def test_nearest_non_cascading_share_blocks_inherited(self):
        grants = {
            "a": grant("a", Permission.READ_WRITE, cascade=True),
            "b": grant("b", Permission.READ_ONLY, cascade=False),
        }
        assert resolve_share_permission(["c", "b", "a"], grants) is None
        assert resolve_share_permission(["b", "a"], grants) is Permission.READ_ONLY

    def test_permission_can_write(self):
        assert Permission.READ_WRITE.can_write is True
        assert Permission.READ_ONLY.can_write is False
        assert Permission("read_only") is Permission.READ_ONLY
