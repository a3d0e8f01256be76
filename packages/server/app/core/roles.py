"""Workspace role hierarchy: owner > admin > member > viewer."""

from __future__ import annotations

from typing import Optional

from taskflow_shared.schemas.common import ROLE_RANK


def role_rank(role: Optional[str]) -> int:
    """Rank of ``role``; anything unrecognised (including None) ranks 0."""
    if role is None:
        return 0
    return ROLE_RANK.get(getattr(role, "value", role), 0)


def has_permission(effective_role: Optional[str], required_role: str) -> bool:
    """True when ``effective_role`` is at least ``required_role``.

    Fails closed: an unknown effective role or an unknown required role is
    always denied.
    """
    required = role_rank(required_role)
    effective = role_rank(effective_role)
    if required == 0 or effective == 0:
        return False
    return effective >= required
