from __future__ import annotations

from domain.models import Group, MemberRole


def is_owner(group: Group, user_id: str) -> bool:
    return group.created_by == user_id


def is_admin(group: Group, user_id: str) -> bool:
    return group.role_of(user_id) == MemberRole.ADMIN


def is_owner_or_admin(group: Group, user_id: str) -> bool:
    return is_owner(group, user_id) or is_admin(group, user_id)


def is_member(group: Group, user_id: str) -> bool:
    return group.role_of(user_id) is not None
