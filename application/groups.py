from __future__ import annotations

import logging
import secrets
import string
from typing import Callable, List, Optional

from domain.errors import AlreadyMember, Conflict, Forbidden, NotFound, ValidationError
from domain.models import (
    GUEST_ID_PREFIX,
    PERSONAL_GROUP_NAME,
    Group,
    GroupMember,
    MemberRole,
    new_id,
    normalize_name,
    utc_now,
)
from domain.repositories import GroupRepository, PokerStore

from .authz import is_member, is_owner, is_owner_or_admin
from .results import OperationResult, fail, ok

LOGGER = logging.getLogger(__name__)

INVITE_CODE_LENGTH = 6
INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits
INVITE_CODE_ATTEMPTS = 10


def generate_invite_code(groups: GroupRepository) -> str:
    """
    Produce a short, uppercase, human-typeable invite code not used by any group.

    Raises `Conflict` if every attempt collides.
    """

    for _ in range(INVITE_CODE_ATTEMPTS):
        code = "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))
        if not groups.invite_code_exists(code):
            return code
    raise Conflict("Could not generate a unique invite code, please try again.")


def _load_group(group_id: str, store: PokerStore) -> Group:
    group = store.groups.get_group(group_id)
    if group is None:
        raise NotFound("Group not found.")
    return group


def create_group(
    name: str,
    description: Optional[str],
    owner_id: str,
    owner_name: str,
    store: PokerStore,
    code_generator: Callable[[GroupRepository], str] = generate_invite_code,
) -> OperationResult:
    """
    Create a group whose only member is its creator, as `owner`.

    The value of a successful result is the new `Group`.
    """

    name = (name or "").strip()
    if not name:
        return fail(ValidationError("name", "Group name is required."))

    try:
        invite_code = code_generator(store.groups)
    except Conflict as exc:
        return fail(exc)

    now = utc_now()
    group = Group(
        id=new_id(),
        name=name,
        description=(description or "").strip() or None,
        created_by=owner_id,
        created_at=now,
        invite_code=invite_code,
        members=[
            GroupMember(
                user_id=owner_id,
                user_name=(owner_name or "").strip() or owner_id,
                joined_at=now,
                role=MemberRole.OWNER,
            )
        ],
    )
    try:
        store.groups.add_group(group)
    except Conflict:
        # Lost a race for the invite code between the check and the insert.
        return fail(Conflict("Could not generate a unique invite code, please try again."))

    LOGGER.info("Group %s (%s) created by %s", group.id, group.name, owner_id)
    return ok(group)


def join_group(invite_code: str, user_id: str, user_name: str, store: PokerStore) -> OperationResult:
    code = (invite_code or "").strip()
    if not code:
        return fail(ValidationError("invite_code", "Invite code is required."))

    group = store.groups.get_group_by_invite_code(code)
    if group is None:
        return fail(NotFound("No group matches that invite code."))

    if is_member(group, user_id):
        return fail(AlreadyMember())

    member = GroupMember(
        user_id=user_id,
        user_name=(user_name or "").strip() or user_id,
        joined_at=utc_now(),
        role=MemberRole.MEMBER,
    )
    try:
        store.groups.add_member(group.id, member)
    except Conflict:
        return fail(AlreadyMember())

    group.members.append(member)
    LOGGER.info("User %s joined group %s", user_id, group.id)
    return ok(group)


def add_guest_member(
    group_id: str,
    guest_name: str,
    acting_user_id: str,
    store: PokerStore,
) -> OperationResult:
    """
    Add a guest (no resolvable identity) to the group's member list.

    A guest sharing a name with an existing member is still added, but the
    result carries a warning so the caller can flag a likely duplicate.
    """

    trimmed = (guest_name or "").strip()
    if not trimmed:
        return fail(ValidationError("guest_name", "Guest name is required."))

    try:
        group = _load_group(group_id, store)
    except NotFound as exc:
        return fail(exc)

    if not is_owner(group, acting_user_id):
        LOGGER.warning("User %s tried to add a guest to group %s", acting_user_id, group_id)
        return fail(Forbidden("Only the group owner can add guests."))

    warnings: List[str] = []
    if any(normalize_name(m.user_name) == normalize_name(trimmed) for m in group.members):
        warnings.append(f'A member named "{trimmed}" already exists in this group.')

    member = GroupMember(
        user_id=f"{GUEST_ID_PREFIX}{new_id()}",
        user_name=trimmed,
        joined_at=utc_now(),
        role=MemberRole.MEMBER,
    )
    store.groups.add_member(group_id, member)
    return ok(member, warnings=warnings)


def remove_group_member(
    group_id: str,
    user_id: str,
    acting_user_id: str,
    store: PokerStore,
) -> OperationResult:
    """Owner-only. Past sessions of the removed member are left untouched."""

    try:
        group = _load_group(group_id, store)
    except NotFound as exc:
        return fail(exc)

    if not is_owner(group, acting_user_id):
        LOGGER.warning("Unauthorized removal attempt by %s in group %s", acting_user_id, group_id)
        return fail(Forbidden("Only the group owner can remove members."))
    if is_owner(group, user_id):
        return fail(Forbidden("The group owner cannot be removed."))

    if not store.groups.remove_member(group_id, user_id):
        return fail(NotFound("Member not found."))
    return ok()


def _set_member_role(
    group_id: str,
    member_id: str,
    role: MemberRole,
    acting_user_id: str,
    store: PokerStore,
) -> OperationResult:
    try:
        group = _load_group(group_id, store)
    except NotFound as exc:
        return fail(exc)

    if not is_owner(group, acting_user_id):
        LOGGER.warning("Unauthorized role change by %s in group %s", acting_user_id, group_id)
        return fail(Forbidden("Only the group owner can change roles."))
    if is_owner(group, member_id):
        return fail(Forbidden("The owner's role cannot be changed."))

    if not store.groups.update_member_role(group_id, member_id, role):
        return fail(NotFound("Member not found."))
    return ok()


def promote_to_admin(group_id: str, member_id: str, acting_user_id: str, store: PokerStore) -> OperationResult:
    return _set_member_role(group_id, member_id, MemberRole.ADMIN, acting_user_id, store)


def demote_from_admin(group_id: str, member_id: str, acting_user_id: str, store: PokerStore) -> OperationResult:
    return _set_member_role(group_id, member_id, MemberRole.MEMBER, acting_user_id, store)


def rename_group(
    group_id: str,
    name: str,
    description: Optional[str],
    acting_user_id: str,
    store: PokerStore,
) -> OperationResult:
    name = (name or "").strip()
    if not name:
        return fail(ValidationError("name", "Group name is required."))

    try:
        group = _load_group(group_id, store)
    except NotFound as exc:
        return fail(exc)

    if not is_owner(group, acting_user_id):
        return fail(Forbidden("Only the group owner can rename the group."))

    store.groups.update_group(group_id, name, (description or "").strip() or None)
    return ok()


def delete_group(group_id: str, acting_user_id: str, store: PokerStore) -> OperationResult:
    """
    Delete a group with all of its games, sessions, claims and members.

    Irreversible. Asking the user to confirm is the caller's job. Dependents
    go first (sessions, games, members, then the group) in one transaction.
    """

    try:
        group = _load_group(group_id, store)
    except NotFound as exc:
        return fail(exc)

    if not is_owner(group, acting_user_id):
        LOGGER.warning("Unauthorized delete of group %s by %s", group_id, acting_user_id)
        return fail(Forbidden("Only the group owner can delete the group."))

    with store.transaction():
        games = store.games.list_games_for_group(group_id)
        for game in games:
            store.games.delete_sessions(game.id)
            store.payouts.delete_for_game(game.id)
        for game in games:
            store.games.delete_game(game.id)
        store.claims.delete_for_group(group_id)
        store.groups.delete_members(group_id)
        store.groups.delete_group(group_id)

    LOGGER.info("Group %s deleted by %s with %d games", group_id, acting_user_id, len(games))
    return ok()


def update_group_member_name(
    group_id: str,
    member_id: str,
    new_name: str,
    acting_user_id: str,
    store: PokerStore,
) -> OperationResult:
    """
    Rename a member. Members may rename themselves; owner/admin anyone.

    Only the membership changes: the leaderboard picks the new name up,
    the `player_name` stored on past sessions stays as it was.
    """

    trimmed = (new_name or "").strip()
    if not trimmed:
        return fail(ValidationError("user_name", "Name cannot be empty."))

    try:
        group = _load_group(group_id, store)
    except NotFound as exc:
        return fail(exc)

    if member_id != acting_user_id and not is_owner_or_admin(group, acting_user_id):
        return fail(Forbidden("You can only change your own name."))

    if not store.groups.update_member_name(group_id, member_id, trimmed):
        return fail(NotFound("Member not found."))
    return ok()


def update_user_name(user_id: str, new_name: str, store: PokerStore) -> OperationResult:
    """Rename the user in every group they belong to. Value: memberships touched."""

    trimmed = (new_name or "").strip()
    if not trimmed:
        return fail(ValidationError("user_name", "Name cannot be empty."))
    return ok(store.groups.update_user_name(user_id, trimmed))


def get_or_create_personal_group(user_id: str, user_name: str, store: PokerStore) -> OperationResult:
    group = store.groups.find_group_by_name(user_id, PERSONAL_GROUP_NAME)
    if group is None:
        return create_group(
            PERSONAL_GROUP_NAME,
            "Your personal poker sessions",
            user_id,
            user_name,
            store,
        )

    if group.find_member(user_id) is None:
        owner = GroupMember(
            user_id=user_id,
            user_name=(user_name or "").strip() or user_id,
            joined_at=utc_now(),
            role=MemberRole.OWNER,
        )
        store.groups.add_member(group.id, owner)
        group.members.append(owner)
    return ok(group)


def list_user_groups(user_id: str, store: PokerStore) -> List[Group]:
    """The user's groups: personal group first, the rest newest first."""

    groups = store.groups.list_groups_for_user(user_id)
    return sorted(
        groups,
        key=lambda g: not (g.created_by == user_id and g.name == PERSONAL_GROUP_NAME),
    )
