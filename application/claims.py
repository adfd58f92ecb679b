from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from domain.errors import Conflict, Forbidden, NotFound, ValidationError
from domain.models import (
    ClaimRequest,
    ClaimStatus,
    Game,
    GameSession,
    Group,
    GroupMember,
    MemberRole,
    SessionRole,
    new_id,
    normalize_name,
    utc_now,
)
from domain.repositories import PokerStore

from .authz import is_owner_or_admin
from .results import OperationResult, fail, ok

LOGGER = logging.getLogger(__name__)


def list_claimable_guests(group: Group, games: List[Game]) -> List[str]:
    """
    Distinct guest names known to the group, from guest memberships and
    guest sessions, in first-seen order.
    """

    names: Dict[str, str] = {}
    for member in group.members:
        if member.is_guest:
            names.setdefault(normalize_name(member.user_name), member.user_name)
    for game in games:
        for session in game.sessions:
            if session.is_guest:
                names.setdefault(normalize_name(session.player_name), session.player_name)
    return list(names.values())


def submit_claim_request(
    group_id: str,
    guest_name: str,
    requester_id: str,
    store: PokerStore,
    requester_email: Optional[str] = None,
) -> OperationResult:
    """
    Ask to be recognised as `guest_name` in the group.

    Resubmitting while a request for the same (group, guest, requester) is
    pending refreshes that request instead of adding another one.
    """

    trimmed = (guest_name or "").strip()
    if not trimmed:
        return fail(ValidationError("guest_name", "Guest name is required."))

    group = store.groups.get_group(group_id)
    if group is None:
        return fail(NotFound("Group not found."))

    games = store.games.list_games_for_group(group_id)
    known = {normalize_name(name) for name in list_claimable_guests(group, games)}
    if normalize_name(trimmed) not in known:
        return fail(NotFound(f'No guest named "{trimmed}" in this group.'))

    existing = store.claims.find(group_id, trimmed, requester_id)
    if existing is None:
        request = ClaimRequest(
            id=new_id(),
            group_id=group_id,
            guest_name=trimmed,
            requester_id=requester_id,
            requester_email=requester_email,
            status=ClaimStatus.PENDING,
            created_at=utc_now(),
        )
        try:
            store.claims.add(request)
        except Conflict as exc:
            # A concurrent submission inserted the same claim first; refresh it instead.
            existing = store.claims.find(group_id, trimmed, requester_id)
            if existing is None:
                return fail(exc)
        else:
            LOGGER.info("Claim %s for guest %r submitted in group %s", request.id, trimmed, group_id)
            return ok(request)

    if existing.status == ClaimStatus.APPROVED:
        return fail(Conflict("That claim was already approved."))
    existing.guest_name = trimmed
    existing.requester_email = requester_email or existing.requester_email
    existing.created_at = utc_now()
    store.claims.update(existing)
    return ok(existing)


def _load_request(request_id: str, approver_id: str, store: PokerStore) -> Tuple[ClaimRequest, Group]:
    request = store.claims.get(request_id)
    if request is None:
        raise NotFound("Claim request not found.")
    group = store.groups.get_group(request.group_id)
    if group is None:
        raise NotFound("Group not found.")
    if not is_owner_or_admin(group, approver_id):
        LOGGER.warning("Unauthorized claim decision by %s on %s", approver_id, request_id)
        raise Forbidden("Only the owner or an admin can decide claims.")
    return request, group


def _sessions_to_rewrite(
    games: List[Game],
    guest_name: str,
    requester_id: str,
) -> List[GameSession]:
    """
    Guest sessions named `guest_name` across the games.

    Raises `Conflict` when a game holds the guest twice under that name, or
    when a game already has a session for the requester.
    """

    targets: List[GameSession] = []
    for game in games:
        matched = [s for s in game.sessions if s.is_guest and s.matches_name(guest_name)]
        if not matched:
            continue
        if len(matched) > 1:
            raise Conflict(
                f'The game of {game.date} has {len(matched)} guest sessions named "{guest_name}"; '
                "merge or remove the duplicates before approving."
            )
        own = game.find_session(requester_id)
        if own is not None and own is not matched[0]:
            raise Conflict(
                f"The requester already has a session in the game of {game.date}; "
                "resolve it before approving."
            )
        targets.extend(matched)
    return targets


def approve_claim_request(request_id: str, approver_id: str, store: PokerStore) -> OperationResult:
    """
    Hand a guest's history over to the requester. Owner/admin only.

    In one transaction: the requester's membership is created or renamed to
    the guest name, every guest session with that name in the group is
    re-owned by the requester, the guest's synthetic memberships are
    dropped and the request is marked approved. Value: sessions rewritten.
    """

    try:
        request, group = _load_request(request_id, approver_id, store)
    except (NotFound, Forbidden) as exc:
        return fail(exc)
    if request.status == ClaimStatus.APPROVED:
        return fail(Conflict("That claim was already approved."))

    try:
        with store.transaction():
            games = store.games.list_games_for_group(group.id)
            targets = _sessions_to_rewrite(games, request.guest_name, request.requester_id)

            if group.find_member(request.requester_id) is None:
                store.groups.add_member(
                    group.id,
                    GroupMember(
                        user_id=request.requester_id,
                        user_name=request.guest_name,
                        joined_at=utc_now(),
                        role=MemberRole.MEMBER,
                    ),
                )
            else:
                store.groups.update_member_name(group.id, request.requester_id, request.guest_name)

            for session in targets:
                session.user_id = request.requester_id
                session.role = SessionRole.MEMBER
                store.games.update_session(session)

            store.groups.remove_guest_members_named(group.id, request.guest_name)

            request.status = ClaimStatus.APPROVED
            store.claims.update(request)
    except Conflict as exc:
        request.status = ClaimStatus.PENDING
        return fail(exc)

    LOGGER.info(
        "Claim %s approved by %s: %d sessions of %r now belong to %s",
        request_id,
        approver_id,
        len(targets),
        request.guest_name,
        request.requester_id,
    )
    return ok(len(targets))


def deny_claim_request(request_id: str, approver_id: str, store: PokerStore) -> OperationResult:
    """
    Owner/admin only. A pending request is deleted; no denied state is kept.

    Approved requests cannot be denied: their sessions already moved.
    """

    try:
        request, _ = _load_request(request_id, approver_id, store)
    except (NotFound, Forbidden) as exc:
        return fail(exc)
    if request.status == ClaimStatus.APPROVED:
        return fail(Conflict("That claim was already approved."))

    store.claims.delete(request.id)
    LOGGER.info("Claim %s denied by %s", request_id, approver_id)
    return ok()


def list_claim_requests(group_id: str, viewer_id: str, store: PokerStore) -> List[ClaimRequest]:
    """Owner/admins see every request of the group, anyone else only their own."""

    group = store.groups.get_group(group_id)
    if group is None:
        return []
    requests = store.claims.list_for_group(group_id)
    if is_owner_or_admin(group, viewer_id):
        return requests
    return [r for r in requests if r.requester_id == viewer_id]
