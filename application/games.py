from __future__ import annotations

import logging
from datetime import date as date_cls
from typing import Dict, FrozenSet, List, Optional, Tuple

from domain.errors import Conflict, Forbidden, GameNotOpen, NotFound, PokerError, ValidationError
from domain.models import (
    Game,
    GameSession,
    GameStatus,
    Group,
    SessionRole,
    compute_profit,
    new_id,
    utc_now,
)
from domain.repositories import IdentityResolver, PokerStore

from .authz import is_owner_or_admin
from .identity import resolve_display_name
from .results import OperationResult, fail, ok

LOGGER = logging.getLogger(__name__)

# open <-> in-progress -> completed <-> open, plus closing straight from open.
ALLOWED_TRANSITIONS: Dict[GameStatus, FrozenSet[GameStatus]] = {
    GameStatus.OPEN: frozenset({GameStatus.IN_PROGRESS, GameStatus.COMPLETED}),
    GameStatus.IN_PROGRESS: frozenset({GameStatus.OPEN, GameStatus.COMPLETED}),
    GameStatus.COMPLETED: frozenset({GameStatus.OPEN}),
}


def _load_game(game_id: str, store: PokerStore) -> Tuple[Game, Group]:
    game = store.games.get_game(game_id)
    if game is None:
        raise NotFound("Game not found.")
    group = store.groups.get_group(game.group_id)
    if group is None:
        raise NotFound("Group not found.")
    return game, group


def _check_can_edit_sessions(
    game: Game,
    group: Group,
    acting_user_id: str,
    target_user_id: Optional[str],
) -> None:
    """
    Raise unless `acting_user_id` may change sessions of `game` right now.

    Open games: players edit their own session, the owner/admins and the
    host edit anyone's. In-progress games: owner/admins only, to correct
    buy-ins and cash-outs. Completed games: nobody.
    """

    privileged = is_owner_or_admin(group, acting_user_id)
    if game.status == GameStatus.COMPLETED:
        raise GameNotOpen("Game is closed. Reopen it before changing sessions.")
    if game.status == GameStatus.IN_PROGRESS:
        if not privileged:
            raise GameNotOpen("Game is in progress. Only the owner or an admin can change sessions.")
        return
    if privileged or game.created_by == acting_user_id:
        return
    if target_user_id is None or target_user_id != acting_user_id:
        raise Forbidden("You can only change your own session.")


def _validate_amount(field: str, amount: float) -> float:
    try:
        value = float(amount)
    except (TypeError, ValueError):
        raise ValidationError(field, f"{field} must be a number.") from None
    if value < 0:
        raise ValidationError(field, f"{field} cannot be negative.")
    return value


def create_game(
    group_id: str,
    game_date: Optional[str],
    notes: Optional[str],
    acting_user_id: str,
    acting_user_name: str,
    store: PokerStore,
) -> OperationResult:
    """
    Schedule an `open` game in the group. Owner/admin only.

    The host is seated as the first session with zero amounts.
    """

    if game_date:
        try:
            day = date_cls.fromisoformat(game_date.strip())
        except ValueError:
            return fail(ValidationError("date", "Date must look like YYYY-MM-DD."))
    else:
        day = date_cls.today()

    group = store.groups.get_group(group_id)
    if group is None:
        return fail(NotFound("Group not found."))
    if not is_owner_or_admin(group, acting_user_id):
        LOGGER.warning("User %s tried to create a game in group %s", acting_user_id, group_id)
        return fail(Forbidden("Only owners and admins can create games."))

    game = Game(
        id=new_id(),
        group_id=group_id,
        date=day.isoformat(),
        notes=(notes or "").strip() or None,
        created_by=acting_user_id,
        created_at=utc_now(),
        status=GameStatus.OPEN,
        sessions=[
            GameSession(
                player_name=(acting_user_name or "").strip() or acting_user_id,
                user_id=acting_user_id,
                role=SessionRole.HOST,
            )
        ],
    )
    store.games.add_game(game)
    LOGGER.info("Game %s created in group %s", game.id, group_id)
    return ok(game)


def set_game_status(
    game_id: str,
    status: GameStatus,
    acting_user_id: str,
    store: PokerStore,
) -> OperationResult:
    """
    Move a game through its lifecycle. Owner/admin only.

    Reopening a completed game also clears every payout confirmation for
    it, in the same transaction, since the amounts may change.
    """

    try:
        game, group = _load_game(game_id, store)
    except NotFound as exc:
        return fail(exc)

    if not is_owner_or_admin(group, acting_user_id):
        LOGGER.warning("User %s tried to change status of game %s", acting_user_id, game_id)
        return fail(Forbidden("Only the owner or an admin can change the game status."))

    try:
        status = GameStatus(status)
    except ValueError:
        return fail(ValidationError("status", f"Unknown game status {status!r}."))
    if status == game.status:
        return ok(game)
    if status not in ALLOWED_TRANSITIONS[game.status]:
        return fail(
            ValidationError("status", f"A {game.status.value} game cannot become {status.value}.")
        )

    previous = game.status
    with store.transaction():
        store.games.update_status(game_id, status)
        if previous == GameStatus.COMPLETED and status == GameStatus.OPEN:
            reset = store.payouts.reset_confirmations(game_id)
            LOGGER.info("Game %s reopened, %d payout confirmations reset", game_id, reset)

    game.status = status
    return ok(game)


def start_game(game_id: str, acting_user_id: str, store: PokerStore) -> OperationResult:
    return set_game_status(game_id, GameStatus.IN_PROGRESS, acting_user_id, store)


def close_game(game_id: str, acting_user_id: str, store: PokerStore) -> OperationResult:
    return set_game_status(game_id, GameStatus.COMPLETED, acting_user_id, store)


def reopen_game(game_id: str, acting_user_id: str, store: PokerStore) -> OperationResult:
    return set_game_status(game_id, GameStatus.OPEN, acting_user_id, store)


def update_game_session(
    game_id: str,
    user_id: Optional[str],
    player_name: str,
    buy_in: float,
    end_amount: float,
    acting_user_id: str,
    store: PokerStore,
    role: Optional[SessionRole] = None,
) -> OperationResult:
    """
    Insert or update one participant's buy-in and cash-out.

    Sessions are matched by `user_id` when given, otherwise by
    case-insensitive `player_name` among sessions without a user id, so
    repeating a call never creates a second session for the same player.
    """

    player_name = (player_name or "").strip()
    try:
        if not player_name:
            raise ValidationError("player_name", "Player name is required.")
        buy_in = _validate_amount("buy_in", buy_in)
        end_amount = _validate_amount("end_amount", end_amount)
        role = SessionRole(role) if role is not None else None
        game, group = _load_game(game_id, store)
        _check_can_edit_sessions(game, group, acting_user_id, user_id)
    except ValueError:
        return fail(ValidationError("role", "Unknown session role."))
    except PokerError as exc:
        LOGGER.warning("Session update on game %s rejected: %s", game_id, exc)
        return fail(exc)

    existing = game.find_session(user_id) if user_id else game.find_named_session(player_name)
    if existing is None:
        session = GameSession(
            player_name=player_name,
            buy_in=buy_in,
            end_amount=end_amount,
            user_id=user_id,
            role=role or (SessionRole.MEMBER if user_id else SessionRole.GUEST),
        )
        try:
            store.games.add_session(game_id, session)
            return ok(session)
        except Conflict:
            # A concurrent call inserted the same identity first; update it instead.
            game = store.games.get_game(game_id)
            existing = game.find_session(user_id) if user_id else game.find_named_session(player_name)
            if existing is None:
                raise

    existing.player_name = player_name
    existing.buy_in = buy_in
    existing.end_amount = end_amount
    existing.profit = compute_profit(buy_in, end_amount)
    if role is not None:
        existing.role = role
    store.games.update_session(existing)
    return ok(existing)


def remove_game_session(game_id: str, user_id: str, store: PokerStore) -> OperationResult:
    """Leave a game: remove the caller's own session. Open games only."""

    game = store.games.get_game(game_id)
    if game is None:
        return fail(NotFound("Game not found."))
    if not game.is_open:
        return fail(GameNotOpen())

    session = game.find_session(user_id)
    if session is None:
        return fail(NotFound("You are not in this game."))
    store.games.delete_session(session.id)
    return ok()


def quick_join_game(
    game_id: str,
    user_id: str,
    resolver: IdentityResolver,
    store: PokerStore,
) -> OperationResult:
    """
    Seat the caller with a zero buy-in and cash-out. Open games only.

    Joining twice is harmless: the existing session is returned.
    """

    game = store.games.get_game(game_id)
    if game is None:
        return fail(NotFound("Game not found."))
    if not game.is_open:
        return fail(GameNotOpen())

    existing = game.find_session(user_id)
    if existing is not None:
        return ok(existing)

    session = GameSession(
        player_name=resolve_display_name(resolver, user_id),
        user_id=user_id,
        role=SessionRole.MEMBER,
    )
    try:
        store.games.add_session(game_id, session)
    except Conflict:
        game = store.games.get_game(game_id)
        session = game.find_session(user_id)
        if session is None:
            raise
    return ok(session)


def quick_leave_game(game_id: str, user_id: str, store: PokerStore) -> OperationResult:
    return remove_game_session(game_id, user_id, store)


def remove_game_participant(
    game_id: str,
    participant_user_id: str,
    acting_user_id: str,
    store: PokerStore,
) -> OperationResult:
    """Remove someone else's session. Owner/admin, or the game's host."""

    try:
        game, group = _load_game(game_id, store)
        if not is_owner_or_admin(group, acting_user_id) and game.created_by != acting_user_id:
            raise Forbidden("Only the owner, an admin or the host can remove players.")
        _check_can_edit_sessions(game, group, acting_user_id, participant_user_id)
    except PokerError as exc:
        LOGGER.warning("Participant removal on game %s rejected: %s", game_id, exc)
        return fail(exc)

    session = game.find_session(participant_user_id)
    if session is None:
        return fail(NotFound("That player is not in this game."))
    store.games.delete_session(session.id)
    return ok()


def remove_guest_from_group_sessions(
    group_id: str,
    guest_name: str,
    acting_user_id: str,
    store: PokerStore,
) -> OperationResult:
    """
    Delete a guest's sessions from every game of the group that is not completed.

    Value: number of sessions removed.
    """

    group = store.groups.get_group(group_id)
    if group is None:
        return fail(NotFound("Group not found."))
    if not is_owner_or_admin(group, acting_user_id):
        return fail(Forbidden("Only the owner or an admin can remove guests from games."))

    removed = 0
    with store.transaction():
        for game in store.games.list_games_for_group(group_id):
            if game.is_completed:
                continue
            for session in game.sessions:
                if session.is_guest and session.matches_name(guest_name):
                    store.games.delete_session(session.id)
                    removed += 1
    return ok(removed)


def delete_game(game_id: str, acting_user_id: str, store: PokerStore) -> OperationResult:
    try:
        game, group = _load_game(game_id, store)
    except NotFound as exc:
        return fail(exc)
    if not is_owner_or_admin(group, acting_user_id):
        return fail(Forbidden("Only the owner or an admin can delete games."))

    with store.transaction():
        store.games.delete_sessions(game_id)
        store.payouts.delete_for_game(game_id)
        store.games.delete_game(game_id)
    LOGGER.info("Game %s deleted by %s", game_id, acting_user_id)
    return ok()


def list_user_games(user_id: str, store: PokerStore) -> List[Game]:
    """Games from every group the user belongs to or created, newest first."""

    group_ids = [g.id for g in store.groups.list_groups_for_user(user_id)]
    return store.games.list_games_for_groups(group_ids)
