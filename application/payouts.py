from __future__ import annotations

import logging
from typing import Optional

from domain.errors import Forbidden, NotFound, ValidationError
from domain.models import PayoutAck, utc_now
from domain.repositories import PokerStore

from .authz import is_owner_or_admin
from .results import OperationResult, fail, ok

LOGGER = logging.getLogger(__name__)


def record_payout(
    game_id: str,
    user_id: str,
    confirmed: bool,
    store: PokerStore,
    method: Optional[str] = None,
    handle: Optional[str] = None,
    completed_at: Optional[str] = None,
) -> OperationResult:
    """
    Note that the player settled up for a closed game.

    Players who lost money must say how they paid (`method`) and to whom
    (`handle`) before confirming; winners and break-even players need
    neither. Nothing here is checked against a payment rail.
    """

    game = store.games.get_game(game_id)
    if game is None:
        return fail(NotFound("Game not found."))
    session = game.find_session(user_id)
    if session is None:
        return fail(NotFound("You have no session in this game."))

    method = (method or "").strip() or None
    handle = (handle or "").strip() or None
    if confirmed:
        if not game.is_completed:
            return fail(Forbidden("Payouts can only be confirmed once the game is closed."))
        if session.lost_money:
            if method is None:
                return fail(ValidationError("method", "Say how you paid before confirming."))
            if handle is None:
                return fail(ValidationError("handle", "Say who you paid before confirming."))

    ack = PayoutAck(
        game_id=game_id,
        user_id=user_id,
        completed_at=completed_at or utc_now(),
        confirmed=bool(confirmed),
        method=method,
        handle=handle,
    )
    store.payouts.save(ack)
    LOGGER.info("Payout for %s in game %s recorded (confirmed=%s)", user_id, game_id, ack.confirmed)
    return ok(ack)


def get_payout_ack(game_id: str, user_id: str, viewer_id: str, store: PokerStore) -> OperationResult:
    """The acknowledgement is visible to its player and to the group's owner/admins."""

    game = store.games.get_game(game_id)
    if game is None:
        return fail(NotFound("Game not found."))

    if viewer_id != user_id:
        group = store.groups.get_group(game.group_id)
        if group is None or not is_owner_or_admin(group, viewer_id):
            return fail(Forbidden("You cannot see this payout."))

    return ok(store.payouts.get(game_id, user_id))
