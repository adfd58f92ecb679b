from __future__ import annotations

import functools
import logging
from typing import List

import telebot
from telebot.types import InlineKeyboardButton, InlineKeyboardMarkup

from application.authz import is_owner_or_admin
from application.claims import (
    approve_claim_request,
    deny_claim_request,
    list_claim_requests,
    submit_claim_request,
)
from application.games import (
    close_game,
    create_game,
    list_user_games,
    quick_join_game,
    quick_leave_game,
    reopen_game,
    update_game_session,
)
from application.groups import (
    add_guest_member,
    create_group,
    join_group,
    list_user_groups,
    update_user_name,
)
from application.identity import resolve_display_names
from application.leaderboard import group_leaderboard, overall_stats, user_games
from application.payouts import record_payout
from application.results import OperationResult
from domain.errors import StorageFailure
from domain.models import Game, PlayerStats, UserProfile
from infrastructure.db.store import SqlPokerStore
from interfaces.telegram.callback_data import (
    encode_claim_decision,
    encode_game_action,
    parse_claim_decision,
    parse_game_action,
)

LOGGER = logging.getLogger(__name__)

HELP_TEXT = (
    "/newgroup <name>                 - create a group\n"
    "/join <invite code>              - join a group\n"
    "/groups                          - list your groups\n"
    "/newgame <group id> [YYYY-MM-DD] - schedule a game\n"
    "/in <game id>, /out <game id>    - join or leave an open game\n"
    "/set <game id> <buy-in> <cash-out> - record your session\n"
    "/close <game id>, /reopen <game id>\n"
    "/board <group id>                - leaderboard\n"
    "/claim <group id> <guest name>   - claim a guest's history\n"
    "/claims <group id>               - pending claims\n"
    "/guest <group id> <name>         - add a guest to a group\n"
    "/paid <game id> [method handle]  - confirm you settled up\n"
    "/stats                           - your totals\n"
    "/rename <name>                   - change your name in every group\n"
)


def _caller(message) -> UserProfile:
    """Build a provider-agnostic profile from the Telegram sender."""

    user = message.from_user
    full_name = " ".join(part for part in (user.first_name, user.last_name) if part)
    return UserProfile(id=str(user.id), display_name=full_name or user.username or str(user.id))


def _args(message) -> List[str]:
    return (message.text or "").split()[1:]


def format_leaderboard(rows: List[PlayerStats]) -> str:
    if not rows:
        return "No games recorded yet."
    lines = []
    for rank, row in enumerate(rows, start=1):
        sign = "+" if row.total_profit >= 0 else "-"
        lines.append(
            f"#{rank} {row.name}: {sign}{abs(row.total_profit):.2f} "
            f"({row.games_played} games, buy-ins {row.total_buy_ins:.2f})"
        )
    return "\n".join(lines)


def format_game(game: Game) -> str:
    lines = [f"Game {game.id} on {game.date} [{game.status.value}]"]
    for session in game.sessions:
        lines.append(
            f"  {session.player_name}: in {session.buy_in:.2f}, out {session.end_amount:.2f}, "
            f"{session.profit:+.2f}"
        )
    return "\n".join(lines)


def create_telegram_bot(bot_token: str, store: SqlPokerStore) -> telebot.TeleBot:
    """
    Configure and return a TeleBot instance wired to the application layer.

    This module only parses Telegram messages and renders results; every
    rule lives in the application functions it calls.
    """

    bot = telebot.TeleBot(bot_token)

    def register(message) -> UserProfile:
        profile = _caller(message)
        store.users.register_user(profile)
        return profile

    def reply(chat_id, result: OperationResult, success_text: str) -> None:
        if not result.success:
            bot.send_message(chat_id, result.error_message)
            return
        for warning in result.warnings:
            bot.send_message(chat_id, f"Warning: {warning}")
        bot.send_message(chat_id, success_text)

    def guarded(handler):
        @functools.wraps(handler)
        def wrapper(message):
            try:
                handler(message)
            except StorageFailure as exc:
                LOGGER.error("Storage failure in %s: %s", handler.__name__, exc)
                bot.send_message(message.chat.id, exc.message)

        return wrapper

    @bot.message_handler(commands=["start", "help"])
    def handle_help(message):
        bot.send_message(message.chat.id, "Track your home poker games.\n\n" + HELP_TEXT)

    @bot.message_handler(commands=["newgroup"])
    @guarded
    def handle_new_group(message):
        caller = register(message)
        name = " ".join(_args(message))
        result = create_group(name, None, caller.id, caller.display_name, store)
        text = ""
        if result.success:
            text = f"Group {result.value.name} created. Invite code: {result.value.invite_code}"
        reply(message.chat.id, result, text)

    @bot.message_handler(commands=["join"])
    @guarded
    def handle_join(message):
        caller = register(message)
        args = _args(message)
        result = join_group(args[0] if args else "", caller.id, caller.display_name, store)
        text = f"Welcome to {result.value.name}!" if result.success else ""
        reply(message.chat.id, result, text)

    @bot.message_handler(commands=["groups"])
    @guarded
    def handle_groups(message):
        caller = register(message)
        groups = list_user_groups(caller.id, store)
        if not groups:
            bot.send_message(message.chat.id, "You are not in any group yet.")
            return
        lines = [f"{g.name} (id {g.id}, code {g.invite_code}, {len(g.members)} members)" for g in groups]
        bot.send_message(message.chat.id, "\n".join(lines))

    @bot.message_handler(commands=["newgame"])
    @guarded
    def handle_new_game(message):
        caller = register(message)
        args = _args(message)
        if not args:
            bot.send_message(message.chat.id, "Usage: /newgame <group id> [YYYY-MM-DD]")
            return
        result = create_game(
            args[0], args[1] if len(args) > 1 else None, None, caller.id, caller.display_name, store
        )
        if not result.success:
            bot.send_message(message.chat.id, result.error_message)
            return
        markup = InlineKeyboardMarkup(row_width=2)
        markup.add(
            InlineKeyboardButton("I'm in", callback_data=encode_game_action("in", result.value.id)),
            InlineKeyboardButton("I'm out", callback_data=encode_game_action("out", result.value.id)),
        )
        bot.send_message(message.chat.id, format_game(result.value), reply_markup=markup)

    @bot.message_handler(commands=["in", "out"])
    @guarded
    def handle_quick_join(message):
        caller = register(message)
        args = _args(message)
        if not args:
            bot.send_message(message.chat.id, "Please give a game id.")
            return
        if message.text.startswith("/in"):
            result = quick_join_game(args[0], caller.id, store.users, store)
            reply(message.chat.id, result, "You're in.")
        else:
            result = quick_leave_game(args[0], caller.id, store)
            reply(message.chat.id, result, "You left the game.")

    @bot.message_handler(commands=["set"])
    @guarded
    def handle_set(message):
        caller = register(message)
        args = _args(message)
        if len(args) != 3:
            bot.send_message(message.chat.id, "Usage: /set <game id> <buy-in> <cash-out>")
            return
        try:
            buy_in, end_amount = float(args[1]), float(args[2])
        except ValueError:
            bot.send_message(message.chat.id, "Amounts must be numbers.")
            return
        result = update_game_session(
            args[0], caller.id, caller.display_name, buy_in, end_amount, caller.id, store
        )
        text = f"Saved: profit {result.value.profit:+.2f}" if result.success else ""
        reply(message.chat.id, result, text)

    @bot.message_handler(commands=["close", "reopen"])
    @guarded
    def handle_status(message):
        caller = register(message)
        args = _args(message)
        if not args:
            bot.send_message(message.chat.id, "Please give a game id.")
            return
        if message.text.startswith("/close"):
            reply(message.chat.id, close_game(args[0], caller.id, store), "Game closed.")
        else:
            reply(
                message.chat.id,
                reopen_game(args[0], caller.id, store),
                "Game reopened. Payout confirmations were reset.",
            )

    @bot.message_handler(commands=["board"])
    @guarded
    def handle_board(message):
        register(message)
        args = _args(message)
        if not args:
            bot.send_message(message.chat.id, "Please give a group id.")
            return
        bot.send_message(message.chat.id, format_leaderboard(group_leaderboard(args[0], store)))

    @bot.message_handler(commands=["claim"])
    @guarded
    def handle_claim(message):
        caller = register(message)
        args = _args(message)
        if len(args) < 2:
            bot.send_message(message.chat.id, "Usage: /claim <group id> <guest name>")
            return
        result = submit_claim_request(args[0], " ".join(args[1:]), caller.id, store)
        if not result.success:
            bot.send_message(message.chat.id, result.error_message)
            return

        request = result.value
        group = store.groups.get_group(request.group_id)
        deciders = [
            m.user_id for m in group.members if not m.is_guest and is_owner_or_admin(group, m.user_id)
        ]
        markup = InlineKeyboardMarkup(row_width=2)
        markup.add(
            InlineKeyboardButton("approve", callback_data=encode_claim_decision(request.id, True)),
            InlineKeyboardButton("deny", callback_data=encode_claim_decision(request.id, False)),
        )
        for decider in deciders:
            bot.send_message(
                decider,
                f"{caller.display_name} says they are {request.guest_name} in {group.name}.",
                reply_markup=markup,
            )
        bot.send_message(message.chat.id, "Claim sent to the group owner.")

    @bot.message_handler(commands=["claims"])
    @guarded
    def handle_claims(message):
        caller = register(message)
        args = _args(message)
        if not args:
            bot.send_message(message.chat.id, "Please give a group id.")
            return
        requests = list_claim_requests(args[0], caller.id, store)
        if not requests:
            bot.send_message(message.chat.id, "No claim requests.")
            return
        names = resolve_display_names(store.users, [r.requester_id for r in requests])
        lines = [
            f"{r.guest_name} <- {names[r.requester_id]} [{r.status.value}] (id {r.id})" for r in requests
        ]
        bot.send_message(message.chat.id, "\n".join(lines))

    @bot.message_handler(commands=["guest"])
    @guarded
    def handle_guest(message):
        caller = register(message)
        args = _args(message)
        if len(args) < 2:
            bot.send_message(message.chat.id, "Usage: /guest <group id> <name>")
            return
        result = add_guest_member(args[0], " ".join(args[1:]), caller.id, store)
        text = f"Guest {result.value.user_name} added." if result.success else ""
        reply(message.chat.id, result, text)

    @bot.message_handler(commands=["paid"])
    @guarded
    def handle_paid(message):
        caller = register(message)
        args = _args(message)
        if not args:
            bot.send_message(message.chat.id, "Usage: /paid <game id> [method handle]")
            return
        method = args[1] if len(args) > 1 else None
        handle = " ".join(args[2:]) or None
        result = record_payout(args[0], caller.id, True, store, method=method, handle=handle)
        reply(message.chat.id, result, "Payout confirmed.")

    @bot.message_handler(commands=["stats"])
    @guarded
    def handle_stats(message):
        caller = register(message)
        games = user_games(list_user_games(caller.id, store), caller.id)
        stats = overall_stats(games)
        bot.send_message(
            message.chat.id,
            f"{stats.total_games} games, buy-ins {stats.total_buy_ins:.2f}, "
            f"cash-outs {stats.total_end_amounts:.2f}, profit {stats.total_profit:+.2f} "
            f"({stats.avg_profit_per_game:+.2f} per game)",
        )

    @bot.message_handler(commands=["rename"])
    @guarded
    def handle_rename(message):
        caller = register(message)
        result = update_user_name(caller.id, " ".join(_args(message)), store)
        text = f"Renamed in {result.value} groups." if result.success else ""
        reply(message.chat.id, result, text)

    @bot.callback_query_handler(func=lambda call: call.data.startswith("claim:"))
    def handle_claim_decision(call):
        try:
            approved, request_id = parse_claim_decision(call.data)
        except ValueError:
            bot.answer_callback_query(call.id, "Invalid selection.")
            return

        acting_id = str(call.from_user.id)
        try:
            if approved:
                result = approve_claim_request(request_id, acting_id, store)
                text = f"Claim approved, {result.value} sessions moved." if result.success else ""
            else:
                result = deny_claim_request(request_id, acting_id, store)
                text = "Claim denied."
        except StorageFailure as exc:
            LOGGER.error("Storage failure deciding claim %s: %s", request_id, exc)
            bot.answer_callback_query(call.id, exc.message)
            return

        if result.success:
            bot.delete_message(call.message.chat.id, call.message.id)
        reply(call.message.chat.id, result, text)

    @bot.callback_query_handler(func=lambda call: call.data.startswith("game:"))
    def handle_game_action(call):
        try:
            action, game_id = parse_game_action(call.data)
        except ValueError:
            bot.answer_callback_query(call.id, "Invalid selection.")
            return

        caller = _caller(call)
        store.users.register_user(caller)
        try:
            if action == "in":
                result = quick_join_game(game_id, caller.id, store.users, store)
            else:
                result = quick_leave_game(game_id, caller.id, store)
        except StorageFailure as exc:
            LOGGER.error("Storage failure on game action %s: %s", call.data, exc)
            bot.answer_callback_query(call.id, exc.message)
            return

        bot.answer_callback_query(
            call.id, result.error_message if not result.success else f"{caller.display_name}: {action}"
        )

    return bot
