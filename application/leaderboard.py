from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import Dict, Iterable, List, Optional

from domain.models import Game, GameSession, Group, GroupMember, PlayerStats, normalize_name
from domain.repositories import PokerStore


class SortKey(str, Enum):
    PROFIT = "profit"
    BUY_INS = "buy_ins"
    SESSIONS = "sessions"


_SORT_FIELDS = {
    SortKey.PROFIT: lambda stats: stats.total_profit,
    SortKey.BUY_INS: lambda stats: stats.total_buy_ins,
    SortKey.SESSIONS: lambda stats: stats.games_played,
}


@dataclass
class OverallStats:
    total_games: int = 0
    total_buy_ins: float = 0.0
    total_end_amounts: float = 0.0
    total_profit: float = 0.0
    avg_profit_per_game: float = 0.0


@dataclass
class RunningTotalPoint:
    date: date
    total: float


def _member_names(members: Optional[Iterable[GroupMember]]) -> Dict[str, str]:
    return {m.user_id: m.user_name for m in members or ()}


def _game_day(game: Game) -> date:
    return date.fromisoformat(game.date[:10])


def sort_leaderboard(rows: List[PlayerStats], sort_by: SortKey = SortKey.PROFIT) -> List[PlayerStats]:
    """Descending by the chosen key; ties keep their incoming order."""

    return sorted(rows, key=_SORT_FIELDS[SortKey(sort_by)], reverse=True)


def build_leaderboard(
    games: Iterable[Game],
    members: Optional[Iterable[GroupMember]] = None,
    user_id: Optional[str] = None,
    sort_by: SortKey = SortKey.PROFIT,
) -> List[PlayerStats]:
    """
    Aggregate sessions into one row per real participant.

    Sessions carrying a user id are keyed by it; the others by their
    trimmed, lower-cased player name. The row's name comes from the current
    membership when there is one, so renames show up retroactively, and
    falls back to the player name stored on the first session seen.

    `win_rate` is 1 when the aggregate profit is positive and 0 otherwise,
    not a per-session ratio.
    """

    names = _member_names(members)
    rows: "OrderedDict[str, PlayerStats]" = OrderedDict()

    for game in games:
        for session in game.sessions:
            if user_id and session.user_id != user_id:
                continue
            key = session.identity_key
            stats = rows.get(key)
            if stats is None:
                stats = PlayerStats(
                    name=display_name(session, names),
                    user_id=session.user_id,
                    is_guest=session.is_guest,
                )
                rows[key] = stats
            stats.total_profit += session.profit
            stats.total_buy_ins += session.buy_in
            stats.total_end_amounts += session.end_amount
            stats.games_played += 1

    for stats in rows.values():
        stats.total_profit = round(stats.total_profit, 2)
        stats.total_buy_ins = round(stats.total_buy_ins, 2)
        stats.total_end_amounts = round(stats.total_end_amounts, 2)
        stats.win_rate = 1 if stats.total_profit > 0 else 0

    return sort_leaderboard(list(rows.values()), sort_by)


def display_name(session: GameSession, member_names: Dict[str, str]) -> str:
    """Name to show for a session. The stored `player_name` is never changed."""

    if session.user_id and session.user_id in member_names:
        return member_names[session.user_id]
    return session.player_name or "Unknown"


def single_game_leaderboard(
    game: Game,
    members: Optional[Iterable[GroupMember]] = None,
) -> List[PlayerStats]:
    names = _member_names(members)
    rows = [
        PlayerStats(
            name=display_name(session, names),
            user_id=session.user_id,
            is_guest=session.is_guest,
            total_profit=session.profit,
            games_played=1,
            total_buy_ins=session.buy_in,
            total_end_amounts=session.end_amount,
            win_rate=1 if session.profit > 0 else 0,
        )
        for session in game.sessions
    ]
    return sort_leaderboard(rows)


def group_leaderboard(
    group_id: str,
    store: PokerStore,
    sort_by: SortKey = SortKey.PROFIT,
) -> List[PlayerStats]:
    group = store.groups.get_group(group_id)
    if group is None:
        return []
    games = store.games.list_games_for_group(group_id)
    return build_leaderboard(games, group.members, sort_by=sort_by)


def user_games(games: Iterable[Game], user_id: str) -> List[Game]:
    """Games the user played, each trimmed to the user's own session."""

    result = []
    for game in games:
        sessions = [s for s in game.sessions if s.user_id == user_id]
        if sessions:
            result.append(replace(game, sessions=sessions))
    return result


def guest_games(games: Iterable[Game], guest_name: str) -> List[Game]:
    """Games a guest played, each trimmed to that guest's sessions."""

    result = []
    for game in games:
        sessions = [s for s in game.sessions if s.is_guest and s.matches_name(guest_name)]
        if sessions:
            result.append(replace(game, sessions=sessions))
    return result


def find_guest_user_id(group: Group, games: Iterable[Game], guest_name: str) -> Optional[str]:
    """Synthetic id of a guest, from the member list first, then from sessions."""

    wanted = normalize_name(guest_name)
    for member in group.members:
        if member.is_guest and normalize_name(member.user_name) == wanted:
            return member.user_id
    for game in games:
        for session in game.sessions:
            if session.is_guest and session.user_id and session.matches_name(guest_name):
                return session.user_id
    return None


def overall_stats(games: Iterable[Game], user_id: Optional[str] = None) -> OverallStats:
    games = user_games(games, user_id) if user_id else list(games)
    stats = OverallStats(total_games=len(games))
    for game in games:
        for session in game.sessions:
            stats.total_buy_ins += session.buy_in
            stats.total_end_amounts += session.end_amount

    stats.total_buy_ins = round(stats.total_buy_ins, 2)
    stats.total_end_amounts = round(stats.total_end_amounts, 2)
    stats.total_profit = round(stats.total_end_amounts - stats.total_buy_ins, 2)
    if stats.total_games:
        stats.avg_profit_per_game = round(stats.total_profit / stats.total_games, 2)
    return stats


def running_totals(
    games: Iterable[Game],
    user_id: Optional[str] = None,
    cumulative: bool = False,
) -> List[RunningTotalPoint]:
    """
    Profit over time.

    Cumulative: one point per session, carrying the running sum. Otherwise
    one point per game date with that day's net profit.
    """

    entries = sorted(
        (
            (_game_day(game), session.profit)
            for game in games
            for session in game.sessions
            if not user_id or session.user_id == user_id
        ),
        key=lambda entry: entry[0],
    )

    if cumulative:
        points = []
        total = 0.0
        for day, profit in entries:
            total += profit
            points.append(RunningTotalPoint(date=day, total=round(total, 2)))
        return points

    by_day: "OrderedDict[date, float]" = OrderedDict()
    for day, profit in entries:
        by_day[day] = by_day.get(day, 0.0) + profit
    return [RunningTotalPoint(date=day, total=round(total, 2)) for day, total in by_day.items()]
