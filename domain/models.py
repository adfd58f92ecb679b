from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Union

# Synthetic ids handed to guest members start with this marker. They are
# never resolvable by the identity provider.
GUEST_ID_PREFIX = "guest-"

PERSONAL_GROUP_NAME = "Personal Games"


class MemberRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class GameStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class SessionRole(str, Enum):
    GUEST = "guest"
    MEMBER = "member"
    HOST = "host"
    ADMIN = "admin"
    BANK = "bank"


class ClaimStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"


@dataclass
class UserProfile:
    """What the identity provider knows about a registered user."""

    id: str
    display_name: str
    email: Optional[str] = None


@dataclass
class GroupMember:
    user_id: str
    user_name: str
    joined_at: str
    role: MemberRole = MemberRole.MEMBER

    @property
    def is_guest(self) -> bool:
        return self.user_id.startswith(GUEST_ID_PREFIX)


@dataclass
class Group:
    """
    A circle of players sharing games, an invite code and a leaderboard.

    Exactly one member holds the `owner` role and that member is always
    the creator of the group.
    """

    id: str
    name: str
    created_by: str
    created_at: str
    invite_code: str
    description: Optional[str] = None
    members: List[GroupMember] = field(default_factory=list)

    def find_member(self, user_id: str) -> Optional[GroupMember]:
        for member in self.members:
            if member.user_id == user_id:
                return member
        return None

    def role_of(self, user_id: str) -> Optional[MemberRole]:
        if user_id == self.created_by:
            return MemberRole.OWNER
        member = self.find_member(user_id)
        return member.role if member is not None else None

    @property
    def owner(self) -> Optional[GroupMember]:
        for member in self.members:
            if member.role == MemberRole.OWNER:
                return member
        return None


@dataclass(frozen=True)
class Registered:
    """A participant backed by a resolvable identity."""

    user_id: str

    @property
    def identity_key(self) -> str:
        return self.user_id


@dataclass(frozen=True)
class Guest:
    """
    A participant known only by the name typed in for them.

    Guests added to a group through the member list carry a synthetic
    `user_id`; one-off guests entered directly on a game have none.
    """

    name: str
    user_id: Optional[str] = None

    @property
    def identity_key(self) -> str:
        if self.user_id:
            return self.user_id
        return normalize_name(self.name)


Participant = Union[Registered, Guest]


def normalize_name(name: str) -> str:
    return (name or "").strip().lower()


@dataclass
class GameSession:
    player_name: str
    buy_in: float = 0.0
    end_amount: float = 0.0
    profit: float = 0.0
    user_id: Optional[str] = None
    role: Optional[SessionRole] = None
    id: Optional[str] = None

    def __post_init__(self) -> None:
        self.profit = compute_profit(self.buy_in, self.end_amount)

    @property
    def participant(self) -> Participant:
        if (
            self.user_id is None
            or self.user_id.startswith(GUEST_ID_PREFIX)
            or self.role == SessionRole.GUEST
        ):
            return Guest(name=self.player_name, user_id=self.user_id)
        return Registered(user_id=self.user_id)

    @property
    def is_guest(self) -> bool:
        return isinstance(self.participant, Guest)

    @property
    def identity_key(self) -> str:
        return self.participant.identity_key

    @property
    def lost_money(self) -> bool:
        return self.end_amount < self.buy_in

    def matches_name(self, name: str) -> bool:
        return normalize_name(self.player_name) == normalize_name(name)


def compute_profit(buy_in: float, end_amount: float) -> float:
    return round(float(end_amount) - float(buy_in), 2)


@dataclass
class Game:
    id: str
    group_id: str
    date: str
    created_by: str
    created_at: str
    status: GameStatus = GameStatus.OPEN
    notes: Optional[str] = None
    sessions: List[GameSession] = field(default_factory=list)

    def find_session(self, user_id: str) -> Optional[GameSession]:
        for session in self.sessions:
            if session.user_id == user_id:
                return session
        return None

    def find_named_session(self, player_name: str) -> Optional[GameSession]:
        """Find a session without a user id by its case-insensitive player name."""

        for session in self.sessions:
            if session.user_id is None and session.matches_name(player_name):
                return session
        return None

    @property
    def is_open(self) -> bool:
        return self.status == GameStatus.OPEN

    @property
    def is_completed(self) -> bool:
        return self.status == GameStatus.COMPLETED


@dataclass
class ClaimRequest:
    """
    A registered user's request to take over a guest's history in a group.

    Denied requests are deleted rather than kept in a terminal state.
    """

    id: str
    group_id: str
    guest_name: str
    requester_id: str
    requester_email: Optional[str] = None
    status: ClaimStatus = ClaimStatus.PENDING
    created_at: Optional[str] = None


@dataclass
class PayoutAck:
    """Advisory record that a player settled up for a game. Not a ledger entry."""

    game_id: str
    user_id: str
    completed_at: str
    confirmed: bool = False
    method: Optional[str] = None
    handle: Optional[str] = None


@dataclass
class PlayerStats:
    name: str
    total_profit: float = 0.0
    games_played: int = 0
    total_buy_ins: float = 0.0
    total_end_amounts: float = 0.0
    win_rate: int = 0
    user_id: Optional[str] = None
    is_guest: bool = False

    @property
    def average_profit(self) -> float:
        if self.games_played == 0:
            return 0.0
        return round(self.total_profit / self.games_played, 2)


def new_id() -> str:
    return uuid.uuid4().hex


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()
