from __future__ import annotations

from typing import ContextManager, Iterable, List, Optional, Protocol

from .models import (
    ClaimRequest,
    Game,
    GameSession,
    GameStatus,
    Group,
    GroupMember,
    MemberRole,
    PayoutAck,
    UserProfile,
)


class IdentityResolver(Protocol):
    """
    Lookup capability over the external identity provider.

    The core never depends on how names are obtained, only on this call.
    """

    def resolve(self, user_id: str) -> UserProfile:
        """Return the profile for `user_id`; raise `NotFound` for unknown ids."""

        ...


class UserDirectory(IdentityResolver, Protocol):
    """An `IdentityResolver` that the interface layer can feed as users show up."""

    def register_user(self, profile: UserProfile) -> None:
        """Insert or refresh the profile for `profile.id`."""

        ...


class GroupRepository(Protocol):
    """
    Persistence for groups and their member lists.

    Groups are returned with their members loaded. Implementations must
    reject a second membership of the same user in a group.
    """

    def get_group(self, group_id: str) -> Optional[Group]:
        ...

    def get_group_by_invite_code(self, invite_code: str) -> Optional[Group]:
        """Case-insensitive lookup by invite code."""

        ...

    def invite_code_exists(self, invite_code: str) -> bool:
        ...

    def list_groups_for_user(self, user_id: str) -> List[Group]:
        """Groups the user created or is a member of."""

        ...

    def find_group_by_name(self, created_by: str, name: str) -> Optional[Group]:
        ...

    def add_group(self, group: Group) -> None:
        """Persist a new group together with its initial members."""

        ...

    def update_group(self, group_id: str, name: str, description: Optional[str]) -> None:
        ...

    def delete_group(self, group_id: str) -> None:
        """Delete the group row only; callers remove dependents first."""

        ...

    def add_member(self, group_id: str, member: GroupMember) -> None:
        """Raise `Conflict` if the user already has a membership."""

        ...

    def remove_member(self, group_id: str, user_id: str) -> bool:
        ...

    def delete_members(self, group_id: str) -> None:
        ...

    def update_member_role(self, group_id: str, user_id: str, role: MemberRole) -> bool:
        ...

    def update_member_name(self, group_id: str, user_id: str, user_name: str) -> bool:
        ...

    def update_user_name(self, user_id: str, user_name: str) -> int:
        """Rename the user's membership in every group; return rows touched."""

        ...

    def remove_guest_members_named(self, group_id: str, guest_name: str) -> int:
        """Delete synthetic guest memberships whose name matches case-insensitively."""

        ...


class GameRepository(Protocol):
    """
    Persistence for games and their sessions.

    At most one session per (game, user id), and at most one user-less
    session per (game, lower-cased player name), must be enforced here so
    that concurrent joins cannot both succeed.
    """

    def get_game(self, game_id: str) -> Optional[Game]:
        ...

    def list_games_for_group(self, group_id: str) -> List[Game]:
        """Games of the group, newest date first."""

        ...

    def list_games_for_groups(self, group_ids: Iterable[str]) -> List[Game]:
        ...

    def add_game(self, game: Game) -> None:
        ...

    def update_status(self, game_id: str, status: GameStatus) -> None:
        ...

    def delete_game(self, game_id: str) -> None:
        """Delete the game row only; callers remove sessions first."""

        ...

    def add_session(self, game_id: str, session: GameSession) -> None:
        """Insert a session (assigning `session.id`); raise `Conflict` on duplicates."""

        ...

    def update_session(self, session: GameSession) -> None:
        """Rewrite a stored session identified by `session.id`."""

        ...

    def delete_session(self, session_id: str) -> None:
        ...

    def delete_sessions(self, game_id: str) -> None:
        ...


class ClaimRequestRepository(Protocol):
    def get(self, request_id: str) -> Optional[ClaimRequest]:
        ...

    def find(self, group_id: str, guest_name: str, requester_id: str) -> Optional[ClaimRequest]:
        """Match on the (group, case-insensitive guest name, requester) tuple."""

        ...

    def list_for_group(self, group_id: str) -> List[ClaimRequest]:
        ...

    def add(self, request: ClaimRequest) -> None:
        ...

    def update(self, request: ClaimRequest) -> None:
        ...

    def delete(self, request_id: str) -> None:
        ...

    def delete_for_group(self, group_id: str) -> None:
        ...


class PayoutAckRepository(Protocol):
    def get(self, game_id: str, user_id: str) -> Optional[PayoutAck]:
        ...

    def save(self, ack: PayoutAck) -> None:
        """Insert or replace the acknowledgement for (game, user)."""

        ...

    def reset_confirmations(self, game_id: str) -> int:
        """Mark every acknowledgement of the game unconfirmed; return rows touched."""

        ...

    def delete_for_game(self, game_id: str) -> None:
        ...


class PokerStore(Protocol):
    """
    The repositories of one backend plus its transaction boundary.

    Everything executed inside `with store.transaction():` commits or rolls
    back as a unit.
    """

    groups: GroupRepository
    games: GameRepository
    claims: ClaimRequestRepository
    payouts: PayoutAckRepository

    def transaction(self) -> ContextManager[object]:
        ...
