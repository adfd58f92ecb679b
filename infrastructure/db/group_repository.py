from __future__ import annotations

import time
from typing import Dict, List, Optional, Sequence

from domain.models import GUEST_ID_PREFIX, Group, GroupMember, MemberRole, normalize_name
from domain.repositories import GroupRepository

from .database import Database

GROUP_COLUMNS = "id, name, description, created_by, created_at, invite_code"
MEMBER_COLUMNS = "group_id, user_id, user_name, joined_at, role"


class SqlGroupRepository(GroupRepository):
    """
    SQL implementation of `GroupRepository` over the `groups` and
    `group_members` tables.

    The (group_id, user_id) primary key on `group_members` is what stops a
    user from holding two memberships in one group.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    @staticmethod
    def _to_member(row: Sequence) -> GroupMember:
        return GroupMember(
            user_id=str(row[1]),
            user_name=row[2],
            joined_at=row[3],
            role=MemberRole(row[4]),
        )

    def _load_members(self, group_ids: List[str]) -> Dict[str, List[GroupMember]]:
        members: Dict[str, List[GroupMember]] = {group_id: [] for group_id in group_ids}
        if not group_ids:
            return members
        marks = ", ".join("?" for _ in group_ids)
        rows = self._db.query(
            f"SELECT {MEMBER_COLUMNS} FROM group_members "
            f"WHERE group_id IN ({marks}) ORDER BY seq",
            group_ids,
        )
        for row in rows:
            members[str(row[0])].append(self._to_member(row))
        return members

    def _to_domain(self, rows: List[Sequence]) -> List[Group]:
        members = self._load_members([str(row[0]) for row in rows])
        return [
            Group(
                id=str(row[0]),
                name=row[1],
                description=row[2] or None,
                created_by=str(row[3]),
                created_at=row[4],
                invite_code=row[5],
                members=members[str(row[0])],
            )
            for row in rows
        ]

    def _first(self, sql: str, params: Sequence) -> Optional[Group]:
        rows = self._db.query(sql, params)
        if not rows:
            return None
        return self._to_domain(rows[:1])[0]

    def get_group(self, group_id: str) -> Optional[Group]:
        return self._first(f"SELECT {GROUP_COLUMNS} FROM groups WHERE id = ?", (group_id,))

    def get_group_by_invite_code(self, invite_code: str) -> Optional[Group]:
        return self._first(
            f"SELECT {GROUP_COLUMNS} FROM groups WHERE upper(invite_code) = ?",
            (invite_code.strip().upper(),),
        )

    def invite_code_exists(self, invite_code: str) -> bool:
        row = self._db.query_one(
            "SELECT 1 FROM groups WHERE upper(invite_code) = ?",
            (invite_code.strip().upper(),),
        )
        return row is not None

    def list_groups_for_user(self, user_id: str) -> List[Group]:
        rows = self._db.query(
            f"""
            SELECT {GROUP_COLUMNS}
            FROM groups
            WHERE created_by = ?
               OR id IN (SELECT group_id FROM group_members WHERE user_id = ?)
            ORDER BY created_at DESC
            """,
            (user_id, user_id),
        )
        return self._to_domain(rows)

    def find_group_by_name(self, created_by: str, name: str) -> Optional[Group]:
        return self._first(
            f"SELECT {GROUP_COLUMNS} FROM groups WHERE created_by = ? AND name = ?",
            (created_by, name),
        )

    def add_group(self, group: Group) -> None:
        with self._db.transaction():
            self._db.execute(
                f"INSERT INTO groups ({GROUP_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    group.id,
                    group.name,
                    group.description,
                    group.created_by,
                    group.created_at,
                    group.invite_code,
                ),
            )
            for member in group.members:
                self.add_member(group.id, member)

    def update_group(self, group_id: str, name: str, description: Optional[str]) -> None:
        self._db.execute(
            "UPDATE groups SET name = ?, description = ? WHERE id = ?",
            (name, description, group_id),
        )

    def delete_group(self, group_id: str) -> None:
        self._db.execute("DELETE FROM groups WHERE id = ?", (group_id,))

    def add_member(self, group_id: str, member: GroupMember) -> None:
        self._db.execute(
            f"INSERT INTO group_members ({MEMBER_COLUMNS}, name_key, seq) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                group_id,
                member.user_id,
                member.user_name,
                member.joined_at,
                member.role.value,
                normalize_name(member.user_name),
                time.time_ns(),
            ),
        )

    def remove_member(self, group_id: str, user_id: str) -> bool:
        count = self._db.execute(
            "DELETE FROM group_members WHERE group_id = ? AND user_id = ?",
            (group_id, user_id),
        )
        return count > 0

    def delete_members(self, group_id: str) -> None:
        self._db.execute("DELETE FROM group_members WHERE group_id = ?", (group_id,))

    def update_member_role(self, group_id: str, user_id: str, role: MemberRole) -> bool:
        count = self._db.execute(
            "UPDATE group_members SET role = ? WHERE group_id = ? AND user_id = ?",
            (role.value, group_id, user_id),
        )
        return count > 0

    def update_member_name(self, group_id: str, user_id: str, user_name: str) -> bool:
        count = self._db.execute(
            "UPDATE group_members SET user_name = ?, name_key = ? WHERE group_id = ? AND user_id = ?",
            (user_name, normalize_name(user_name), group_id, user_id),
        )
        return count > 0

    def update_user_name(self, user_id: str, user_name: str) -> int:
        return self._db.execute(
            "UPDATE group_members SET user_name = ?, name_key = ? WHERE user_id = ?",
            (user_name, normalize_name(user_name), user_id),
        )

    def remove_guest_members_named(self, group_id: str, guest_name: str) -> int:
        return self._db.execute(
            """
            DELETE FROM group_members
            WHERE group_id = ?
              AND name_key = ?
              AND user_id LIKE ?
            """,
            (group_id, normalize_name(guest_name), GUEST_ID_PREFIX + "%"),
        )
