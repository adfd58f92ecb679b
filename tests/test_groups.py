import unittest

from application.claims import submit_claim_request
from application.groups import (
    add_guest_member,
    create_group,
    delete_group,
    demote_from_admin,
    generate_invite_code,
    get_or_create_personal_group,
    join_group,
    list_user_groups,
    promote_to_admin,
    remove_group_member,
    rename_group,
    update_group_member_name,
    update_user_name,
)
from domain.errors import AlreadyMember, Conflict, Forbidden, NotFound, StorageFailure, ValidationError
from domain.models import GUEST_ID_PREFIX, PERSONAL_GROUP_NAME, MemberRole
from infrastructure.db.group_repository import SqlGroupRepository
from support import StoreTestCase


class FailingGroupRepository(SqlGroupRepository):
    """Fails the final step of a group deletion, after its dependents are gone."""

    def delete_group(self, group_id):
        raise StorageFailure("connection reset")


class GroupLifecycleTests(StoreTestCase):
    def assert_single_owner(self, group) -> None:
        owners = [m for m in group.members if m.role == MemberRole.OWNER]
        self.assertEqual(len(owners), 1)
        self.assertEqual(group.owner.user_id, group.created_by)
        self.assertEqual(group.role_of(group.created_by), MemberRole.OWNER)

    def test_create_group_makes_creator_the_only_owner(self):
        result = create_group("Friday Night", "weekly", "owner", "Olivia", self.store)
        self.assertTrue(result.success)
        group = self.reload_group(result.value)
        self.assertEqual(group.name, "Friday Night")
        self.assertEqual(group.description, "weekly")
        self.assertEqual(len(group.invite_code), 6)
        self.assertEqual(group.invite_code, group.invite_code.upper())
        self.assertEqual(len(group.members), 1)
        self.assert_single_owner(group)

    def test_create_group_requires_a_name(self):
        result = create_group("   ", None, "owner", "Olivia", self.store)
        self.assertFalse(result.success)
        self.assertIsInstance(result.error, ValidationError)
        self.assertEqual(result.error.field, "name")

    def test_invite_code_generation_skips_codes_in_use(self):
        class CollidingRepo:
            def __init__(self):
                self.checked = []

            def invite_code_exists(self, code):
                self.checked.append(code)
                return len(self.checked) < 3

        repo = CollidingRepo()
        code = generate_invite_code(repo)

        self.assertEqual(len(repo.checked), 3)
        self.assertEqual(code, repo.checked[-1])
        self.assertRegex(code, r"^[A-Z0-9]{6}$")

    def test_create_group_reports_exhausted_invite_codes(self):
        def exhausted(groups):
            raise Conflict("Could not generate a unique invite code, please try again.")

        result = create_group("Other", None, "u2", "Uma", self.store, code_generator=exhausted)
        self.assertFalse(result.success)
        self.assertIsInstance(result.error, Conflict)

    def test_invite_code_generation_gives_up_after_repeated_collisions(self):
        class FullRepo:
            def invite_code_exists(self, code):
                return True

        with self.assertRaises(Conflict):
            generate_invite_code(FullRepo())

    def test_join_group_is_case_insensitive_and_rejects_second_join(self):
        group = self.make_group()

        first = join_group(group.invite_code.lower(), "u1", "Uma", self.store)
        second = join_group(group.invite_code, "u1", "Uma", self.store)

        self.assertTrue(first.success)
        self.assertFalse(second.success)
        self.assertIsInstance(second.error, AlreadyMember)
        members = self.reload_group(group).members
        self.assertEqual(len(members), 2)
        self.assertEqual(members[1].role, MemberRole.MEMBER)

    def test_join_group_with_unknown_code(self):
        result = join_group("NOPE00", "u1", "Uma", self.store)
        self.assertIsInstance(result.error, NotFound)

    def test_owner_cannot_join_own_group_twice(self):
        group = self.make_group()
        result = join_group(group.invite_code, "owner", "Olivia", self.store)
        self.assertIsInstance(result.error, AlreadyMember)
        self.assert_single_owner(self.reload_group(group))

    def test_add_guest_member_is_owner_only_and_warns_on_duplicates(self):
        group = self.make_group()
        join_group(group.invite_code, "u1", "Uma", self.store)

        denied = add_guest_member(group.id, "Bob", "u1", self.store)
        self.assertIsInstance(denied.error, Forbidden)

        first = add_guest_member(group.id, "Bob", "owner", self.store)
        self.assertTrue(first.success)
        self.assertTrue(first.value.user_id.startswith(GUEST_ID_PREFIX))
        self.assertEqual(first.warnings, [])

        duplicate = add_guest_member(group.id, " bob ", "owner", self.store)
        self.assertTrue(duplicate.success)
        self.assertEqual(len(duplicate.warnings), 1)

        guests = [m for m in self.reload_group(group).members if m.is_guest]
        self.assertEqual(len(guests), 2)

    def test_add_guest_member_rejects_blank_name(self):
        group = self.make_group()
        result = add_guest_member(group.id, "  ", "owner", self.store)
        self.assertIsInstance(result.error, ValidationError)

    def test_remove_member_rules(self):
        group = self.make_group()
        join_group(group.invite_code, "u1", "Uma", self.store)
        join_group(group.invite_code, "u2", "Vic", self.store)
        promote_to_admin(group.id, "u1", "owner", self.store)

        by_admin = remove_group_member(group.id, "u2", "u1", self.store)
        self.assertIsInstance(by_admin.error, Forbidden)

        remove_owner = remove_group_member(group.id, "owner", "owner", self.store)
        self.assertIsInstance(remove_owner.error, Forbidden)

        removed = remove_group_member(group.id, "u2", "owner", self.store)
        self.assertTrue(removed.success)
        self.assertIsNone(self.reload_group(group).find_member("u2"))

        missing = remove_group_member(group.id, "u2", "owner", self.store)
        self.assertIsInstance(missing.error, NotFound)

    def test_removing_a_member_keeps_their_sessions(self):
        group = self.make_group()
        join_group(group.invite_code, "u1", "Uma", self.store)
        game = self.make_game(group)
        self.record(game, "Uma", 20, 40, user_id="u1")

        remove_group_member(group.id, "u1", "owner", self.store)

        self.assertIsNotNone(self.reload_game(game).find_session("u1"))

    def test_promote_and_demote(self):
        group = self.make_group()
        join_group(group.invite_code, "u1", "Uma", self.store)

        self.assertTrue(promote_to_admin(group.id, "u1", "owner", self.store).success)
        self.assertEqual(self.reload_group(group).role_of("u1"), MemberRole.ADMIN)
        self.assertIsNone(self.reload_group(group).role_of("stranger"))

        # Admins cannot manage roles.
        join_group(group.invite_code, "u2", "Vic", self.store)
        self.assertIsInstance(promote_to_admin(group.id, "u2", "u1", self.store).error, Forbidden)

        self.assertTrue(demote_from_admin(group.id, "u1", "owner", self.store).success)
        self.assertEqual(self.reload_group(group).find_member("u1").role, MemberRole.MEMBER)

    def test_owner_role_cannot_be_changed(self):
        group = self.make_group()
        self.assertIsInstance(promote_to_admin(group.id, "owner", "owner", self.store).error, Forbidden)
        self.assertIsInstance(demote_from_admin(group.id, "owner", "owner", self.store).error, Forbidden)
        self.assert_single_owner(self.reload_group(group))

    def test_promote_unknown_member(self):
        group = self.make_group()
        self.assertIsInstance(promote_to_admin(group.id, "ghost", "owner", self.store).error, NotFound)

    def test_rename_group_owner_only(self):
        group = self.make_group()
        join_group(group.invite_code, "u1", "Uma", self.store)

        self.assertIsInstance(rename_group(group.id, "Mine", None, "u1", self.store).error, Forbidden)
        self.assertIsInstance(rename_group(group.id, "", None, "owner", self.store).error, ValidationError)
        self.assertTrue(rename_group(group.id, "Sunday Club", "new night", "owner", self.store).success)

        renamed = self.reload_group(group)
        self.assertEqual(renamed.name, "Sunday Club")
        self.assertEqual(renamed.description, "new night")

    def test_update_member_name_permissions_and_history(self):
        group = self.make_group()
        join_group(group.invite_code, "u1", "Uma", self.store)
        join_group(group.invite_code, "u2", "Vic", self.store)
        game = self.make_game(group)
        self.record(game, "Uma", 10, 5, user_id="u1")

        self.assertTrue(update_group_member_name(group.id, "u1", "Uma T.", "u1", self.store).success)
        self.assertIsInstance(
            update_group_member_name(group.id, "u1", "Hacked", "u2", self.store).error, Forbidden
        )
        self.assertTrue(update_group_member_name(group.id, "u2", "Victor", "owner", self.store).success)
        self.assertIsInstance(
            update_group_member_name(group.id, "u1", "   ", "u1", self.store).error, ValidationError
        )

        group = self.reload_group(group)
        self.assertEqual(group.find_member("u1").user_name, "Uma T.")
        self.assertEqual(group.find_member("u2").user_name, "Victor")
        # The stored session keeps the name it was recorded with.
        self.assertEqual(self.reload_game(game).find_session("u1").player_name, "Uma")

    def test_update_user_name_renames_every_membership(self):
        first = self.make_group()
        second = self.make_group(owner_id="other", owner_name="Otto", name="Second")
        join_group(first.invite_code, "u1", "Uma", self.store)
        join_group(second.invite_code, "u1", "Uma", self.store)

        result = update_user_name("u1", "Uma Thurman", self.store)

        self.assertEqual(result.value, 2)
        self.assertEqual(self.reload_group(first).find_member("u1").user_name, "Uma Thurman")
        self.assertEqual(self.reload_group(second).find_member("u1").user_name, "Uma Thurman")

    def test_delete_group_cascades(self):
        group = self.make_group()
        game = self.make_game(group)
        self.record(game, "Bob", 50, 30)
        join_group(group.invite_code, "u1", "Uma", self.store)

        join_group(group.invite_code, "u2", "Vic", self.store)
        self.assertIsInstance(delete_group(group.id, "u2", self.store).error, Forbidden)

        self.assertTrue(delete_group(group.id, "owner", self.store).success)

        self.assertIsNone(self.store.groups.get_group(group.id))
        self.assertIsNone(self.store.games.get_game(game.id))
        self.assertEqual(self.store.games.list_games_for_group(group.id), [])
        rows = self.db.query("SELECT COUNT(*) FROM game_sessions")
        self.assertEqual(rows[0][0], 0)
        rows = self.db.query("SELECT COUNT(*) FROM group_members")
        self.assertEqual(rows[0][0], 0)

    def test_failed_delete_group_keeps_everything(self):
        group = self.make_group()
        add_guest_member(group.id, "Bob", "owner", self.store)
        join_group(group.invite_code, "u1", "Uma", self.store)
        game = self.make_game(group)
        self.record(game, "Bob", 50, 30)
        request = submit_claim_request(group.id, "Bob", "u1", self.store).unwrap()
        self.store.groups = FailingGroupRepository(self.db)

        with self.assertRaises(StorageFailure):
            delete_group(group.id, "owner", self.store)

        self.assertEqual(len(self.reload_group(group).members), 3)
        self.assertEqual(len(self.reload_game(game).sessions), 2)
        self.assertIsNotNone(self.store.claims.get(request.id))

    def test_personal_group_is_created_once_and_listed_first(self):
        other = self.make_group(owner_id="someone", name="Poker Pals")
        join_group(other.invite_code, "u1", "Uma", self.store)

        first = get_or_create_personal_group("u1", "Uma", self.store).unwrap()
        again = get_or_create_personal_group("u1", "Uma", self.store).unwrap()

        self.assertEqual(first.id, again.id)
        self.assertEqual(first.name, PERSONAL_GROUP_NAME)
        groups = list_user_groups("u1", self.store)
        self.assertEqual([g.id for g in groups], [first.id, other.id])


if __name__ == "__main__":
    unittest.main()
