import unittest
from datetime import date

from application.leaderboard import (
    SortKey,
    build_leaderboard,
    find_guest_user_id,
    guest_games,
    overall_stats,
    running_totals,
    single_game_leaderboard,
    user_games,
)
from domain.models import Game, GameSession, Group, GroupMember, SessionRole


def make_game(game_id, day, *sessions):
    return Game(
        id=game_id,
        group_id="g1",
        date=day,
        created_by="owner",
        created_at=day + "T20:00:00+00:00",
        sessions=list(sessions),
    )


def session(name, buy_in, end_amount, user_id=None, role=None):
    return GameSession(player_name=name, buy_in=buy_in, end_amount=end_amount, user_id=user_id, role=role)


class LeaderboardTests(unittest.TestCase):
    def setUp(self) -> None:
        self.games = [
            make_game(
                "a",
                "2024-01-05",
                session("Uma", 50, 80, user_id="u1"),
                session("Bob", 20, 0),
                session("Vic", 30, 50, user_id="u2"),
            ),
            make_game(
                "b",
                "2024-01-12",
                session("Uma B.", 40, 20, user_id="u1"),
                session(" bob", 20, 45),
                session("Vic", 30, 30, user_id="u2"),
            ),
        ]

    def by_name(self, rows):
        return {row.name: row for row in rows}

    def test_aggregates_one_row_per_participant(self):
        rows = build_leaderboard(self.games)

        self.assertEqual(len(rows), 3)
        uma = [r for r in rows if r.user_id == "u1"][0]
        self.assertEqual(uma.total_profit, 10)
        self.assertEqual(uma.games_played, 2)
        self.assertEqual(uma.total_buy_ins, 90)
        self.assertEqual(uma.total_end_amounts, 100)
        # Without member names the first recorded name is used.
        self.assertEqual(uma.name, "Uma")
        bob = [r for r in rows if r.is_guest][0]
        self.assertEqual(bob.total_profit, 5)
        self.assertEqual(bob.games_played, 2)

    def test_profit_ordering_is_stable_for_ties(self):
        rows = build_leaderboard(self.games)
        # Vic 20, Uma 10, Bob 5.
        self.assertEqual([r.user_id for r in rows], ["u2", "u1", None])

        tied = [
            make_game("t", "2024-02-01", session("Ann", 10, 20), session("Cal", 10, 20), session("Ben", 10, 20))
        ]
        self.assertEqual([r.name for r in build_leaderboard(tied)], ["Ann", "Cal", "Ben"])

    def test_other_sort_keys(self):
        by_buy_ins = build_leaderboard(self.games, sort_by=SortKey.BUY_INS)
        self.assertEqual(by_buy_ins[0].user_id, "u1")

        extra = self.games + [make_game("c", "2024-01-19", session("Bob", 5, 5))]
        by_sessions = build_leaderboard(extra, sort_by="sessions")
        self.assertTrue(by_sessions[0].is_guest)
        self.assertEqual(by_sessions[0].games_played, 3)

    def test_member_names_apply_retroactively(self):
        members = [GroupMember(user_id="u1", user_name="Uma Thurman", joined_at="2024-01-01")]

        names = self.by_name(build_leaderboard(self.games, members))

        self.assertIn("Uma Thurman", names)
        self.assertEqual(self.games[1].sessions[0].player_name, "Uma B.")

    def test_win_rate_is_based_on_total_profit(self):
        rows = self.by_name(build_leaderboard(self.games))
        self.assertEqual(rows["Uma"].win_rate, 1)
        self.assertEqual(rows["Bob"].win_rate, 1)

        even = build_leaderboard([make_game("e", "2024-01-01", session("Eve", 10, 10))])
        self.assertEqual(even[0].win_rate, 0)
        self.assertEqual(even[0].average_profit, 0)

    def test_filter_by_user(self):
        rows = build_leaderboard(self.games, user_id="u2")
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].total_profit, 20)

    def test_guest_role_and_synthetic_ids_count_as_guests(self):
        game = make_game(
            "g",
            "2024-01-05",
            session("Gus", 10, 0, user_id="guest-abc"),
            session("Gil", 10, 0, user_id="u9", role=SessionRole.GUEST),
        )
        rows = build_leaderboard([game])
        self.assertTrue(all(r.is_guest for r in rows))

    def test_single_game_leaderboard(self):
        rows = single_game_leaderboard(self.games[0])
        self.assertEqual([r.name for r in rows], ["Uma", "Vic", "Bob"])
        self.assertEqual(rows[-1].total_profit, -20)

    def test_user_and_guest_games(self):
        mine = user_games(self.games, "u1")
        self.assertEqual([len(g.sessions) for g in mine], [1, 1])
        self.assertEqual(len(self.games[0].sessions), 3)

        bobs = guest_games(self.games, "BOB")
        self.assertEqual([g.id for g in bobs], ["a", "b"])
        self.assertEqual(guest_games(self.games, "nobody"), [])

    def test_find_guest_user_id(self):
        group = Group(
            id="g1",
            name="Friday",
            created_by="owner",
            created_at="2024-01-01",
            invite_code="ABC123",
            members=[GroupMember(user_id="guest-1", user_name="Bob", joined_at="2024-01-01")],
        )
        self.assertEqual(find_guest_user_id(group, self.games, "bob"), "guest-1")
        self.assertIsNone(find_guest_user_id(group, self.games, "Uma"))

    def test_overall_stats(self):
        stats = overall_stats(self.games)
        self.assertEqual(stats.total_games, 2)
        self.assertEqual(stats.total_buy_ins, 190)
        self.assertEqual(stats.total_end_amounts, 225)
        self.assertEqual(stats.total_profit, 35)
        self.assertEqual(stats.avg_profit_per_game, 17.5)

        mine = overall_stats(self.games, user_id="u1")
        self.assertEqual(mine.total_profit, 10)
        self.assertEqual(mine.avg_profit_per_game, 5)

        self.assertEqual(overall_stats([]).avg_profit_per_game, 0)

    def test_running_totals(self):
        daily = running_totals(list(reversed(self.games)), user_id="u1")
        self.assertEqual([(p.date, p.total) for p in daily], [(date(2024, 1, 5), 30), (date(2024, 1, 12), -20)])

        cumulative = running_totals(self.games, user_id="u1", cumulative=True)
        self.assertEqual([p.total for p in cumulative], [30, 10])


if __name__ == "__main__":
    unittest.main()
