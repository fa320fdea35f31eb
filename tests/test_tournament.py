"""Tests for the tournament service: teams, seed round and bracket."""

import logging
import random

import pytest

from courtside.models import Team
from courtside.seed_builder import pair_key
from courtside.validation import NotFoundError, ValidationError


class TestTournaments:
    def test_create(self, service):
        t = service.create_tournament("  Spring Open ", seed_matches_per_team=4, total_courts=3)

        assert t.id is not None
        assert t.name == "Spring Open"
        assert t.seed_matches_per_team == 4
        assert t.total_courts == 3
        assert [c.number for c in t.courts] == [1, 2, 3]

    def test_defaults(self, service):
        t = service.create_tournament("Open")

        assert (t.seed_matches_per_team, t.total_courts) == (3, 6)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"name": ""},
            {"name": "X", "total_courts": 0},
            {"name": "X", "seed_matches_per_team": 0},
        ],
    )
    def test_invalid(self, service, kwargs):
        with pytest.raises(ValidationError):
            service.create_tournament(**kwargs)

        assert service.list_tournaments() == []

    def test_list_newest_first(self, service):
        service.create_tournament("First")
        service.create_tournament("Second")

        assert [t.name for t in service.list_tournaments()] == ["Second", "First"]

    def test_not_found(self, service):
        with pytest.raises(NotFoundError):
            service.get_tournament(42)
        with pytest.raises(NotFoundError):
            service.add_team(42, "A", "B", "C")


class TestTeams:
    def test_team_numbers_are_sequential(self, service, tournament):
        assert [t.team_number for t in service.list_teams(tournament.id)] == [1, 2, 3, 4]

    def test_names_are_trimmed(self, service, tournament):
        team = service.add_team(tournament.id, "  Net Ninjas ", " Ana ", "Bo ")

        assert (team.name, team.player1, team.player2) == ("Net Ninjas", "Ana", "Bo")

    def test_duplicate_name_rejected(self, service, tournament):
        with pytest.raises(ValidationError, match="already taken"):
            service.add_team(tournament.id, "Team 1", "X", "Y")

    def test_same_name_in_other_tournament(self, service, tournament):
        other = service.create_tournament("Other")

        assert service.add_team(other.id, "Team 1", "X", "Y").team_number == 1

    def test_two_players_required(self, service, tournament):
        with pytest.raises(ValidationError, match="two players"):
            service.add_team(tournament.id, "Solo", "Only One", "")

    def test_add_teams_is_all_or_nothing(self, service, tournament):
        batch = [
            Team(id=0, name="Fresh", player1="A", player2="B"),
            Team(id=0, name="Team 2", player1="C", player2="D"),
        ]

        with pytest.raises(ValidationError):
            service.add_teams(tournament.id, batch)

        assert len(service.list_teams(tournament.id)) == 4

    def test_update_team(self, service, tournament, team_ids):
        team = service.update_team(team_ids[0], "Renamed", "New A", "New B")

        assert (team.name, team.player1, team.player2) == ("Renamed", "New A", "New B")

        # Keeping its own name is not a duplicate
        assert service.update_team(team_ids[0], "Renamed", "A", "B").player1 == "A"

        with pytest.raises(ValidationError, match="already taken"):
            service.update_team(team_ids[0], "Team 2", "A", "B")

    def test_delete_team_without_matches(self, service, tournament, team_ids):
        service.delete_team(team_ids[3])

        assert [t.id for t in service.list_teams(tournament.id)] == team_ids[:3]

    def test_delete_scheduled_team_rejected(self, service, tournament, team_ids, add_matches):
        add_matches(tournament.id, [(team_ids[0], team_ids[1]), (team_ids[0], team_ids[2])])

        with pytest.raises(ValidationError, match="scheduled for 2 matches"):
            service.delete_team(team_ids[0])

        assert len(service.list_teams(tournament.id)) == 4

    def test_delete_unknown_team(self, service):
        with pytest.raises(NotFoundError):
            service.delete_team(9999)


class TestSeedRound:
    def test_generate(self, service, tournament, team_ids):
        schedule = service.generate_seed_round(tournament.id, rng=random.Random(1))
        matches = service.get_seed_matches(tournament.id)

        assert schedule.matches_per_team == 2
        assert len(matches) == len(schedule.pairings) == 4
        assert [(m.team_a_id, m.team_b_id) for m in matches] == schedule.pairings

        keys = [pair_key(m.team_a_id, m.team_b_id) for m in matches]
        assert len(keys) == len(set(keys))
        assert all(m.completed_at is None and m.scheduled_court is None for m in matches)

    def test_override_is_saved(self, service, tournament):
        service.generate_seed_round(tournament.id, matches_per_team=1, rng=random.Random(1))

        assert service.get_tournament(tournament.id).seed_matches_per_team == 1
        assert len(service.get_seed_matches(tournament.id)) == 2

    def test_regenerate_replaces_matches(self, service, tournament):
        service.generate_seed_round(tournament.id, rng=random.Random(1))
        schedule = service.generate_seed_round(tournament.id, rng=random.Random(2))
        matches = service.get_seed_matches(tournament.id)

        assert len(matches) == 4
        assert [(m.team_a_id, m.team_b_id) for m in matches] == schedule.pairings

    def test_same_seed_same_schedule(self, service, tournament):
        first = service.generate_seed_round(tournament.id, rng=random.Random(8))
        second = service.generate_seed_round(tournament.id, rng=random.Random(8))

        assert first.pairings == second.pairings

    def test_needs_two_teams(self, service):
        t = service.create_tournament("Empty")
        service.add_team(t.id, "Lonely", "A", "B")

        with pytest.raises(ValidationError, match="at least 2 teams"):
            service.generate_seed_round(t.id)

    def test_shortfall_reported(self, service, caplog):
        t = service.create_tournament("Trio", seed_matches_per_team=5)
        for n in range(3):
            service.add_team(t.id, f"Team {n}", "A", "B")

        with caplog.at_level(logging.WARNING):
            schedule = service.generate_seed_round(t.id, rng=random.Random(4))

        assert len(schedule.pairings) == 3
        assert len(schedule.shortfall) == 3
        assert "short" in caplog.text

    def test_clear(self, service, tournament):
        service.generate_seed_round(tournament.id, rng=random.Random(1))

        assert service.clear_seed_round(tournament.id) == 4
        assert service.get_seed_matches(tournament.id) == []


class TestLeaderboard:
    def test_ranked_by_differential(self, service, scheduler, tournament, team_ids, add_matches):
        t1, t2, t3, t4 = team_ids
        played = add_matches(tournament.id, [(t1, t2), (t3, t4), (t2, t3)])
        scheduler.report_score(played[0], 4, 11)  # T2 +7
        scheduler.report_score(played[1], 11, 10)  # T3 +1
        scheduler.report_score(played[2], 11, 9)  # T2 +2, T3 -2

        board = service.get_leaderboard(tournament.id)

        # T3 and T4 are level, registration order decides
        assert [e.team_id for e in board] == [t2, t3, t4, t1]
        assert [e.point_differential for e in board] == [9, -1, -1, -7]
        assert board[0].team_name == "Team 2"
        assert board[0].matches_played == 2

    def test_open_matches_do_not_count(self, service, tournament, team_ids, add_matches):
        add_matches(tournament.id, [(team_ids[0], team_ids[1])])

        board = service.get_leaderboard(tournament.id)

        assert all(e.matches_played == 0 for e in board)


class TestBracketGeneration:
    @pytest.fixture
    def scored(self, service, scheduler, tournament, team_ids, add_matches):
        """All four teams play once: T1 and T3 win."""
        t1, t2, t3, t4 = team_ids
        played = add_matches(tournament.id, [(t1, t2), (t3, t4)])
        scheduler.report_score(played[0], 11, 2)  # T1 +9
        scheduler.report_score(played[1], 11, 8)  # T3 +3
        return tournament

    def test_generate_all_ranked(self, service, scored, team_ids):
        t1, t2, t3, t4 = team_ids

        bracket = service.generate_bracket(scored.id)
        stored = service.get_bracket(scored.id)

        assert (bracket.bracket_size, bracket.rounds, bracket.bye_count) == (4, 2, 0)
        assert [m.id for m in stored] == [f"{scored.id}-1-0", f"{scored.id}-1-1", f"{scored.id}-2-0"]
        # Seeds: T1, T3, T4, T2
        assert (stored[0].team_a_id, stored[0].team_b_id) == (t1, t2)
        assert (stored[1].team_a_id, stored[1].team_b_id) == (t3, t4)
        assert stored[2].winner_advances_to_match_id is None

    def test_top_two(self, service, scored, team_ids):
        bracket = service.generate_bracket(scored.id, teams_to_advance=2)
        stored = service.get_bracket(scored.id)

        assert bracket.rounds == 1
        assert [(m.team_a_id, m.team_b_id) for m in stored] == [(team_ids[0], team_ids[2])]
        assert service.get_tournament(scored.id).teams_to_advance == 2

    def test_regenerate_replaces_bracket(self, service, scored):
        service.generate_bracket(scored.id)
        service.generate_bracket(scored.id, teams_to_advance=3)
        stored = service.get_bracket(scored.id)

        assert len(stored) == 3
        assert sum(1 for m in stored if m.round == 1 and (m.team_a_id is None or m.team_b_id is None)) == 1

    def test_only_teams_with_results_qualify(self, service, scheduler, tournament, team_ids, add_matches):
        played = add_matches(tournament.id, [(team_ids[0], team_ids[1])])
        scheduler.report_score(played[0], 11, 5)

        with pytest.raises(ValidationError, match="Only 2 teams have completed matches"):
            service.generate_bracket(tournament.id, teams_to_advance=3)

        assert service.get_bracket(tournament.id) == []

    def test_no_results_yet(self, service, tournament):
        with pytest.raises(ValidationError, match="at least 2 teams"):
            service.generate_bracket(tournament.id)

    def test_clear(self, service, scored):
        service.generate_bracket(scored.id)

        assert service.clear_bracket(scored.id) == 3
        assert service.get_bracket(scored.id) == []

    def test_bracket_team_cannot_be_deleted(self, service, scored, team_ids):
        service.generate_bracket(scored.id)
        service.clear_seed_round(scored.id)

        with pytest.raises(ValidationError, match="scheduled for 1 match\\."):
            service.delete_team(team_ids[0])
