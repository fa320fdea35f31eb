"""Seed round standings ranked by point differential."""

from collections import defaultdict
from typing import Iterable, Sequence

from courtside.models import Match, RankingEntry, RoundType, Team


def calculate_rankings(matches: Iterable[Match], teams: Sequence[Team]) -> list[RankingEntry]:
    """Calculate the seed round leaderboard.

    Only completed seed matches count. Every team of the roster gets an
    entry, including teams that have not played yet.

    Args:
        matches: Matches of the tournament (non-seed and open matches are skipped)
        teams: Tournament roster, in registration order

    Returns:
        RankingEntry list sorted by point differential (descending).
        Equal differentials keep roster order.
    """
    stats = defaultdict(lambda: {"matches_played": 0, "points_for": 0, "points_against": 0})

    for match in matches:
        if match.round_type != RoundType.SEED or not match.is_completed:
            continue

        team_a = stats[match.team_a_id]
        team_a["matches_played"] += 1
        team_a["points_for"] += match.team_a_score
        team_a["points_against"] += match.team_b_score

        team_b = stats[match.team_b_id]
        team_b["matches_played"] += 1
        team_b["points_for"] += match.team_b_score
        team_b["points_against"] += match.team_a_score

    rankings = [
        RankingEntry(team_id=team.id, team_name=team.name, **stats[team.id])
        for team in teams
    ]

    # sort() is stable, so ties stay in roster order
    rankings.sort(key=lambda entry: entry.point_differential, reverse=True)
    return rankings


def seeding_order(rankings: Iterable[RankingEntry]) -> list[int]:
    """Team ids eligible for the bracket, best first.

    Teams without a completed match are left out.
    """
    return [entry.team_id for entry in rankings if entry.matches_played > 0]
