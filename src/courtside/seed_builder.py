"""Seed round builder: random non-repeating pairings under a per-team quota."""

import logging
import random
from typing import Optional, Sequence

from courtside.models import SeedSchedule
from courtside.validation import require, validate_matches_per_team

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 100


def pair_key(team_a_id: int, team_b_id: int) -> frozenset:
    """Unordered key for a pairing."""
    return frozenset((team_a_id, team_b_id))


def _draw_pair(
    available: list[int],
    played_pairs: set[frozenset],
    rng: random.Random,
    max_attempts: int,
) -> Optional[tuple[int, int]]:
    """Draw two distinct teams that have not met yet.

    Returns None once `max_attempts` draws have all hit used pairs.
    """
    for _ in range(max_attempts):
        index_a = rng.randrange(len(available))
        remaining = available[:index_a] + available[index_a + 1:]
        if not remaining:
            return None

        team_a = available[index_a]
        team_b = remaining[rng.randrange(len(remaining))]

        if pair_key(team_a, team_b) not in played_pairs:
            return team_a, team_b

    return None


def generate_seed_matches(
    team_ids: Sequence[int],
    matches_per_team: int,
    rng: Optional[random.Random] = None,
    random_seed: Optional[int] = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> SeedSchedule:
    """Generate seed round pairings.

    Runs `matches_per_team` rounds. In each round every team still under
    its quota is eligible for at most one match. Pairs are drawn at random
    and redrawn (up to `max_attempts` times) when the two teams already
    met in an earlier round. A round stops early when fewer than two teams
    are left or no fresh pair turns up, so with an odd team count or an
    exhausted pairing space some teams end below the quota. That is a
    degraded result, reported through `SeedSchedule.shortfall`, not an error.

    Args:
        team_ids: Team identifiers
        matches_per_team: Target number of matches per team (>= 1)
        rng: Random source (anything with `randrange`); takes precedence
            over `random_seed`
        random_seed: Seed for a fresh `random.Random` when `rng` is omitted
        max_attempts: Draws per pairing before the round is abandoned

    Returns:
        SeedSchedule with the pairings and actual per-team match counts

    Raises:
        ValidationError: If matches_per_team is below 1
    """
    require(validate_matches_per_team(matches_per_team))

    if rng is None:
        rng = random.Random(random_seed)

    schedule = SeedSchedule(
        matches_per_team=matches_per_team,
        match_counts={team_id: 0 for team_id in team_ids},
    )
    played_pairs: set[frozenset] = set()

    for round_index in range(matches_per_team):
        available = [
            team_id
            for team_id in team_ids
            if schedule.match_counts[team_id] < matches_per_team
        ]

        while len(available) >= 2:
            pair = _draw_pair(available, played_pairs, rng, max_attempts)
            if pair is None:
                logger.debug(
                    "Round %d: no unused pairing among %d teams", round_index + 1, len(available)
                )
                break

            team_a, team_b = pair
            played_pairs.add(pair_key(team_a, team_b))
            schedule.pairings.append((team_a, team_b))
            schedule.match_counts[team_a] += 1
            schedule.match_counts[team_b] += 1

            available.remove(team_a)
            available.remove(team_b)

    if len(schedule.match_counts) >= 2 and schedule.shortfall:
        logger.warning(
            "Seed schedule short for %d of %d teams (requested %d matches each)",
            len(schedule.shortfall),
            len(schedule.match_counts),
            matches_per_team,
        )

    return schedule
