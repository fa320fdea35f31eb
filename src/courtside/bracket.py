"""Single-elimination bracket builder."""

import math
from typing import Optional, Sequence

from courtside.models import Bracket, BracketMatch
from courtside.validation import ValidationError, require, validate_teams_to_advance

SLOT_A = "a"
SLOT_B = "b"


def next_power_of_2(n: int) -> int:
    """Return the next power of 2 >= n.

    Examples:
        >>> next_power_of_2(5)
        8
        >>> next_power_of_2(8)
        8
        >>> next_power_of_2(15)
        16
    """
    if n <= 0:
        return 1
    return 2 ** math.ceil(math.log2(n))


def bracket_match_id(tournament_id: int, round_number: int, match_number: int) -> str:
    """Deterministic id of a bracket match."""
    return f"{tournament_id}-{round_number}-{match_number}"


def round_label(round_number: int, rounds: int) -> str:
    """Human name for a round.

    Examples:
        >>> round_label(3, 3)
        'Final'
        >>> round_label(1, 3)
        'Quarterfinal'
        >>> round_label(1, 5)
        'Round of 32'
    """
    teams_in_round = 2 ** (rounds - round_number + 1)
    if teams_in_round == 2:
        return "Final"
    elif teams_in_round == 4:
        return "Semifinal"
    elif teams_in_round == 8:
        return "Quarterfinal"
    return f"Round of {teams_in_round}"


def get_bracket_pairings(bracket_size: int) -> list[tuple[int, int]]:
    """First round seed pairings for a bracket, in match order.

    Built by recursive halving: the pairings of a bracket of half the size
    are expanded by mirroring each seed against its complement, so seed
    `s` always meets seed `bracket_size + 1 - s` and the top seeds stay in
    opposite halves until the final.

    Args:
        bracket_size: Power of 2 (2, 4, 8, ...)

    Returns:
        List of (top_seed, bottom_seed) tuples, 1-indexed

    Examples:
        >>> get_bracket_pairings(4)
        [(1, 4), (2, 3)]
        >>> get_bracket_pairings(8)
        [(1, 8), (4, 5), (2, 7), (3, 6)]
    """
    if bracket_size < 2 or bracket_size & (bracket_size - 1):
        raise ValueError(f"Bracket size must be a power of 2 (>= 2), got {bracket_size}")

    if bracket_size == 2:
        return [(1, 2)]

    pairings = []
    for seed_a, seed_b in get_bracket_pairings(bracket_size // 2):
        pairings.append((seed_a, bracket_size + 1 - seed_a))
        pairings.append((seed_b, bracket_size + 1 - seed_b))
    return pairings


def winner_slot(match_number: int) -> str:
    """Slot of the next-round match fed by this match.

    Even match numbers feed slot A, odd ones slot B.
    """
    return SLOT_A if match_number % 2 == 0 else SLOT_B


def set_slot(match, slot: str, team_id: Optional[int]) -> None:
    """Write a team into slot A or B (domain or ORM match)."""
    if slot == SLOT_A:
        match.team_a_id = team_id
    else:
        match.team_b_id = team_id


def determine_winner(match) -> int:
    """Winner of a scored bracket match.

    Raises:
        ValidationError: If the match has no scores or the scores are tied
    """
    if match.team_a_score is None or match.team_b_score is None:
        raise ValidationError(f"Match {match.id} has no score yet")
    if match.team_a_score == match.team_b_score:
        raise ValidationError("Scores cannot be tied: a winner is required")
    return match.team_a_id if match.team_a_score > match.team_b_score else match.team_b_id


def build_bracket(
    ranked_team_ids: Sequence[int],
    teams_to_advance: int,
    tournament_id: int,
) -> Bracket:
    """Build a seeded single-elimination bracket.

    Steps:
    1. Bracket size is the next power of 2; missing entries become byes
    2. Top `teams_to_advance` teams fill seeds 1..N in rank order
    3. First round pairs seeds using `get_bracket_pairings`
    4. Every match except the final points at round+1, match // 2
    5. Teams facing a bye are moved straight into their round 2 slot

    Args:
        ranked_team_ids: Team ids, best first
        teams_to_advance: Number of teams entering the bracket
        tournament_id: Owning tournament (used for match ids)

    Returns:
        Bracket with every match of every round

    Raises:
        ValidationError: If teams_to_advance is below 2 or above the ranked count
    """
    require(validate_teams_to_advance(teams_to_advance, len(ranked_team_ids)))

    bracket_size = next_power_of_2(teams_to_advance)
    rounds = int(math.log2(bracket_size))
    bye_count = bracket_size - teams_to_advance

    # Seed slots, None marks a bye
    seeded: list[Optional[int]] = list(ranked_team_ids[:teams_to_advance])
    seeded += [None] * bye_count

    pairings = get_bracket_pairings(bracket_size)

    bracket = Bracket(
        tournament_id=tournament_id,
        teams_advancing=teams_to_advance,
        bracket_size=bracket_size,
        rounds=rounds,
        bye_count=bye_count,
    )

    for round_number in range(1, rounds + 1):
        matches_in_round = bracket_size // 2 ** round_number

        for match_number in range(matches_in_round):
            match = BracketMatch(
                id=bracket_match_id(tournament_id, round_number, match_number),
                tournament_id=tournament_id,
                round=round_number,
                match_number=match_number,
            )

            if round_number == 1:
                top_seed, bottom_seed = pairings[match_number]
                match.team_a_id = seeded[top_seed - 1]
                match.team_b_id = seeded[bottom_seed - 1]

            if round_number < rounds:
                match.winner_advances_to_match_id = bracket_match_id(
                    tournament_id, round_number + 1, match_number // 2
                )

            bracket.matches.append(match)

    resolve_byes(bracket)
    return bracket


def resolve_byes(bracket: Bracket) -> list[BracketMatch]:
    """Advance every first round team without an opponent.

    Returns:
        The bye matches that were resolved
    """
    resolved = []
    for match in bracket.matches_in_round(1):
        if not match.is_bye or match.winner_advances_to_match_id is None:
            continue

        lone_team = match.team_a_id if match.team_a_id is not None else match.team_b_id
        destination = bracket.get(match.winner_advances_to_match_id)
        set_slot(destination, winner_slot(match.match_number), lone_team)
        resolved.append(match)

    return resolved
