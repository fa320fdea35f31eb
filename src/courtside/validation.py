"""Error types and input validation rules.

Validation errors are user-correctable and their messages are meant to be
shown verbatim. All checks run before any write so a rejected operation
never leaves a half-updated record.
"""


class CourtsideError(Exception):
    """Base class for errors raised by courtside operations."""

    pass


class ValidationError(CourtsideError):
    """Raised when an operation is rejected because of its input or the current state."""

    pass


class NotFoundError(CourtsideError):
    """Raised when a tournament, team, match or court id does not exist."""

    pass


def validate_score(score_a, score_b, allow_tie: bool = True) -> tuple[bool, str]:
    """Validate a reported score pair.

    Args:
        score_a: Points scored by team A
        score_b: Points scored by team B
        allow_tie: Whether equal scores are accepted

    Returns:
        Tuple of (is_valid, error_message)

    Examples:
        >>> validate_score(11, 7)
        (True, '')
        >>> validate_score(-1, 11)
        (False, 'Scores cannot be negative')
        >>> validate_score(9, 9, allow_tie=False)
        (False, 'Scores cannot be tied: a winner is required')
    """
    for score in (score_a, score_b):
        if isinstance(score, bool) or not isinstance(score, int):
            return False, f"Scores must be whole numbers, got {score!r}"

    if score_a < 0 or score_b < 0:
        return False, "Scores cannot be negative"

    if not allow_tie and score_a == score_b:
        return False, "Scores cannot be tied: a winner is required"

    return True, ""


def validate_teams_to_advance(teams_to_advance: int, qualified: int) -> tuple[bool, str]:
    """Validate the number of teams entering the bracket.

    Args:
        teams_to_advance: Requested number of bracket teams
        qualified: Teams eligible to advance (ranked, at least one match played)

    Returns:
        Tuple of (is_valid, error_message)
    """
    if teams_to_advance < 2:
        return False, "Need at least 2 teams to generate bracket"

    if teams_to_advance > qualified:
        return (
            False,
            f"Only {qualified} teams have completed matches. "
            f"Cannot advance {teams_to_advance} teams.",
        )

    return True, ""


def validate_total_courts(total_courts: int) -> tuple[bool, str]:
    """A tournament needs at least one court."""
    if isinstance(total_courts, bool) or not isinstance(total_courts, int):
        return False, f"Number of courts must be a whole number, got {total_courts!r}"
    if total_courts < 1:
        return False, f"A tournament needs at least 1 court, got {total_courts}"
    return True, ""


def validate_matches_per_team(matches_per_team: int) -> tuple[bool, str]:
    """Seed rounds need at least one match per team."""
    if isinstance(matches_per_team, bool) or not isinstance(matches_per_team, int):
        return False, f"Matches per team must be a whole number, got {matches_per_team!r}"
    if matches_per_team < 1:
        return False, f"Matches per team must be at least 1, got {matches_per_team}"
    return True, ""


def require(result: tuple[bool, str]) -> None:
    """Raise ValidationError for a failed (is_valid, error_message) result."""
    is_valid, error_msg = result
    if not is_valid:
        raise ValidationError(error_msg)
