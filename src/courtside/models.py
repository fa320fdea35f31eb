"""Data models for courtside.

Domain model hierarchy:
- Tournament contains Teams and Courts
- Seed round: Matches between two Teams, ranked by point differential
- Bracket: single-elimination BracketMatches seeded from the ranking
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

# Seed matches use integer ids, bracket matches use "<tournament>-<round>-<match>"
MatchId = Union[int, str]


def utc_now() -> datetime:
    """Naive UTC timestamp, as stored by the database layer."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class RoundType(str, Enum):
    """Tournament round types."""

    SEED = "seed"  # Round-robin style ranking phase
    PLAYOFF = "playoff"  # Single elimination


# ============================================================================
# Core Domain Models
# ============================================================================


@dataclass
class Tournament:
    """Tournament settings."""

    id: int
    name: str
    seed_matches_per_team: int = 3
    total_courts: int = 6
    teams_to_advance: Optional[int] = None
    created_at: Optional[datetime] = None

    def __str__(self) -> str:
        return f"{self.name} ({self.total_courts} courts)"


@dataclass
class Team:
    """A doubles team.

    Players are kept as an ordered pair of display names.
    """

    id: int
    name: str
    player1: str
    player2: str
    tournament_id: Optional[int] = None
    team_number: Optional[int] = None

    @property
    def players(self) -> tuple[str, str]:
        return (self.player1, self.player2)

    def __str__(self) -> str:
        number = f"#{self.team_number} " if self.team_number else ""
        return f"{number}{self.name} ({self.player1} / {self.player2})"


@dataclass
class Court:
    """A physical court, numbered 1..N within its tournament."""

    id: int
    number: int
    tournament_id: Optional[int] = None
    name: Optional[str] = None

    @property
    def label(self) -> str:
        """Display label (custom name or 'Court N')."""
        return self.name or f"Court {self.number}"

    def __str__(self) -> str:
        return self.label


@dataclass
class Match:
    """A seed round match between two teams.

    A match is completed once both scores and the completion time are set.
    Completing a match always releases its court.
    """

    id: int
    team_a_id: int
    team_b_id: int
    tournament_id: Optional[int] = None
    round_type: RoundType = RoundType.SEED
    scheduled_court: Optional[int] = None
    start_time: Optional[datetime] = None
    team_a_score: Optional[int] = None
    team_b_score: Optional[int] = None
    completed_at: Optional[datetime] = None

    @property
    def is_completed(self) -> bool:
        return (
            self.team_a_score is not None
            and self.team_b_score is not None
            and self.completed_at is not None
        )

    @property
    def is_active(self) -> bool:
        """On a court and not yet finished."""
        return self.scheduled_court is not None and self.completed_at is None

    def involves(self, team_id: int) -> bool:
        return team_id in (self.team_a_id, self.team_b_id)

    def __str__(self) -> str:
        if self.is_completed:
            score = f"{self.team_a_score}-{self.team_b_score}"
        else:
            score = "vs"
        return f"Match {self.id}: T{self.team_a_id} {score} T{self.team_b_id}"


@dataclass
class BracketMatch:
    """A single-elimination match.

    Round 1 is the first round; the final is the only match without
    `winner_advances_to_match_id`. Empty team slots mean TBD, or a bye
    when the match is in round 1.
    """

    id: str
    tournament_id: int
    round: int
    match_number: int  # 0-indexed within the round
    team_a_id: Optional[int] = None
    team_b_id: Optional[int] = None
    team_a_score: Optional[int] = None
    team_b_score: Optional[int] = None
    scheduled_court: Optional[int] = None
    start_time: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    winner_advances_to_match_id: Optional[str] = None

    @property
    def is_completed(self) -> bool:
        return (
            self.team_a_score is not None
            and self.team_b_score is not None
            and self.completed_at is not None
        )

    @property
    def is_bye(self) -> bool:
        """First round match with exactly one team."""
        return self.round == 1 and (self.team_a_id is None) != (self.team_b_id is None)

    @property
    def is_ready(self) -> bool:
        """Both teams are known."""
        return self.team_a_id is not None and self.team_b_id is not None

    @property
    def winner_id(self) -> Optional[int]:
        if not self.is_completed or self.team_a_score == self.team_b_score:
            return None
        return self.team_a_id if self.team_a_score > self.team_b_score else self.team_b_id

    def __str__(self) -> str:
        a = f"T{self.team_a_id}" if self.team_a_id is not None else "TBD"
        b = f"T{self.team_b_id}" if self.team_b_id is not None else "TBD"
        return f"R{self.round}M{self.match_number}: {a} vs {b}"


# ============================================================================
# Derived / Result Models
# ============================================================================


@dataclass
class RankingEntry:
    """Seed round aggregate for one team.

    Derived from completed seed matches, never stored.
    """

    team_id: int
    team_name: str = ""
    matches_played: int = 0
    points_for: int = 0
    points_against: int = 0

    @property
    def point_differential(self) -> int:
        return self.points_for - self.points_against

    def __str__(self) -> str:
        return (
            f"T{self.team_id}: {self.matches_played} played, "
            f"{self.points_for}-{self.points_against} ({self.point_differential:+d})"
        )


@dataclass
class SeedSchedule:
    """Output of the seed match generator.

    Pairings are (team_a_id, team_b_id) in round-major order.
    """

    matches_per_team: int
    pairings: list[tuple[int, int]] = field(default_factory=list)
    match_counts: dict[int, int] = field(default_factory=dict)

    @property
    def shortfall(self) -> dict[int, int]:
        """Teams that got fewer matches than requested, with their actual count."""
        return {
            team_id: count
            for team_id, count in self.match_counts.items()
            if count < self.matches_per_team
        }

    @property
    def is_complete(self) -> bool:
        return not self.shortfall


@dataclass
class Bracket:
    """Single-elimination bracket with all of its matches."""

    tournament_id: int
    teams_advancing: int
    bracket_size: int
    rounds: int
    bye_count: int
    matches: list[BracketMatch] = field(default_factory=list)

    def matches_in_round(self, round_number: int) -> list[BracketMatch]:
        return sorted(
            (m for m in self.matches if m.round == round_number),
            key=lambda m: m.match_number,
        )

    def get(self, match_id: str) -> Optional[BracketMatch]:
        for match in self.matches:
            if match.id == match_id:
                return match
        return None

    @property
    def final(self) -> Optional[BracketMatch]:
        finals = self.matches_in_round(self.rounds)
        return finals[0] if finals else None

    def __str__(self) -> str:
        return f"Bracket of {self.bracket_size} ({self.teams_advancing} teams, {self.bye_count} byes)"


@dataclass
class CourtStatus:
    """Dashboard row for a single court."""

    number: int
    label: str
    match_id: Optional[MatchId] = None
    team_a_id: Optional[int] = None
    team_b_id: Optional[int] = None
    start_time: Optional[datetime] = None
    court_id: Optional[int] = None

    @property
    def is_available(self) -> bool:
        return self.match_id is None
