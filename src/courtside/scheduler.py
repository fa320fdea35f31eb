"""Court scheduler: live assignment of matches to a pool of numbered courts.

Each mutating method is one write transaction: it locks the rows it touches,
runs every check, writes, then commits once. Any failure rolls the whole
operation back.

Seed matches are addressed by integer ids and bracket matches by their
string ids ("<tournament>-<round>-<match>").
"""

import logging
from typing import Optional, Union

from courtside.bracket import determine_winner, set_slot, winner_slot
from courtside.models import CourtStatus, MatchId, utc_now
from courtside.storage import (
    BracketMatchORM,
    BracketRepository,
    CourtORM,
    CourtRepository,
    MatchORM,
    MatchRepository,
    TournamentORM,
    TournamentRepository,
    begin_write,
)
from courtside.validation import NotFoundError, ValidationError, require, validate_score

logger = logging.getLogger(__name__)

AnyMatchORM = Union[MatchORM, BracketMatchORM]


def is_bracket_match_id(match_id: MatchId) -> bool:
    return isinstance(match_id, str)


class CourtScheduler:
    """Assigns matches to courts and keeps court occupancy consistent.

    Invariant: active matches (court set, not completed) map to distinct
    courts, all numbered within 1..total_courts, and no team is active on
    two courts at once.
    """

    def __init__(self, session):
        self.session = session
        self.tournaments = TournamentRepository(session)
        self.courts = CourtRepository(session)
        self.matches = MatchRepository(session)
        self.bracket = BracketRepository(session)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _get_tournament(self, tournament_id: int, for_update: bool = False) -> TournamentORM:
        tournament = self.tournaments.get_by_id(tournament_id, for_update=for_update)
        if tournament is None:
            raise NotFoundError(f"Tournament {tournament_id} not found")
        return tournament

    def _get_match(self, match_id: MatchId, for_update: bool = False) -> AnyMatchORM:
        if is_bracket_match_id(match_id):
            match = self.bracket.get_by_id(match_id, for_update=for_update)
        else:
            match = self.matches.get_by_id(match_id, for_update=for_update)
        if match is None:
            raise NotFoundError(f"Match {match_id} not found")
        return match

    def _active_matches(self, tournament_id: int) -> list[AnyMatchORM]:
        return self.matches.get_active(tournament_id) + self.bracket.get_active(tournament_id)

    def _court_occupant(self, tournament_id: int, court_number: int) -> Optional[AnyMatchORM]:
        for match in self._active_matches(tournament_id):
            if match.scheduled_court == court_number:
                return match
        return None

    # ------------------------------------------------------------------
    # Match operations
    # ------------------------------------------------------------------

    def assign_court(self, match_id: MatchId, court_number: int) -> AnyMatchORM:
        """Put a match on a court.

        A match already on another court is moved.

        Raises:
            NotFoundError: If the match does not exist
            ValidationError: If the match is completed or missing a team,
                the court does not exist or is taken by another active
                match, or one of the teams is already playing elsewhere
        """
        try:
            begin_write(self.session)
            match = self._get_match(match_id, for_update=True)
            tournament = self._get_tournament(match.tournament_id, for_update=True)

            if match.completed_at is not None:
                raise ValidationError(f"Match {match_id} is already completed")

            if match.team_a_id is None or match.team_b_id is None:
                raise ValidationError(f"Match {match_id} does not have both teams yet")

            if not 1 <= court_number <= tournament.total_courts:
                raise ValidationError(
                    f"Court {court_number} does not exist "
                    f"(courts 1-{tournament.total_courts})"
                )

            teams = {match.team_a_id, match.team_b_id}
            for other in self._active_matches(tournament.id):
                if other is match:
                    continue
                if other.scheduled_court == court_number:
                    raise ValidationError(f"Court {court_number} is already in use")
                busy = teams & {other.team_a_id, other.team_b_id}
                if busy:
                    raise ValidationError(
                        f"Team {busy.pop()} is already playing on court {other.scheduled_court}"
                    )

            match.scheduled_court = court_number
            match.start_time = utc_now()
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info("Match %s assigned to court %d", match_id, court_number)
        return match

    def unassign_court(self, match_id: MatchId) -> AnyMatchORM:
        """Take a match off its court. Calling it twice is harmless."""
        try:
            begin_write(self.session)
            match = self._get_match(match_id, for_update=True)
            match.scheduled_court = None
            match.start_time = None
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return match

    def report_score(self, match_id: MatchId, score_a: int, score_b: int) -> AnyMatchORM:
        """Record a final score and free the match's court.

        Seed matches may be scored again to correct a result. Bracket
        matches need both teams, a winner, and can only be scored once;
        the winner is written into the next round match.

        Raises:
            NotFoundError: If the match does not exist
            ValidationError: If the scores are invalid or the bracket match
                cannot be scored
        """
        try:
            begin_write(self.session)
            match = self._get_match(match_id, for_update=True)

            if isinstance(match, BracketMatchORM):
                self._report_bracket_score(match, score_a, score_b)
            else:
                require(validate_score(score_a, score_b))
                match.team_a_score = score_a
                match.team_b_score = score_b
                match.completed_at = utc_now()
                match.scheduled_court = None

            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info("Match %s scored %d-%d", match_id, score_a, score_b)
        return match

    def _report_bracket_score(self, match: BracketMatchORM, score_a: int, score_b: int) -> None:
        require(validate_score(score_a, score_b, allow_tie=False))

        if match.completed_at is not None:
            raise ValidationError(f"Match {match.id} is already completed")
        if match.team_a_id is None or match.team_b_id is None:
            raise ValidationError(f"Match {match.id} does not have both teams yet")

        destination = None
        if match.winner_advances_to_match_id is not None:
            destination = self.bracket.get_by_id(match.winner_advances_to_match_id, for_update=True)
            if destination is None:
                raise NotFoundError(f"Match {match.winner_advances_to_match_id} not found")
            if destination.completed_at is not None:
                raise ValidationError(f"Match {destination.id} is already completed")

        match.team_a_score = score_a
        match.team_b_score = score_b
        match.completed_at = utc_now()
        match.scheduled_court = None

        if destination is not None:
            winner_id = determine_winner(match)
            set_slot(destination, winner_slot(match.match_number), winner_id)
            logger.info("Team %d advances to %s", winner_id, destination.id)

    # ------------------------------------------------------------------
    # Court pool
    # ------------------------------------------------------------------

    def add_court(self, tournament_id: int) -> CourtORM:
        """Append court number max+1."""
        try:
            begin_write(self.session)
            tournament = self._get_tournament(tournament_id, for_update=True)
            number = self.courts.max_number(tournament.id) + 1
            court = self.courts.create(tournament.id, number)
            tournament.total_courts = number
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info("Tournament %d: added court %d", tournament_id, number)
        return court

    def remove_court(self, tournament_id: int) -> int:
        """Remove the highest numbered court.

        Returns:
            The new number of courts

        Raises:
            NotFoundError: If the tournament does not exist
            ValidationError: If it is the last court or it is in use
        """
        try:
            begin_write(self.session)
            tournament = self._get_tournament(tournament_id, for_update=True)

            if tournament.total_courts <= 1:
                raise ValidationError("Cannot remove the last court")

            highest = tournament.total_courts
            if self._court_occupant(tournament.id, highest) is not None:
                raise ValidationError(
                    f"Court {highest} is currently in use and cannot be removed"
                )

            court = self.courts.get_by_number(tournament.id, highest)
            if court is not None:
                self.courts.delete(court)
            tournament.total_courts = highest - 1
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info("Tournament %d: removed court %d", tournament_id, highest)
        return highest - 1

    def rename_court(self, court_id: int, name: Optional[str]) -> CourtORM:
        """Set a court's label. An empty name restores the default label."""
        try:
            begin_write(self.session)
            court = self.courts.get_by_id(court_id)
            if court is None:
                raise NotFoundError(f"Court {court_id} not found")
            court.name = (name or "").strip() or None
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return court

    # ------------------------------------------------------------------
    # Read models
    # ------------------------------------------------------------------

    def get_court_status(self, tournament_id: int) -> list[CourtStatus]:
        """One row per court, with the match playing on it (if any)."""
        tournament = self._get_tournament(tournament_id)
        occupied = {m.scheduled_court: m for m in self._active_matches(tournament.id)}

        statuses = []
        for court in self.courts.get_by_tournament(tournament.id):
            status = CourtStatus(number=court.number, label=court.to_model().label, court_id=court.id)
            match = occupied.get(court.number)
            if match is not None:
                status.match_id = match.id
                status.team_a_id = match.team_a_id
                status.team_b_id = match.team_b_id
                status.start_time = match.start_time
            statuses.append(status)
        return statuses

    def get_assignable_matches(self, tournament_id: int) -> list[AnyMatchORM]:
        """Matches waiting for a court: both teams known, not started, not done."""
        tournament = self._get_tournament(tournament_id)
        candidates = self.matches.get_by_tournament(tournament.id) + self.bracket.get_by_tournament(
            tournament.id
        )
        return [
            m
            for m in candidates
            if m.scheduled_court is None
            and m.completed_at is None
            and m.team_a_id is not None
            and m.team_b_id is not None
        ]
