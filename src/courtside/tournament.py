"""Tournament service: teams, seed round and bracket over the database.

Rankings and brackets are always recomputed from the stored match rows;
nothing derived is cached between calls.
"""

import logging
import random
from typing import Optional

from courtside.bracket import build_bracket
from courtside.models import Bracket, RankingEntry, RoundType, SeedSchedule, Team
from courtside.seed_builder import DEFAULT_MAX_ATTEMPTS, generate_seed_matches
from courtside.standings import calculate_rankings, seeding_order
from courtside.storage import (
    BracketMatchORM,
    BracketRepository,
    MatchORM,
    MatchRepository,
    TeamORM,
    TeamRepository,
    TournamentORM,
    TournamentRepository,
    begin_write,
)
from courtside.validation import (
    NotFoundError,
    ValidationError,
    require,
    validate_matches_per_team,
    validate_total_courts,
)

logger = logging.getLogger(__name__)


class TournamentService:
    """Tournament level operations, one transaction each."""

    def __init__(self, session, max_pairing_attempts: int = DEFAULT_MAX_ATTEMPTS):
        self.session = session
        self.max_pairing_attempts = max_pairing_attempts
        self.tournaments = TournamentRepository(session)
        self.teams = TeamRepository(session)
        self.matches = MatchRepository(session)
        self.bracket = BracketRepository(session)

    # ------------------------------------------------------------------
    # Tournaments
    # ------------------------------------------------------------------

    def create_tournament(
        self, name: str, seed_matches_per_team: int = 3, total_courts: int = 6
    ) -> TournamentORM:
        """Create a tournament together with courts 1..total_courts."""
        if not name or not name.strip():
            raise ValidationError("Tournament name is required")
        require(validate_matches_per_team(seed_matches_per_team))
        require(validate_total_courts(total_courts))

        try:
            begin_write(self.session)
            tournament = self.tournaments.create(name.strip(), seed_matches_per_team, total_courts)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        logger.info("Created tournament %d (%s) with %d courts", tournament.id, name, total_courts)
        return tournament

    def get_tournament(self, tournament_id: int, for_update: bool = False) -> TournamentORM:
        tournament = self.tournaments.get_by_id(tournament_id, for_update=for_update)
        if tournament is None:
            raise NotFoundError(f"Tournament {tournament_id} not found")
        return tournament

    def list_tournaments(self) -> list[TournamentORM]:
        return self.tournaments.get_all()

    # ------------------------------------------------------------------
    # Teams
    # ------------------------------------------------------------------

    def add_team(self, tournament_id: int, name: str, player1: str, player2: str) -> TeamORM:
        """Register a team; team numbers are handed out sequentially."""
        try:
            begin_write(self.session)
            tournament = self.get_tournament(tournament_id, for_update=True)
            team = self._validated_team(tournament.id, name, player1, player2)
            team.team_number = self.teams.next_team_number(tournament.id)
            team_orm = self.teams.create(team, tournament.id)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return team_orm

    def add_teams(self, tournament_id: int, teams: list[Team]) -> list[TeamORM]:
        """Register several teams at once (all or nothing)."""
        try:
            begin_write(self.session)
            tournament = self.get_tournament(tournament_id, for_update=True)
            created = []
            for team in teams:
                validated = self._validated_team(tournament.id, team.name, team.player1, team.player2)
                validated.team_number = self.teams.next_team_number(tournament.id)
                created.append(self.teams.create(validated, tournament.id))
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        logger.info("Tournament %d: registered %d teams", tournament_id, len(created))
        return created

    def _validated_team(
        self, tournament_id: int, name: str, player1: str, player2: str, team_id: Optional[int] = None
    ) -> Team:
        name = (name or "").strip()
        player1 = (player1 or "").strip()
        player2 = (player2 or "").strip()

        if not name:
            raise ValidationError("Team name is required")
        if not player1 or not player2:
            raise ValidationError("A team needs two players")

        existing = self.teams.get_by_name(tournament_id, name)
        if existing is not None and existing.id != team_id:
            raise ValidationError(f"Team name '{name}' is already taken")

        return Team(id=0, name=name, player1=player1, player2=player2, tournament_id=tournament_id)

    def update_team(self, team_id: int, name: str, player1: str, player2: str) -> TeamORM:
        """Administrative edit of a team's name and players."""
        try:
            begin_write(self.session)
            team_orm = self.teams.get_by_id(team_id)
            if team_orm is None:
                raise NotFoundError(f"Team {team_id} not found")
            team = self._validated_team(team_orm.tournament_id, name, player1, player2, team_id=team_id)
            team_orm.name = team.name
            team_orm.player1 = team.player1
            team_orm.player2 = team.player2
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return team_orm

    def delete_team(self, team_id: int) -> None:
        """Delete a team that is not scheduled in any match."""
        try:
            begin_write(self.session)
            team_orm = self.teams.get_by_id(team_id)
            if team_orm is None:
                raise NotFoundError(f"Team {team_id} not found")

            total = self.matches.count_by_team(team_id) + self.bracket.count_by_team(team_id)
            if total > 0:
                plural = "" if total == 1 else "es"
                raise ValidationError(
                    f"This team cannot be deleted because it is scheduled for {total} match{plural}. "
                    "Please remove the team from all matches first."
                )

            self.teams.delete(team_orm)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    def list_teams(self, tournament_id: int) -> list[TeamORM]:
        self.get_tournament(tournament_id)
        return self.teams.get_by_tournament(tournament_id)

    # ------------------------------------------------------------------
    # Seed round
    # ------------------------------------------------------------------

    def generate_seed_round(
        self,
        tournament_id: int,
        matches_per_team: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ) -> SeedSchedule:
        """Replace the seed round with freshly generated matches.

        Args:
            tournament_id: Tournament ID
            matches_per_team: Quota per team (defaults to the tournament
                setting; a new value is saved on the tournament)
            rng: Random source for deterministic draws

        Returns:
            SeedSchedule describing what was generated
        """
        try:
            begin_write(self.session)
            tournament = self.get_tournament(tournament_id, for_update=True)
            if matches_per_team is None:
                matches_per_team = tournament.seed_matches_per_team
            require(validate_matches_per_team(matches_per_team))

            team_ids = [t.id for t in self.teams.get_by_tournament(tournament.id)]
            if len(team_ids) < 2:
                raise ValidationError(
                    f"Need at least 2 teams to generate seed matches, found {len(team_ids)}"
                )

            schedule = generate_seed_matches(
                team_ids,
                matches_per_team,
                rng=rng,
                max_attempts=self.max_pairing_attempts,
            )

            deleted = self.matches.delete_by_tournament(tournament.id, RoundType.SEED.value)
            self.matches.create_many(schedule.pairings, tournament.id)
            tournament.seed_matches_per_team = matches_per_team
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info(
            "Tournament %d: seed round generated (%d matches, %d replaced)",
            tournament_id,
            len(schedule.pairings),
            deleted,
        )
        return schedule

    def clear_seed_round(self, tournament_id: int) -> int:
        """Delete every seed match. Returns the number deleted."""
        try:
            begin_write(self.session)
            tournament = self.get_tournament(tournament_id, for_update=True)
            deleted = self.matches.delete_by_tournament(tournament.id, RoundType.SEED.value)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return deleted

    def get_seed_matches(self, tournament_id: int) -> list[MatchORM]:
        self.get_tournament(tournament_id)
        return self.matches.get_by_tournament(tournament_id, RoundType.SEED.value)

    def get_leaderboard(self, tournament_id: int) -> list[RankingEntry]:
        """Seed round ranking by point differential."""
        self.get_tournament(tournament_id)
        teams = [t.to_model() for t in self.teams.get_by_tournament(tournament_id)]
        matches = [m.to_model() for m in self.get_seed_matches(tournament_id)]
        return calculate_rankings(matches, teams)

    # ------------------------------------------------------------------
    # Bracket
    # ------------------------------------------------------------------

    def generate_bracket(self, tournament_id: int, teams_to_advance: Optional[int] = None) -> Bracket:
        """Replace the bracket with one seeded from the current leaderboard.

        Only teams with at least one completed seed match qualify. When
        `teams_to_advance` is omitted every qualified team advances.

        Raises:
            ValidationError: If fewer than 2 teams would advance, or more
                than have qualified
        """
        try:
            begin_write(self.session)
            tournament = self.get_tournament(tournament_id, for_update=True)
            ranked = seeding_order(self.get_leaderboard(tournament.id))
            count = teams_to_advance if teams_to_advance is not None else len(ranked)

            bracket = build_bracket(ranked, count, tournament.id)

            self.bracket.delete_by_tournament(tournament.id)
            self.bracket.create_many(bracket.matches)
            if teams_to_advance is not None:
                tournament.teams_to_advance = teams_to_advance
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info(
            "Tournament %d: bracket of %d generated (%d teams, %d byes)",
            tournament_id,
            bracket.bracket_size,
            bracket.teams_advancing,
            bracket.bye_count,
        )
        return bracket

    def get_bracket(self, tournament_id: int) -> list[BracketMatchORM]:
        """Bracket matches ordered by round and match number."""
        self.get_tournament(tournament_id)
        return self.bracket.get_by_tournament(tournament_id)

    def clear_bracket(self, tournament_id: int) -> int:
        """Delete the whole bracket. Returns the number of matches deleted."""
        try:
            begin_write(self.session)
            tournament = self.get_tournament(tournament_id, for_update=True)
            deleted = self.bracket.delete_by_tournament(tournament.id)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return deleted
