"""SQLite storage layer for courtside.

Provides ORM models and repository pattern for data persistence.

Repositories never commit: each service operation reads, checks and writes
inside one transaction and commits once, so a rejected operation leaves
nothing half-written.
"""

from pathlib import Path
from typing import Iterable, Optional

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
    event,
    func,
    or_,
    text,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker
from sqlalchemy.pool import NullPool

from courtside.models import (
    BracketMatch,
    Court,
    Match,
    RoundType,
    Team,
    Tournament,
    utc_now,
)

Base = declarative_base()

# Connection execution option marking a transaction that will write
WRITE_OPTION = "courtside_write"


# ============================================================================
# ORM Models
# ============================================================================


class TournamentORM(Base):
    """Tournament table.

    `total_courts` always equals the number of CourtORM rows, numbered 1..N.
    """

    __tablename__ = "tournaments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    seed_matches_per_team = Column(Integer, nullable=False, default=3)
    total_courts = Column(Integer, nullable=False, default=6)
    teams_to_advance = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=utc_now)

    # Relationships
    teams = relationship("TeamORM", back_populates="tournament", cascade="all, delete-orphan")
    courts = relationship(
        "CourtORM",
        back_populates="tournament",
        cascade="all, delete-orphan",
        order_by="CourtORM.number",
    )

    def to_model(self) -> Tournament:
        return Tournament(
            id=self.id,
            name=self.name,
            seed_matches_per_team=self.seed_matches_per_team,
            total_courts=self.total_courts,
            teams_to_advance=self.teams_to_advance,
            created_at=self.created_at,
        )


class TeamORM(Base):
    """Team table (two players per team)."""

    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tournament_id = Column(Integer, ForeignKey("tournaments.id"), nullable=False)
    name = Column(String(200), nullable=False)
    player1 = Column(String(100), nullable=False)
    player2 = Column(String(100), nullable=False)
    team_number = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=utc_now)

    # Relationships
    tournament = relationship("TournamentORM", back_populates="teams")

    def to_model(self) -> Team:
        return Team(
            id=self.id,
            name=self.name,
            player1=self.player1,
            player2=self.player2,
            tournament_id=self.tournament_id,
            team_number=self.team_number,
        )


class CourtORM(Base):
    """Court table."""

    __tablename__ = "courts"
    __table_args__ = (UniqueConstraint("tournament_id", "number", name="uq_courts_number"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    tournament_id = Column(Integer, ForeignKey("tournaments.id"), nullable=False)
    number = Column(Integer, nullable=False)
    name = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=utc_now)

    # Relationships
    tournament = relationship("TournamentORM", back_populates="courts")

    def to_model(self) -> Court:
        return Court(
            id=self.id,
            number=self.number,
            tournament_id=self.tournament_id,
            name=self.name,
        )


class MatchORM(Base):
    """Seed round match table."""

    __tablename__ = "matches"
    __table_args__ = (
        # At most one match per court; completed matches never keep a court
        Index(
            "uq_matches_court",
            "tournament_id",
            "scheduled_court",
            unique=True,
            sqlite_where=text("scheduled_court IS NOT NULL"),
            postgresql_where=text("scheduled_court IS NOT NULL"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    tournament_id = Column(Integer, ForeignKey("tournaments.id"), nullable=False)
    team_a_id = Column(Integer, ForeignKey("teams.id"), nullable=False)
    team_b_id = Column(Integer, ForeignKey("teams.id"), nullable=False)
    round_type = Column(String(10), nullable=False, default=RoundType.SEED.value)
    scheduled_court = Column(Integer, nullable=True)
    start_time = Column(DateTime, nullable=True)
    team_a_score = Column(Integer, nullable=True)
    team_b_score = Column(Integer, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utc_now)

    # Relationships
    team_a = relationship("TeamORM", foreign_keys=[team_a_id])
    team_b = relationship("TeamORM", foreign_keys=[team_b_id])

    def to_model(self) -> Match:
        return Match(
            id=self.id,
            team_a_id=self.team_a_id,
            team_b_id=self.team_b_id,
            tournament_id=self.tournament_id,
            round_type=RoundType(self.round_type),
            scheduled_court=self.scheduled_court,
            start_time=self.start_time,
            team_a_score=self.team_a_score,
            team_b_score=self.team_b_score,
            completed_at=self.completed_at,
        )


class BracketMatchORM(Base):
    """Bracket match table.

    Rows are keyed by "<tournament>-<round>-<match>" and linked to the
    next round through `winner_advances_to_match_id`.
    """

    __tablename__ = "bracket_matches"
    __table_args__ = (
        Index(
            "uq_bracket_matches_court",
            "tournament_id",
            "scheduled_court",
            unique=True,
            sqlite_where=text("scheduled_court IS NOT NULL"),
            postgresql_where=text("scheduled_court IS NOT NULL"),
        ),
    )

    id = Column(String(64), primary_key=True)
    tournament_id = Column(Integer, ForeignKey("tournaments.id"), nullable=False)
    round = Column(Integer, nullable=False)
    match_number = Column(Integer, nullable=False)
    team_a_id = Column(Integer, ForeignKey("teams.id"), nullable=True)  # None = TBD or BYE
    team_b_id = Column(Integer, ForeignKey("teams.id"), nullable=True)
    team_a_score = Column(Integer, nullable=True)
    team_b_score = Column(Integer, nullable=True)
    scheduled_court = Column(Integer, nullable=True)
    start_time = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    winner_advances_to_match_id = Column(
        String(64), ForeignKey("bracket_matches.id"), nullable=True
    )
    created_at = Column(DateTime, default=utc_now)

    def to_model(self) -> BracketMatch:
        return BracketMatch(
            id=self.id,
            tournament_id=self.tournament_id,
            round=self.round,
            match_number=self.match_number,
            team_a_id=self.team_a_id,
            team_b_id=self.team_b_id,
            team_a_score=self.team_a_score,
            team_b_score=self.team_b_score,
            scheduled_court=self.scheduled_court,
            start_time=self.start_time,
            completed_at=self.completed_at,
            winner_advances_to_match_id=self.winner_advances_to_match_id,
        )


# ============================================================================
# Database Manager
# ============================================================================


class DatabaseManager:
    """Manages SQLite database connection and session."""

    def __init__(self, db_path: str = ".courtside/courtside.sqlite", busy_timeout: float = 5.0):
        """Initialize database manager.

        Args:
            db_path: Path to SQLite database file
            busy_timeout: Seconds a writer waits for another writer's lock
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        # Use NullPool for SQLite to avoid connection pool issues
        self.engine = create_engine(
            f"sqlite:///{self.db_path}",
            echo=False,
            poolclass=NullPool,
            connect_args={"check_same_thread": False, "timeout": busy_timeout},
        )

        # WAL lets readers and a writer work side by side. SQLite ignores
        # SELECT ... FOR UPDATE, so write transactions (see begin_write) take
        # the write lock up front and check-then-write sequences cannot
        # interleave. Plain reads use a deferred transaction and never block.
        @event.listens_for(self.engine, "connect")
        def _on_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

        @event.listens_for(self.engine, "begin")
        def _on_begin(conn):
            if conn.get_execution_options().get(WRITE_OPTION):
                conn.exec_driver_sql("BEGIN IMMEDIATE")
            else:
                conn.exec_driver_sql("BEGIN")

        self.SessionLocal = sessionmaker(bind=self.engine)

    def create_tables(self):
        """Create all tables in the database."""
        Base.metadata.create_all(self.engine)

    def drop_tables(self):
        """Drop all tables (use with caution!)."""
        Base.metadata.drop_all(self.engine)

    def get_session(self):
        """Get a new database session."""
        return self.SessionLocal()


def begin_write(session) -> None:
    """Start a write transaction on the session.

    A read transaction left open by earlier queries is ended first, so the
    write sees the latest committed state. The new transaction holds the
    SQLite write lock until commit or rollback; another writer waits up to
    the busy timeout.
    """
    if session.in_transaction():
        session.rollback()
    session.connection(execution_options={WRITE_OPTION: True})


# ============================================================================
# Repository Pattern
# ============================================================================


class TournamentRepository:
    """Repository for Tournament operations."""

    def __init__(self, session):
        self.session = session

    def create(self, name: str, seed_matches_per_team: int, total_courts: int) -> TournamentORM:
        """Create a tournament with courts 1..total_courts."""
        tournament = TournamentORM(
            name=name,
            seed_matches_per_team=seed_matches_per_team,
            total_courts=total_courts,
        )
        tournament.courts = [CourtORM(number=n) for n in range(1, total_courts + 1)]
        self.session.add(tournament)
        self.session.flush()
        return tournament

    def get_all(self) -> list[TournamentORM]:
        """Get all tournaments (newest first)."""
        return self.session.query(TournamentORM).order_by(TournamentORM.id.desc()).all()

    def get_by_id(self, tournament_id: int, for_update: bool = False) -> Optional[TournamentORM]:
        """Get tournament by ID.

        Args:
            tournament_id: Database ID
            for_update: Lock the row until the transaction ends
        """
        query = self.session.query(TournamentORM).filter(TournamentORM.id == tournament_id)
        if for_update:
            query = query.with_for_update()
        return query.first()


class TeamRepository:
    """Repository for Team operations."""

    def __init__(self, session):
        self.session = session

    def create(self, team: Team, tournament_id: int) -> TeamORM:
        """Create a new team.

        Args:
            team: Team domain model (id is ignored)
            tournament_id: Owning tournament

        Returns:
            Created TeamORM instance with auto-generated ID
        """
        team_orm = TeamORM(
            tournament_id=tournament_id,
            name=team.name,
            player1=team.player1,
            player2=team.player2,
            team_number=team.team_number,
        )
        self.session.add(team_orm)
        self.session.flush()
        return team_orm

    def get_by_id(self, team_id: int) -> Optional[TeamORM]:
        return self.session.query(TeamORM).filter(TeamORM.id == team_id).first()

    def get_by_tournament(self, tournament_id: int) -> list[TeamORM]:
        """Get teams of a tournament in registration order."""
        return (
            self.session.query(TeamORM)
            .filter(TeamORM.tournament_id == tournament_id)
            .order_by(TeamORM.id)
            .all()
        )

    def get_by_name(self, tournament_id: int, name: str) -> Optional[TeamORM]:
        return (
            self.session.query(TeamORM)
            .filter(TeamORM.tournament_id == tournament_id, TeamORM.name == name)
            .first()
        )

    def next_team_number(self, tournament_id: int) -> int:
        current = (
            self.session.query(func.max(TeamORM.team_number))
            .filter(TeamORM.tournament_id == tournament_id)
            .scalar()
        )
        return (current or 0) + 1

    def delete(self, team_orm: TeamORM) -> None:
        self.session.delete(team_orm)


class CourtRepository:
    """Repository for Court operations."""

    def __init__(self, session):
        self.session = session

    def get_by_id(self, court_id: int) -> Optional[CourtORM]:
        return self.session.query(CourtORM).filter(CourtORM.id == court_id).first()

    def get_by_tournament(self, tournament_id: int) -> list[CourtORM]:
        """Get courts of a tournament ordered by number."""
        return (
            self.session.query(CourtORM)
            .filter(CourtORM.tournament_id == tournament_id)
            .order_by(CourtORM.number)
            .all()
        )

    def get_by_number(self, tournament_id: int, number: int) -> Optional[CourtORM]:
        return (
            self.session.query(CourtORM)
            .filter(CourtORM.tournament_id == tournament_id, CourtORM.number == number)
            .first()
        )

    def max_number(self, tournament_id: int) -> int:
        current = (
            self.session.query(func.max(CourtORM.number))
            .filter(CourtORM.tournament_id == tournament_id)
            .scalar()
        )
        return current or 0

    def create(self, tournament_id: int, number: int) -> CourtORM:
        court = CourtORM(tournament_id=tournament_id, number=number)
        self.session.add(court)
        self.session.flush()
        return court

    def delete(self, court_orm: CourtORM) -> None:
        self.session.delete(court_orm)


class MatchRepository:
    """Repository for seed round Match operations."""

    def __init__(self, session):
        self.session = session

    def create_many(self, pairings: Iterable[tuple[int, int]], tournament_id: int) -> list[MatchORM]:
        """Insert seed matches for (team_a_id, team_b_id) pairings."""
        matches = [
            MatchORM(
                tournament_id=tournament_id,
                team_a_id=team_a_id,
                team_b_id=team_b_id,
                round_type=RoundType.SEED.value,
            )
            for team_a_id, team_b_id in pairings
        ]
        self.session.add_all(matches)
        self.session.flush()
        return matches

    def get_by_id(self, match_id: int, for_update: bool = False) -> Optional[MatchORM]:
        query = self.session.query(MatchORM).filter(MatchORM.id == match_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_by_tournament(self, tournament_id: int, round_type: Optional[str] = None) -> list[MatchORM]:
        query = self.session.query(MatchORM).filter(MatchORM.tournament_id == tournament_id)
        if round_type is not None:
            query = query.filter(MatchORM.round_type == round_type)
        return query.order_by(MatchORM.id).all()

    def get_active(self, tournament_id: int) -> list[MatchORM]:
        """Matches currently on a court."""
        return (
            self.session.query(MatchORM)
            .filter(
                MatchORM.tournament_id == tournament_id,
                MatchORM.scheduled_court.isnot(None),
                MatchORM.completed_at.is_(None),
            )
            .all()
        )

    def count_by_team(self, team_id: int) -> int:
        return (
            self.session.query(MatchORM)
            .filter(or_(MatchORM.team_a_id == team_id, MatchORM.team_b_id == team_id))
            .count()
        )

    def delete_by_tournament(self, tournament_id: int, round_type: str = RoundType.SEED.value) -> int:
        """Delete every match of a round type.

        Returns:
            Number of matches deleted
        """
        return (
            self.session.query(MatchORM)
            .filter(MatchORM.tournament_id == tournament_id, MatchORM.round_type == round_type)
            .delete()
        )


class BracketRepository:
    """Repository for BracketMatch operations."""

    def __init__(self, session):
        self.session = session

    def create_many(self, matches: Iterable[BracketMatch]) -> list[BracketMatchORM]:
        """Insert bracket matches.

        Later rounds are inserted first so every advancement pointer
        references an existing row.
        """
        rows = [
            BracketMatchORM(
                id=m.id,
                tournament_id=m.tournament_id,
                round=m.round,
                match_number=m.match_number,
                team_a_id=m.team_a_id,
                team_b_id=m.team_b_id,
                winner_advances_to_match_id=m.winner_advances_to_match_id,
            )
            for m in sorted(matches, key=lambda m: (-m.round, m.match_number))
        ]
        self.session.add_all(rows)
        self.session.flush()
        return rows

    def get_by_id(self, match_id: str, for_update: bool = False) -> Optional[BracketMatchORM]:
        query = self.session.query(BracketMatchORM).filter(BracketMatchORM.id == match_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_by_tournament(self, tournament_id: int) -> list[BracketMatchORM]:
        """Bracket matches ordered by round, then match number."""
        return (
            self.session.query(BracketMatchORM)
            .filter(BracketMatchORM.tournament_id == tournament_id)
            .order_by(BracketMatchORM.round, BracketMatchORM.match_number)
            .all()
        )

    def get_active(self, tournament_id: int) -> list[BracketMatchORM]:
        """Bracket matches currently on a court."""
        return (
            self.session.query(BracketMatchORM)
            .filter(
                BracketMatchORM.tournament_id == tournament_id,
                BracketMatchORM.scheduled_court.isnot(None),
                BracketMatchORM.completed_at.is_(None),
            )
            .all()
        )

    def count_by_team(self, team_id: int) -> int:
        return (
            self.session.query(BracketMatchORM)
            .filter(
                or_(BracketMatchORM.team_a_id == team_id, BracketMatchORM.team_b_id == team_id)
            )
            .count()
        )

    def delete_by_tournament(self, tournament_id: int) -> int:
        """Delete the whole bracket of a tournament.

        Returns:
            Number of matches deleted
        """
        return (
            self.session.query(BracketMatchORM)
            .filter(BracketMatchORM.tournament_id == tournament_id)
            .delete()
        )
