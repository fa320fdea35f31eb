"""Shared fixtures: a temporary SQLite database and the services on top of it."""

import pytest

from courtside.scheduler import CourtScheduler
from courtside.storage import DatabaseManager, MatchRepository
from courtside.tournament import TournamentService


@pytest.fixture
def db(tmp_path):
    """Create a temporary SQLite database with all tables."""
    manager = DatabaseManager(str(tmp_path / "test.sqlite"))
    manager.create_tables()
    return manager


@pytest.fixture
def db_session(db):
    session = db.get_session()
    yield session
    session.close()


@pytest.fixture
def service(db_session):
    return TournamentService(db_session)


@pytest.fixture
def scheduler(db_session):
    return CourtScheduler(db_session)


@pytest.fixture
def tournament(service):
    """Tournament with 6 courts and 4 teams."""
    t = service.create_tournament("Spring Open", seed_matches_per_team=2, total_courts=6)
    for n in range(1, 5):
        service.add_team(t.id, f"Team {n}", f"Player {n}A", f"Player {n}B")
    return t


@pytest.fixture
def team_ids(service, tournament):
    return [t.id for t in service.list_teams(tournament.id)]


@pytest.fixture
def add_matches(db_session):
    """Insert seed matches with known pairings and return their ids."""

    def _add(tournament_id, pairings):
        matches = MatchRepository(db_session).create_many(pairings, tournament_id)
        db_session.commit()
        return [m.id for m in matches]

    return _add
