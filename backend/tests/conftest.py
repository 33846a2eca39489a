import os

# keep app startup (init_db) off the real database file
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from draw_engine.database import enable_sqlite_foreign_keys, get_session  # noqa: E402
from draw_engine.main import app  # noqa: E402
from draw_engine.models.registration import Registration, RegistrationStatus  # noqa: E402
from draw_engine.models.tournament import Tournament, TournamentStatus  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. sqlite:///:memory: with StaticPool so ALL sessions share the same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. All models MUST be imported before create_all() (see session_fixture)
# 4. App dependency overridden to use test_engine (see client_fixture)
# 5. Tables are dropped after every test so each test starts empty
# 6. Foreign keys are enforced, as on the app engine
test_engine = enable_sqlite_foreign_keys(
    create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
)

ORGANIZER_ID = "organizer-1"


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on a fresh schema"""
    # Import all models to ensure they're registered BEFORE create_all
    from draw_engine.models.group import GroupMatch, TournamentGroup  # noqa: F401
    from draw_engine.models.registration import Registration  # noqa: F401
    from draw_engine.models.tournament import Tournament  # noqa: F401

    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Provide a test client with overridden database session

    Override MUST be set BEFORE TestClient() and stay in place for the
    entire duration so the app never touches its own engine.
    """
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture(name="make_tournament")
def make_tournament_fixture(session: Session):
    """
    Factory: tournament with `approved` approved clubs (club-1..club-N) plus
    optional pending ones.
    """

    def _make(approved: int = 8, pending: int = 0, status: TournamentStatus = TournamentStatus.PUBLISHED):
        tournament = Tournament(
            name="Spring Cup",
            organizer_id=ORGANIZER_ID,
            status=status,
            max_teams=max(16, approved + pending),
            current_teams=approved + pending,
        )
        session.add(tournament)
        session.commit()
        session.refresh(tournament)

        for i in range(1, approved + pending + 1):
            session.add(
                Registration(
                    tournament_id=tournament.id,
                    club_id=f"club-{i}",
                    club_name=f"Club {i}",
                    status=RegistrationStatus.APPROVED if i <= approved else RegistrationStatus.PENDING,
                )
            )
        session.commit()
        return tournament

    return _make
