# src/tolkbook/conftest.py
"""
Shared pytest fixtures.

Tests live next to the code they cover as *_test.py files. Tests that need
the database get a PostgreSQL database rebuilt from migrations/ once per
session; when no server answers, those tests are skipped and the pure
unit tests still run.
"""

import os

# Must happen before tolkbook.config is imported
os.environ["TOLKBOOK_ENV"] = "test"
os.environ.setdefault("DATABASE_URL", "postgresql://localhost:5432/tolkbook_test")

from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock

import psycopg
import pytest
from psycopg import sql

from tolkbook import db
from tolkbook.config import config

MIGRATIONS_DIR = Path(__file__).resolve().parents[2] / "migrations"
TABLES = ("users", "jobs", "translator_jobs", "distances")

# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def test_db():
    """
    Build the test database from scratch, once per session.

    The database named in DATABASE_URL is dropped and recreated through the
    server's "postgres" maintenance database, then every migrations/*.sql
    file is applied in name order.
    """
    server_url, _, db_name = config.database_url.rpartition("/")
    db_name = db_name.split("?")[0]

    try:
        admin = psycopg.connect(f"{server_url}/postgres", autocommit=True, connect_timeout=3)
    except psycopg.OperationalError as e:
        pytest.skip(f"PostgreSQL is not available: {e}")

    with admin:
        # Sessions left over from an interrupted run block DROP DATABASE
        admin.execute(
            "SELECT pg_terminate_backend(pid) FROM pg_stat_activity "
            "WHERE datname = %s AND pid <> pg_backend_pid()",
            (db_name,),
        )
        admin.execute(sql.SQL("DROP DATABASE IF EXISTS {}").format(sql.Identifier(db_name)))
        admin.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(db_name)))

    migrations = sorted(MIGRATIONS_DIR.glob("*.sql"))
    if not migrations:
        raise FileNotFoundError(f"No migration files found in {MIGRATIONS_DIR}")

    with psycopg.connect(config.database_url) as conn:
        for migration in migrations:
            conn.execute(migration.read_text())

    yield config.database_url


@pytest.fixture
def db_connection(test_db):
    """
    A connection every db helper uses for the duration of one test.

    Tables start empty; whatever the test writes is rolled back afterwards.
    """
    conn = psycopg.connect(config.database_url)
    conn.execute(
        sql.SQL("TRUNCATE {} RESTART IDENTITY CASCADE").format(
            sql.SQL(", ").join(sql.Identifier(t) for t in TABLES)
        )
    )
    conn.commit()

    db.set_connection_override(conn)

    yield conn

    conn.rollback()
    db.clear_connection_override()
    conn.close()


# =============================================================================
# Repository Fixtures
# =============================================================================


@pytest.fixture
def notifier():
    """A stand-in Notifier that records calls instead of queueing them."""
    from tolkbook.booking.notifier import Notifier

    mock = MagicMock(spec=Notifier)
    mock.push_to_translators.return_value = "push-job"
    mock.push_to_users.return_value = "push-job"
    mock.sms_to_translators.return_value = "sms-job"
    mock.email.return_value = "email-job"
    return mock


@pytest.fixture
def booking_repo(db_connection, notifier):
    """Provide a BookingRepository with a mocked notifier."""
    from tolkbook.booking import BookingRepository

    return BookingRepository(notifier=notifier)


@pytest.fixture
def job_repo(db_connection):
    from tolkbook.booking import JobRepository

    return JobRepository()


# =============================================================================
# Seed Data Fixtures
# =============================================================================


def make_user(user_type: str, name: str, **extra) -> dict:
    from tolkbook.booking import UserRepository

    return UserRepository().create(
        {
            "name": name,
            "email": f"{name.lower().replace(' ', '.')}@example.com",
            "user_type": user_type,
            "slug": name.lower().replace(" ", "-"),
            **extra,
        }
    )


def make_job(customer: dict, **overrides) -> dict:
    from tolkbook.booking import JobRepository

    attributes = {
        "user_id": customer["id"],
        "from_language": "Swedish",
        "immediate": "no",
        "due": datetime.now(timezone.utc) + timedelta(days=3),
        "duration": 60,
        "status": "pending",
        "user_email": customer["email"],
    }
    attributes.update(overrides)
    return JobRepository().create(attributes)


@pytest.fixture
def sample_customer(db_connection) -> dict:
    return make_user("customer", "Carla Customer")


@pytest.fixture
def sample_translator(db_connection) -> dict:
    return make_user("translator", "Tomas Translator", phone="+46700000001")


@pytest.fixture
def sample_admin(db_connection) -> dict:
    return make_user("admin", "Ada Admin")


@pytest.fixture
def sample_job(db_connection, sample_customer) -> dict:
    """A pending job due in three days."""
    return make_job(sample_customer)


@pytest.fixture
def assigned_job(db_connection, sample_customer, sample_translator) -> dict:
    """A job already accepted by sample_translator."""
    from tolkbook.booking import TranslatorJobRepository

    job = make_job(sample_customer, status="assigned")
    TranslatorJobRepository().create({"job_id": job["id"], "user_id": sample_translator["id"]})
    return job


@pytest.fixture
def sample_distance(db_connection, sample_job) -> dict:
    from tolkbook.booking import DistanceRepository

    return DistanceRepository().create({"job_id": sample_job["id"], "distance": "0", "time": "0"})


# =============================================================================
# Flask App Fixtures
# =============================================================================


@pytest.fixture
def app():
    """Create Flask application for testing; the actor is set with the login fixture."""
    from tolkbook.app import create_app

    actor = {"user": None}
    app = create_app(actor_loader=lambda: actor["user"])
    app.config["TESTING"] = True
    app.config["LEGACY_ERROR_RESPONSES"] = False
    app.actor = actor

    return app


@pytest.fixture
def client(app):
    """Create Flask test client."""
    return app.test_client()


@pytest.fixture
def login(app):
    """Attach a user to every following request."""

    def _login(user: dict | None):
        app.actor["user"] = user

    return _login
