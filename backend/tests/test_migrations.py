"""
Tests for the workout session migration.
"""

import importlib.util
from pathlib import Path

import pytest
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, text
from sqlalchemy.exc import IntegrityError


MIGRATION = Path(__file__).resolve().parents[1] / "alembic" / "versions" / "20261018_workout_sessions.py"


def load_migration():
    spec = importlib.util.spec_from_file_location("workout_sessions_migration", MIGRATION)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def migrated_engine():
    engine = create_engine("sqlite://")
    with engine.begin() as conn:
        with Operations.context(MigrationContext.configure(conn)):
            load_migration().upgrade()
    yield engine
    engine.dispose()


def insert_session(conn, session_id, user_id, status):
    conn.execute(
        text("INSERT INTO workout_sessions (id, user_id, status) VALUES (:id, :user_id, :status)"),
        {"id": session_id, "user_id": user_id, "status": status},
    )


def test_second_active_session_for_user_is_rejected(migrated_engine):
    with migrated_engine.begin() as conn:
        insert_session(conn, "s-1", "user-1", "ACTIVE")

    with pytest.raises(IntegrityError):
        with migrated_engine.begin() as conn:
            insert_session(conn, "s-2", "user-1", "ACTIVE")


def test_paused_and_other_users_sessions_are_allowed(migrated_engine):
    with migrated_engine.begin() as conn:
        insert_session(conn, "s-1", "user-1", "ACTIVE")
        insert_session(conn, "s-2", "user-1", "PAUSED")
        insert_session(conn, "s-3", "user-1", "FINISHED")
        insert_session(conn, "s-4", "user-2", "ACTIVE")

        count = conn.execute(text("SELECT COUNT(*) FROM workout_sessions")).scalar()

    assert count == 4
