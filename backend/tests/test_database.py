"""Test cases for database utilities."""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from assessment_agent.database import (
    Base,
    as_utc,
    check_database_connection,
    create_tables,
    engine,
    get_db,
    session_scope,
)
from assessment_agent.models import User, UserRole


class TestDatabaseUtilities:
    """Test cases for database utility functions."""

    def test_get_db_dependency(self):
        """Test get_db dependency function."""
        db_generator = get_db()
        db_session = next(db_generator)

        assert db_session is not None

        # Clean up
        with pytest.raises(StopIteration):
            next(db_generator)

    def test_get_db_rolls_back_on_database_error(self):
        db_generator = get_db()
        db_session = next(db_generator)
        with patch.object(db_session, "rollback") as rollback:
            with pytest.raises(SQLAlchemyError):
                db_generator.throw(SQLAlchemyError("boom"))
        rollback.assert_called_once()

    def test_session_scope_commits(self, session_factory, db_session):
        with session_scope(session_factory) as db:
            db.add(User(email="scoped@example.com", role=UserRole.student))

        assert db_session.query(User).filter_by(email="scoped@example.com").count() == 1

    def test_session_scope_rolls_back_on_error(self):
        session = MagicMock()
        with pytest.raises(SQLAlchemyError):
            with session_scope(lambda: session):
                raise SQLAlchemyError("Test error")

        session.rollback.assert_called_once()
        session.commit.assert_not_called()
        session.close.assert_called_once()

    @patch('assessment_agent.database.Base.metadata.create_all')
    def test_create_tables_success(self, mock_create_all):
        """Test successful table creation."""
        create_tables()

        mock_create_all.assert_called_once_with(bind=engine)

    @patch('assessment_agent.database.Base.metadata.create_all')
    def test_create_tables_error(self, mock_create_all):
        """Test table creation error handling."""
        mock_create_all.side_effect = SQLAlchemyError("Connection failed")

        with pytest.raises(SQLAlchemyError):
            create_tables()

    def test_check_database_connection_success(self):
        """Test successful database connection check."""
        assert check_database_connection() is True

    def test_check_database_connection_failure(self):
        """Test database connection check failure."""
        broken = MagicMock()
        broken.connect.side_effect = SQLAlchemyError("Connection failed")

        assert check_database_connection(broken) is False


class TestDatabaseConfiguration:
    """Test cases for database configuration."""

    def test_base_metadata(self):
        """Every model table is registered on Base."""
        assert {
            "users", "refresh_tokens", "login_attempts", "courses", "course_enrollments",
            "questions", "base_examples", "submissions",
        } <= set(Base.metadata.tables)

    def test_as_utc(self):
        naive = datetime(2025, 1, 1, 12, 0)
        assert as_utc(naive).tzinfo == timezone.utc
        assert as_utc(None) is None
