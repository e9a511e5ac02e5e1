"""Unit tests for custom exception hierarchy"""
import logging
import psycopg
import pytest
from datetime import datetime

from src.exceptions import (
    ReviewQuestError,
    ValidationError,
    DatabaseError,
    ConnectionError,
    QueryError,
    RecordNotFoundError,
    ConfigurationError,
    ProgressionError,
    SnapshotValidationError,
    ConcurrencyError,
    ConflictExhaustedError,
    wrap_external_exception
)


class TestReviewQuestError:
    """Test base exception class"""

    def test_basic_exception(self):
        """Test basic exception creation"""
        error = ReviewQuestError("Test error")
        assert error.message == "Test error"
        assert error.user_message == "An error occurred. Please try again."
        assert error.request_id is not None
        assert isinstance(error.timestamp, datetime)

    def test_exception_with_context(self):
        """Test exception with full context"""
        error = ReviewQuestError(
            message="Failed to award XP",
            user_id="123456789",
            operation="award",
            context={"action_kind": "QUEST_COMPLETED"},
            request_id="req-1"
        )
        assert error.user_id == "123456789"
        assert error.operation == "award"
        assert error.context == {"action_kind": "QUEST_COMPLETED"}
        assert error.request_id == "req-1"

    def test_to_dict(self):
        """Test serialization for API responses"""
        error = ReviewQuestError("Test error", user_message="Friendly message")
        data = error.to_dict()

        assert data["error"] == "ReviewQuestError"
        assert data["message"] == "Test error"
        assert data["user_message"] == "Friendly message"
        assert "request_id" in data
        assert "timestamp" in data

    def test_auto_logs_on_creation(self, caplog):
        """Test errors are logged when created"""
        with caplog.at_level(logging.ERROR, logger="src.exceptions"):
            ReviewQuestError("Something broke")

        assert "ReviewQuestError: Something broke" in caplog.text


class TestValidationError:
    """Test caller input errors"""

    def test_field_and_value(self):
        error = ValidationError("Unknown action kind", field="action_kind", value="QUEST_DELETED")
        assert error.field == "action_kind"
        assert error.value == "QUEST_DELETED"
        assert error.context == {"field": "action_kind", "value": "QUEST_DELETED"}
        assert "action_kind" in error.user_message


class TestDatabaseErrors:
    """Test database error hierarchy"""

    def test_record_not_found(self):
        error = RecordNotFoundError("User not found", record_type="User", record_id="42")
        assert isinstance(error, DatabaseError)
        assert error.record_id == "42"
        assert error.user_message == "User not found."

    def test_query_error(self):
        error = QueryError("Query failed", query="SELECT 1")
        assert error.query == "SELECT 1"
        assert isinstance(error, DatabaseError)

    def test_query_error_merges_caller_context(self):
        """Test caller context is kept alongside the query"""
        error = QueryError("Query failed", query="SELECT 1", context={"expected_version": 4})
        assert error.context == {"query": "SELECT 1", "expected_version": 4}

    def test_connection_error_default_message(self):
        error = ConnectionError()
        assert error.message == "Database connection failed"


class TestProgressionErrors:
    """Test progression engine errors"""

    def test_snapshot_validation_error(self):
        error = SnapshotValidationError("Score mismatch", invariant="score_matches_history")
        assert isinstance(error, ProgressionError)
        assert error.invariant == "score_matches_history"

    def test_snapshot_validation_logs_as_warning(self, caplog):
        """Test repairable snapshots are not logged as errors"""
        with caplog.at_level(logging.DEBUG, logger="src.exceptions"):
            SnapshotValidationError("Score mismatch", invariant="score_matches_history")

        assert caplog.records[-1].levelno == logging.WARNING

    def test_concurrency_error(self):
        error = ConcurrencyError(expected_version=7)
        assert error.expected_version == 7
        assert error.message == "Concurrent modification detected"

    def test_conflict_exhausted_error(self):
        error = ConflictExhaustedError("Gave up", attempts=5, action_kind="QUEST_COMPLETED")
        assert error.attempts == 5
        assert error.context == {"attempts": 5, "action_kind": "QUEST_COMPLETED"}


class TestConfigurationError:
    def test_config_key(self):
        error = ConfigurationError("Missing DATABASE_URL", config_key="DATABASE_URL")
        assert error.config_key == "DATABASE_URL"


class TestWrapExternalException:
    """Test wrapping driver exceptions"""

    def test_operational_error_becomes_connection_error(self):
        wrapped = wrap_external_exception(
            psycopg.OperationalError("connection refused"),
            operation="load_progression",
            user_id="123456789"
        )
        assert isinstance(wrapped, ConnectionError)
        assert wrapped.user_id == "123456789"
        assert isinstance(wrapped.cause, psycopg.OperationalError)

    def test_driver_error_becomes_query_error(self):
        wrapped = wrap_external_exception(psycopg.DataError("bad json"), operation="conditional_write")
        assert isinstance(wrapped, QueryError)

    def test_driver_error_keeps_wrapper_context(self):
        wrapped = wrap_external_exception(
            psycopg.errors.UndefinedTable("relation does not exist"),
            operation="conditional_write",
            user_id="123456789",
            context={"expected_version": 3}
        )
        assert isinstance(wrapped, QueryError)
        assert wrapped.context == {"query": None, "expected_version": 3}
        assert wrapped.operation == "conditional_write"

    def test_other_error_becomes_base_error(self):
        wrapped = wrap_external_exception(RuntimeError("boom"), operation="award")
        assert type(wrapped) is ReviewQuestError
        assert wrapped.message == "award failed: boom"
