"""Tests for the Database abstraction: init, queries, transactions, fallback and health."""

import unittest
from unittest.mock import MagicMock, patch

from sqlalchemy import insert, select
from sqlalchemy.exc import OperationalError

from factories import make_database, make_settings
from workload_tracker.core.database import (
    BACKEND_MYSQL,
    BACKEND_SQLITE,
    STATE_CLOSED,
    STATE_FAILED,
    STATE_READY,
    Database,
    build_engine,
)
from workload_tracker.core.errors import (
    ConflictError,
    DatabaseConnectionError,
    ValidationFailedError,
)
from workload_tracker.models import User, Workload
from workload_tracker.repositories.users import UserRepository
from workload_tracker.repositories.workloads import WorkloadRepository

users = User.__table__
workloads = Workload.__table__

MYSQL_SETTINGS = {
    "DB_TYPE": "mysql",
    "DB_HOST": "db.internal",
    "DB_USER": "tracker",
    "DB_PASSWORD": "secret",
    "DB_NAME": "workload",
}


def unreachable_mysql_factory(backend, settings):
    """Engine factory whose MySQL engine refuses every connection."""
    if backend == BACKEND_MYSQL:
        engine = MagicMock()
        engine.connect.side_effect = OperationalError(
            "SELECT 1", {}, Exception("Can't connect to MySQL server")
        )
        return engine
    return build_engine(backend, settings)


def no_sleep(_seconds):
    return None


class TestSqliteInitialize(unittest.TestCase):
    """In-memory SQLite: schema, query surface, transactions and error translation."""

    def setUp(self) -> None:
        self.db = make_database()

    def tearDown(self) -> None:
        self.db.close()

    def test_ready_with_schema(self) -> None:
        self.assertEqual(self.db.state, STATE_READY)
        self.assertTrue(self.db.is_sqlite)
        self.assertFalse(self.db.is_mysql)
        self.assertEqual(self.db.query(select(users.c.id)), [])

    def test_get_one_returns_none_when_nothing_matches(self) -> None:
        self.assertIsNone(self.db.get_one(select(users).where(users.c.id == 42)))

    def test_execute_reports_lastrowid_and_rowcount(self) -> None:
        result = self.db.execute(
            insert(users).values(username="a_user", password_hash="x", name="A User")
        )
        self.assertEqual(result.rowcount, 1)
        self.assertIsNotNone(result.lastrowid)
        row = self.db.get_one("SELECT username FROM users WHERE id = :id", {"id": result.lastrowid})
        self.assertEqual(row["username"], "a_user")

    def test_transaction_rolls_back_on_error(self) -> None:
        def body(tx):
            tx.execute(insert(users).values(username="temp", password_hash="x", name="Temp"))
            raise RuntimeError("boom")

        with self.assertRaises(RuntimeError):
            self.db.transaction(body)
        self.assertIsNone(self.db.get_one(select(users).where(users.c.username == "temp")))

    def test_transaction_commits_and_returns_result(self) -> None:
        def body(tx):
            tx.execute(insert(users).values(username="kept", password_hash="x", name="Kept"))
            return tx.get_one(select(users.c.username).where(users.c.username == "kept"))

        self.assertEqual(self.db.transaction(body), {"username": "kept"})
        self.assertIsNotNone(self.db.get_one(select(users).where(users.c.username == "kept")))

    def test_duplicate_username_is_conflict(self) -> None:
        repo = UserRepository(self.db)
        repo.create(username="jdoe", password="pw123456", name="John Doe")
        with self.assertRaises(ConflictError) as ctx:
            repo.create(username="jdoe", password="pw123456", name="John Again")
        self.assertEqual(ctx.exception.message, "Username already exists")

    def test_workload_for_unknown_user_is_rejected(self) -> None:
        with self.assertRaises(ValidationFailedError):
            WorkloadRepository(self.db).create({"user_id": 999, "name": "Orphan"})

    def test_null_in_required_column_is_validation_error(self) -> None:
        repo = UserRepository(self.db)
        user = repo.create(username="jdoe", password="pw123456", name="John Doe")
        with self.assertRaises(ValidationFailedError):
            repo.update(user["id"], {"name": None})
        self.assertEqual(repo.get_by_id(user["id"])["name"], "John Doe")

    def test_rename_to_existing_username_is_conflict(self) -> None:
        repo = UserRepository(self.db)
        repo.create(username="admin", password="admin123", name="Administrator")
        user = repo.create(username="jdoe", password="pw123456", name="John Doe")
        with self.assertRaises(ConflictError) as ctx:
            repo.update(user["id"], {"username": "admin"})
        self.assertEqual(ctx.exception.message, "Username already exists")

    def test_deleting_user_cascades_to_workloads(self) -> None:
        repo = UserRepository(self.db)
        user = repo.create(username="owner", password="pw123456", name="Owner")
        WorkloadRepository(self.db).create({"user_id": user["id"], "name": "Report"})
        self.db.execute("DELETE FROM users WHERE id = :id", {"id": user["id"]})
        self.assertEqual(self.db.query(select(workloads.c.id)), [])

    def test_initialize_twice_is_idempotent(self) -> None:
        UserRepository(self.db).create(username="jdoe", password="pw123456", name="John Doe")
        self.db._create_schema(self.db.engine)
        self.assertEqual(UserRepository(self.db).count(), 1)


class TestMysqlFallback(unittest.TestCase):
    """An unreachable or misconfigured MySQL falls back to SQLite when allowed."""

    def test_unreachable_mysql_falls_back_to_sqlite(self) -> None:
        settings = make_settings(**MYSQL_SETTINGS)
        db = Database(settings, engine_factory=unreachable_mysql_factory, sleep=no_sleep)
        db.initialize()
        try:
            self.assertEqual(db.state, STATE_READY)
            self.assertEqual(db.backend, BACKEND_SQLITE)
            self.assertEqual(db.health_check()["database"], BACKEND_SQLITE)
        finally:
            db.close()

    def test_retries_before_falling_back(self) -> None:
        settings = make_settings(DB_MAX_RETRIES=3, **MYSQL_SETTINGS)
        sleeps = []
        db = Database(settings, engine_factory=unreachable_mysql_factory, sleep=sleeps.append)
        db.initialize()
        db.close()
        self.assertEqual(len(sleeps), 2)

    def test_missing_mysql_settings_fall_back(self) -> None:
        settings = make_settings(DB_TYPE="mysql")
        factory = MagicMock(side_effect=build_engine)
        db = Database(settings, engine_factory=factory, sleep=no_sleep)
        db.initialize()
        try:
            self.assertEqual(db.backend, BACKEND_SQLITE)
            # The MySQL engine is never built without its settings.
            self.assertEqual([c.args[0] for c in factory.call_args_list], [BACKEND_SQLITE])
        finally:
            db.close()

    def test_fallback_disabled_raises(self) -> None:
        settings = make_settings(DB_FALLBACK_TO_SQLITE=False, **MYSQL_SETTINGS)
        db = Database(settings, engine_factory=unreachable_mysql_factory, sleep=no_sleep)
        with self.assertRaises(DatabaseConnectionError):
            db.initialize()
        self.assertEqual(db.state, STATE_FAILED)
        self.assertIsNone(db.engine)


class TestVerifyConnection(unittest.TestCase):
    """verify_connection retries, then falls back or raises."""

    def setUp(self) -> None:
        self.db = make_database()

    def tearDown(self) -> None:
        self.db.close()

    def test_recovers_after_transient_failure(self) -> None:
        with patch.object(
            Database, "_ping", side_effect=[DatabaseConnectionError("down"), None]
        ) as ping:
            self.assertTrue(self.db.verify_connection(max_retries=3))
        self.assertEqual(ping.call_count, 2)

    def test_mysql_falls_back_to_sqlite_after_exhausting_retries(self) -> None:
        self.db.backend = BACKEND_MYSQL
        down = DatabaseConnectionError("Can't connect to MySQL server")
        # Three failed verification pings, then the SQLite fallback connects.
        with patch.object(Database, "_ping", side_effect=[down, down, down, None]) as ping:
            self.assertTrue(self.db.verify_connection(max_retries=3))
        self.assertEqual(ping.call_count, 4)
        self.assertEqual(self.db.backend, BACKEND_SQLITE)
        self.assertEqual(self.db.state, STATE_READY)
        self.assertEqual(self.db.health_check()["status"], "healthy")

    def test_raises_after_exhausting_retries(self) -> None:
        with patch.object(Database, "_ping", side_effect=DatabaseConnectionError("down")) as ping:
            with self.assertRaises(DatabaseConnectionError):
                self.db.verify_connection(max_retries=3)
        self.assertEqual(ping.call_count, 3)


class TestHealthAndClose(unittest.TestCase):
    """health_check never raises; close is idempotent."""

    def test_healthy_report(self) -> None:
        db = make_database()
        report = db.health_check()
        db.close()
        self.assertEqual(report["status"], "healthy")
        self.assertTrue(report["connected"])
        self.assertEqual(report["database"], BACKEND_SQLITE)
        self.assertIn("timestamp", report)

    def test_unreachable_engine_is_unhealthy_without_raising(self) -> None:
        db = make_database()
        try:
            with patch.object(
                Database, "_ping", side_effect=DatabaseConnectionError("Lost connection to server")
            ):
                report = db.health_check()
        finally:
            db.close()
        self.assertEqual(report["status"], "unhealthy")
        self.assertFalse(report["connected"])
        self.assertEqual(report["database"], BACKEND_SQLITE)
        self.assertTrue(report["error"])

    def test_uninitialized_database_is_unhealthy_without_raising(self) -> None:
        report = Database(make_settings()).health_check()
        self.assertEqual(report["status"], "unhealthy")
        self.assertFalse(report["connected"])
        self.assertIn("not initialized", report["error"])

    def test_close_is_idempotent(self) -> None:
        db = make_database()
        db.close()
        db.close()
        self.assertEqual(db.state, STATE_CLOSED)
        self.assertEqual(db.health_check()["status"], "unhealthy")
        with self.assertRaises(DatabaseConnectionError):
            db.query(select(users.c.id))


if __name__ == "__main__":
    unittest.main()
