import importlib.util
from pathlib import Path

import pytest
import sqlalchemy as sa
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy.exc import IntegrityError

MIGRATION = Path(__file__).resolve().parent.parent / "alembic" / "versions" / "0001_initial.py"

INSERT_BOOKING = sa.text(
    "INSERT INTO bookings (parent_user_id, nanny_user_id, start_time, end_time, "
    "hourly_rate_nis, total_amount_nis, status) "
    "VALUES (1, 2, :start, :end, 60, 120, :status)"
)


def load_migration():
    spec = importlib.util.spec_from_file_location("initial_schema", MIGRATION)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def migrated():
    migration = load_migration()
    engine = sa.create_engine("sqlite://")
    with engine.begin() as connection:
        with Operations.context(MigrationContext.configure(connection)):
            migration.upgrade()
    yield engine, migration
    engine.dispose()


def book(connection, start, end, status="REQUESTED"):
    connection.execute(INSERT_BOOKING, {"start": start, "end": end, "status": status})


def test_overlap_guard_per_dialect():
    migration = load_migration()

    postgres = migration.no_overlap_ddl("postgresql")
    assert postgres[0] == "CREATE EXTENSION IF NOT EXISTS btree_gist"
    assert "EXCLUDE USING gist" in postgres[1]

    (trigger,) = migration.no_overlap_ddl("sqlite")
    assert trigger.startswith("CREATE TRIGGER bookings_no_overlap")
    assert "RAISE(ABORT, 'bookings_no_overlap')" in trigger

    with pytest.raises(NotImplementedError):
        migration.no_overlap_ddl("mysql")


def test_upgrade_on_sqlite_installs_trigger(migrated):
    engine, _ = migrated
    with engine.begin() as connection:
        book(connection, "2026-01-01 10:00:00", "2026-01-01 12:00:00")
        # Inactive rows and back-to-back slots do not clash
        book(connection, "2026-01-01 11:00:00", "2026-01-01 13:00:00", status="DECLINED")
        book(connection, "2026-01-01 12:00:00", "2026-01-01 13:00:00")

    with pytest.raises(IntegrityError, match="bookings_no_overlap"):
        with engine.begin() as connection:
            book(connection, "2026-01-01 11:00:00", "2026-01-01 11:30:00", status="ACCEPTED")


def test_downgrade_on_sqlite_drops_everything(migrated):
    engine, migration = migrated
    with engine.begin() as connection:
        with Operations.context(MigrationContext.configure(connection)):
            migration.downgrade()
        assert sa.inspect(connection).get_table_names() == []
        triggers = connection.execute(sa.text("SELECT name FROM sqlite_master WHERE type = 'trigger'")).all()
        assert triggers == []
