"""
Tests for migration bookkeeping, using a stand-in for PostgresDB.
"""

from talentradar_data.schema import get_migration_files, get_schema_version, run_migrations


class RecordingDB:
    """Keeps meta in a dict and remembers every script executed."""

    def __init__(self, meta=None):
        self.meta = dict(meta or {})
        self.scripts: list[str] = []

    def is_initialized(self) -> bool:
        return bool(self.meta)

    def get_meta(self, key):
        return self.meta.get(key)

    def set_meta(self, key, value):
        self.meta[key] = value

    def executescript(self, sql):
        self.scripts.append(sql)


class TestRunMigrations:
    def test_applies_and_records_each_migration(self):
        db = RecordingDB()

        applied = run_migrations(db)

        files = get_migration_files()
        assert applied == len(files) > 0
        assert len(db.scripts) == applied
        assert db.meta["migration_001_initial_schema"] == "applied"

    def test_skips_recorded_migrations(self):
        db = RecordingDB({"migration_001_initial_schema": "applied"})

        assert run_migrations(db) == len(get_migration_files()) - 1

    def test_force_reapplies(self):
        db = RecordingDB({"migration_001_initial_schema": "applied"})

        assert run_migrations(db, force=True) == len(get_migration_files())

    def test_schema_version(self):
        assert get_schema_version(RecordingDB()) == "0.0"
        assert get_schema_version(RecordingDB({"schema_version": "1.0"})) == "1.0"
