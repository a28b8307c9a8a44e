import os
import sqlite3
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import Database, SQLiteRepository


def _columns(db_file, table):
    conn = sqlite3.connect(str(db_file))
    try:
        return [row[1] for row in conn.execute(f"PRAGMA table_info({table})")]
    finally:
        conn.close()


@pytest.mark.asyncio
async def test_fresh_database_gets_all_tables(tmp_path):
    db_file = tmp_path / "fresh.db"
    database = Database(str(db_file))
    await database.initialize()
    try:
        assert await database.schema_version() == 3
    finally:
        await database.close()

    conn = sqlite3.connect(str(db_file))
    tables = {
        row[0]
        for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    }
    conn.close()
    assert {
        "exercises",
        "exercise_logs",
        "exercise_sets",
        "routines",
        "routine_exercises",
        "routine_days",
        "user_preferences",
        "schema_version",
    } <= tables
    cols = _columns(db_file, "routine_exercises")
    for column in ("weight", "weightUnit", "reserveReps", "notes"):
        assert column in cols
    assert "programName" in _columns(db_file, "routines")


@pytest.mark.asyncio
async def test_unversioned_database_gains_additive_columns(tmp_path):
    db_file = tmp_path / "old.db"
    conn = sqlite3.connect(str(db_file))
    conn.execute(
        "CREATE TABLE routines (id TEXT PRIMARY KEY, name TEXT NOT NULL, description TEXT, "
        "frequency TEXT NOT NULL, isActive BOOLEAN DEFAULT 0, createdAt DATETIME, updatedAt DATETIME)"
    )
    conn.execute(
        "CREATE TABLE routine_exercises (routineId TEXT NOT NULL, exerciseId TEXT NOT NULL, "
        "targetSets INTEGER NOT NULL, targetReps INTEGER NOT NULL, orderIndex INTEGER NOT NULL, "
        "PRIMARY KEY (routineId, exerciseId))"
    )
    conn.execute(
        "INSERT INTO routines VALUES ('r1', 'Legs', NULL, 'weekly', 1, "
        "'2024-01-01T00:00:00+00:00', '2024-01-01T00:00:00+00:00')"
    )
    conn.execute("INSERT INTO routine_exercises VALUES ('r1', 'squat', 5, 5, 0)")
    conn.commit()
    conn.close()

    repo = SQLiteRepository(str(db_file))
    await repo.initialize()
    try:
        routines = await repo.get_routines()
    finally:
        await repo.close()

    assert "programName" in _columns(db_file, "routines")
    assert "reserveReps" in _columns(db_file, "routine_exercises")
    assert len(routines) == 1
    exercise = routines[0].exercises[0]
    assert exercise.exercise_name == "Squat"
    assert exercise.weight == 0
    assert exercise.weight_unit == "lb"
    assert exercise.reserve_reps == 0
    assert exercise.notes == ""
    assert routines[0].program_name is None


@pytest.mark.asyncio
async def test_legacy_database_with_columns_already_present(tmp_path):
    db_file = tmp_path / "legacy.db"
    conn = sqlite3.connect(str(db_file))
    conn.execute(
        "CREATE TABLE routines (id TEXT PRIMARY KEY, name TEXT NOT NULL, description TEXT, "
        "frequency TEXT NOT NULL, isActive BOOLEAN DEFAULT 0, createdAt DATETIME, updatedAt DATETIME, "
        "programName TEXT)"
    )
    conn.execute(
        "CREATE TABLE routine_exercises (routineId TEXT NOT NULL, exerciseId TEXT NOT NULL, "
        "targetSets INTEGER NOT NULL, targetReps INTEGER NOT NULL, orderIndex INTEGER NOT NULL, "
        "weight REAL DEFAULT 0, weightUnit TEXT DEFAULT 'lb', reserveReps INTEGER DEFAULT 0, "
        "notes TEXT DEFAULT '', PRIMARY KEY (routineId, exerciseId))"
    )
    conn.commit()
    conn.close()

    database = Database(str(db_file))
    await database.initialize()
    try:
        assert await database.schema_version() == 3
    finally:
        await database.close()
    assert _columns(db_file, "routine_exercises").count("notes") == 1


@pytest.mark.asyncio
async def test_seeding_is_idempotent(tmp_path):
    db_file = str(tmp_path / "seed.db")
    for _ in range(3):
        database = Database(db_file)
        await database.initialize()
        await database.close()

    conn = sqlite3.connect(db_file)
    count = conn.execute("SELECT COUNT(*) FROM exercises WHERE id = 'bench_press'").fetchone()[0]
    total = conn.execute("SELECT COUNT(*) FROM exercises").fetchone()[0]
    versions = conn.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
    prefs = dict(conn.execute("SELECT key, value FROM user_preferences").fetchall())
    conn.close()
    assert count == 1
    assert total == 10
    assert versions == 3
    assert prefs["weight_unit"] == "lb"


@pytest.mark.asyncio
async def test_seeding_keeps_user_changes(tmp_path):
    db_file = str(tmp_path / "keep.db")
    database = Database(db_file)
    await database.initialize()
    await database.close()

    conn = sqlite3.connect(db_file)
    conn.execute("UPDATE exercises SET name = 'Flat Bench' WHERE id = 'bench_press'")
    conn.execute("UPDATE user_preferences SET value = 'kg' WHERE key = 'weight_unit'")
    conn.commit()
    conn.close()

    database = Database(db_file)
    await database.initialize()
    await database.close()

    conn = sqlite3.connect(db_file)
    name = conn.execute("SELECT name FROM exercises WHERE id = 'bench_press'").fetchone()[0]
    unit = conn.execute("SELECT value FROM user_preferences WHERE key = 'weight_unit'").fetchone()[0]
    conn.close()
    assert name == "Flat Bench"
    assert unit == "kg"


@pytest.mark.asyncio
async def test_migrate_script_reports_version(tmp_path):
    from migrate import migrate

    assert await migrate(str(tmp_path / "script.db")) == 3
