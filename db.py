import logging
import sqlite3
from typing import Awaitable, Callable, List, Mapping, Optional, Tuple

import aiosqlite

from models import (
    Exercise,
    ExerciseFields,
    ExerciseLog,
    ExerciseSet,
    Routine,
    default_exercises,
    new_id,
    utc_now,
)
from repository import (
    StorageNotInitializedError,
    StorageRepository,
    normalize_program_name,
)
from routine_assembler import assemble_routine, decompose_routine

logger = logging.getLogger(__name__)


class Database:
    """Holds the SQLite connection and keeps the schema up to date.

    Schema changes are applied as numbered migrations recorded in the
    ``schema_version`` table. Databases created before versioning existed
    start at version 0; every migration step tolerates columns that are
    already present.
    """

    _TABLE_DEFINITIONS = {
        "exercises": """CREATE TABLE IF NOT EXISTS exercises (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                muscleGroup TEXT NOT NULL,
                equipment TEXT NOT NULL,
                description TEXT,
                isCustom BOOLEAN DEFAULT 0,
                defaultWeightUnit TEXT NOT NULL DEFAULT 'lb' CHECK (defaultWeightUnit IN ('lb', 'kg')),
                createdAt DATETIME DEFAULT CURRENT_TIMESTAMP,
                updatedAt DATETIME DEFAULT CURRENT_TIMESTAMP
            );""",
        "exercise_logs": """CREATE TABLE IF NOT EXISTS exercise_logs (
                id TEXT PRIMARY KEY,
                exerciseId TEXT NOT NULL,
                routineId TEXT,
                notes TEXT,
                date DATETIME NOT NULL,
                totalVolume REAL NOT NULL,
                maxWeight REAL NOT NULL,
                createdAt DATETIME DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (exerciseId) REFERENCES exercises(id),
                FOREIGN KEY (routineId) REFERENCES routines(id)
            );""",
        "exercise_sets": """CREATE TABLE IF NOT EXISTS exercise_sets (
                logId TEXT NOT NULL,
                reps INTEGER NOT NULL,
                weight REAL NOT NULL,
                weightUnit TEXT NOT NULL CHECK (weightUnit IN ('lb', 'kg')),
                isPersonalRecord BOOLEAN DEFAULT 0,
                orderIndex INTEGER NOT NULL,
                PRIMARY KEY (logId, orderIndex),
                FOREIGN KEY (logId) REFERENCES exercise_logs(id)
            );""",
        "routines": """CREATE TABLE IF NOT EXISTS routines (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                description TEXT,
                frequency TEXT NOT NULL CHECK (frequency IN ('daily', 'weekly', 'custom')),
                isActive BOOLEAN DEFAULT 0,
                createdAt DATETIME DEFAULT CURRENT_TIMESTAMP,
                updatedAt DATETIME DEFAULT CURRENT_TIMESTAMP
            );""",
        "routine_exercises": """CREATE TABLE IF NOT EXISTS routine_exercises (
                routineId TEXT NOT NULL,
                exerciseId TEXT NOT NULL,
                targetSets INTEGER NOT NULL,
                targetReps INTEGER NOT NULL,
                orderIndex INTEGER NOT NULL,
                PRIMARY KEY (routineId, exerciseId),
                FOREIGN KEY (routineId) REFERENCES routines(id),
                FOREIGN KEY (exerciseId) REFERENCES exercises(id)
            );""",
        "routine_days": """CREATE TABLE IF NOT EXISTS routine_days (
                routineId TEXT NOT NULL,
                day TEXT NOT NULL,
                PRIMARY KEY (routineId, day),
                FOREIGN KEY (routineId) REFERENCES routines(id)
            );""",
        "user_preferences": """CREATE TABLE IF NOT EXISTS user_preferences (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updatedAt DATETIME DEFAULT CURRENT_TIMESTAMP
            );""",
    }

    _ROUTINE_EXERCISE_COLUMNS = [
        ("weight", "REAL DEFAULT 0"),
        ("weightUnit", "TEXT DEFAULT 'lb'"),
        ("reserveReps", "INTEGER DEFAULT 0"),
        ("notes", "TEXT DEFAULT ''"),
    ]

    _DEFAULT_PREFERENCES = {
        "weight_unit": "lb",
        "theme": "dark",
        "date_format": "MM/DD/YYYY",
        "notifications_enabled": "true",
    }

    def __init__(self, db_path: str = "liftlog.db") -> None:
        self._db_path = db_path
        self._conn: Optional[aiosqlite.Connection] = None

    def _require_connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise StorageNotInitializedError("Database not initialized")
        return self._conn

    async def open(self) -> aiosqlite.Connection:
        """Return the open connection, creating it on first use."""
        if self._conn is None:
            conn = await aiosqlite.connect(self._db_path)
            conn.row_factory = aiosqlite.Row
            self._conn = conn
        return self._conn

    async def close(self) -> None:
        if self._conn is not None:
            conn, self._conn = self._conn, None
            await conn.close()

    async def initialize(self) -> None:
        conn = await self.open()
        try:
            await self._ensure_schema(conn)
            await self._insert_default_exercises(conn)
            await self._insert_default_preferences(conn)
        except Exception:
            await self.close()
            raise

    def _migrations(
        self,
    ) -> List[Tuple[int, Callable[[aiosqlite.Connection], Awaitable[None]]]]:
        return [
            (1, self._create_base_tables),
            (2, self._add_routine_exercise_targets),
            (3, self._add_routine_program_name),
        ]

    async def schema_version(self) -> int:
        conn = self._require_connection()
        cursor = await conn.execute("SELECT MAX(version) FROM schema_version;")
        row = await cursor.fetchone()
        return row[0] or 0

    async def _ensure_schema(self, conn: aiosqlite.Connection) -> None:
        await conn.execute(
            "CREATE TABLE IF NOT EXISTS schema_version ("
            "version INTEGER PRIMARY KEY, "
            "appliedAt DATETIME DEFAULT CURRENT_TIMESTAMP);"
        )
        current = await self.schema_version()
        for version, migrate in self._migrations():
            if version <= current:
                continue
            await migrate(conn)
            await conn.execute(
                "INSERT INTO schema_version (version, appliedAt) VALUES (?, ?);",
                (version, utc_now().isoformat()),
            )
            await conn.commit()
            logger.info("Applied schema migration %d to %s", version, self._db_path)

    async def _create_base_tables(self, conn: aiosqlite.Connection) -> None:
        for sql in self._TABLE_DEFINITIONS.values():
            await conn.execute(sql)

    async def _add_routine_exercise_targets(self, conn: aiosqlite.Connection) -> None:
        for column, ddl in self._ROUTINE_EXERCISE_COLUMNS:
            await self._add_column(conn, "routine_exercises", column, ddl)

    async def _add_routine_program_name(self, conn: aiosqlite.Connection) -> None:
        await self._add_column(conn, "routines", "programName", "TEXT")

    async def _add_column(
        self, conn: aiosqlite.Connection, table: str, column: str, ddl: str
    ) -> None:
        cursor = await conn.execute(f"PRAGMA table_info({table});")
        existing = [row[1] for row in await cursor.fetchall()]
        if column in existing:
            return
        try:
            await conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {ddl};")
        except sqlite3.OperationalError as exc:
            # duplicate column on databases written by older builds
            logger.debug("Skipping %s.%s: %s", table, column, exc)

    async def _insert_default_exercises(self, conn: aiosqlite.Connection) -> None:
        for exercise in default_exercises():
            await conn.execute(
                "INSERT OR IGNORE INTO exercises (id, name, muscleGroup, equipment, description, isCustom, defaultWeightUnit, createdAt, updatedAt) "
                "VALUES (?, ?, ?, ?, ?, 0, ?, ?, ?);",
                (
                    exercise.id,
                    exercise.name,
                    exercise.muscle_group,
                    exercise.equipment,
                    exercise.description,
                    exercise.default_weight_unit,
                    exercise.created_at.isoformat(),
                    exercise.updated_at.isoformat(),
                ),
            )
        await conn.commit()

    async def _insert_default_preferences(self, conn: aiosqlite.Connection) -> None:
        for key, value in self._DEFAULT_PREFERENCES.items():
            await conn.execute(
                "INSERT OR IGNORE INTO user_preferences (key, value) VALUES (?, ?);",
                (key, value),
            )
        await conn.commit()


class AsyncBaseRepository(Database):
    """Query helpers over the shared connection."""

    async def execute(self, query: str, params: Tuple = ()) -> int:
        conn = self._require_connection()
        cursor = await conn.execute(query, params)
        await conn.commit()
        return cursor.rowcount

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[dict]:
        conn = self._require_connection()
        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def fetch_one(self, query: str, params: Tuple = ()) -> Optional[dict]:
        rows = await self.fetch_all(query, params)
        return rows[0] if rows else None

    async def insert(self, table: str, row: Mapping, replace: bool = False) -> None:
        columns = ", ".join(row)
        placeholders = ", ".join("?" for _ in row)
        verb = "INSERT OR REPLACE" if replace else "INSERT"
        await self.execute(
            f"{verb} INTO {table} ({columns}) VALUES ({placeholders});",
            tuple(row.values()),
        )


class SQLiteRepository(AsyncBaseRepository, StorageRepository):
    """Workout storage on a local SQLite database."""

    name = "native"

    async def get_exercises(self) -> List[Exercise]:
        rows = await self.fetch_all("SELECT * FROM exercises ORDER BY name;")
        return [Exercise.model_validate(row) for row in rows]

    async def get_exercise_by_id(self, exercise_id: str) -> Optional[Exercise]:
        row = await self.fetch_one("SELECT * FROM exercises WHERE id = ?;", (exercise_id,))
        return Exercise.model_validate(row) if row else None

    async def create_exercise(self, fields: ExerciseFields) -> Exercise:
        now = utc_now()
        exercise = Exercise(
            **fields.model_dump(),
            id=new_id(),
            is_custom=True,
            created_at=now,
            updated_at=now,
        )
        await self.execute(
            "INSERT INTO exercises (id, name, muscleGroup, equipment, description, isCustom, defaultWeightUnit, createdAt, updatedAt) "
            "VALUES (?, ?, ?, ?, ?, 1, ?, ?, ?);",
            (
                exercise.id,
                exercise.name,
                exercise.muscle_group,
                exercise.equipment,
                exercise.description,
                exercise.default_weight_unit,
                now.isoformat(),
                now.isoformat(),
            ),
        )
        return exercise

    async def log_exercise(self, log: ExerciseLog) -> ExerciseLog:
        log_id = new_id()
        now = utc_now()
        await self.execute(
            "INSERT INTO exercise_logs (id, exerciseId, routineId, notes, date, totalVolume, maxWeight, createdAt) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?);",
            (
                log_id,
                log.exercise_id,
                log.routine_id,
                log.notes,
                log.date.isoformat(),
                log.total_volume,
                log.max_weight,
                now.isoformat(),
            ),
        )
        # sets reference the log, so the log row must exist first
        for index, item in enumerate(log.sets):
            await self.execute(
                "INSERT INTO exercise_sets (logId, reps, weight, weightUnit, isPersonalRecord, orderIndex) "
                "VALUES (?, ?, ?, ?, ?, ?);",
                (
                    log_id,
                    item.reps,
                    item.weight,
                    item.weight_unit,
                    1 if item.is_personal_record else 0,
                    index,
                ),
            )
        return log.model_copy(update={"id": log_id, "created_at": now})

    async def get_exercise_logs(self) -> List[ExerciseLog]:
        log_rows = await self.fetch_all(
            "SELECT * FROM exercise_logs ORDER BY date DESC, createdAt DESC;"
        )
        set_rows = await self.fetch_all(
            "SELECT * FROM exercise_sets ORDER BY logId, orderIndex;"
        )
        sets: dict[str, list[ExerciseSet]] = {}
        for row in set_rows:
            sets.setdefault(row["logId"], []).append(ExerciseSet.model_validate(row))
        return [
            ExerciseLog.model_validate({**row, "sets": sets.get(row["id"], [])})
            for row in log_rows
        ]

    async def save_routine(self, routine: Routine) -> None:
        self._require_connection()
        routine = await self._resolve_exercises(routine)
        rows = decompose_routine(routine)
        await self.insert("routines", rows.routine, replace=True)
        await self.execute("DELETE FROM routine_exercises WHERE routineId = ?;", (routine.id,))
        await self.execute("DELETE FROM routine_days WHERE routineId = ?;", (routine.id,))
        for row in rows.exercises:
            # duplicate exercise ids collapse onto the composite key, last one wins
            await self.insert("routine_exercises", row, replace=True)
        for row in rows.days:
            await self.insert("routine_days", row)

    async def get_routines(self) -> List[Routine]:
        routine_rows = await self.fetch_all("SELECT * FROM routines ORDER BY createdAt DESC;")
        routines = []
        for row in routine_rows:
            exercise_rows = await self.fetch_all(
                "SELECT re.*, COALESCE(e.name, re.exerciseId) AS exerciseName, e.defaultWeightUnit "
                "FROM routine_exercises re LEFT JOIN exercises e ON re.exerciseId = e.id "
                "WHERE re.routineId = ? ORDER BY re.orderIndex;",
                (row["id"],),
            )
            day_rows = await self.fetch_all(
                "SELECT day FROM routine_days WHERE routineId = ? ORDER BY rowid;",
                (row["id"],),
            )
            routines.append(assemble_routine(row, exercise_rows, day_rows))
        return routines

    async def delete_routine(self, routine_id: str) -> None:
        await self.execute("DELETE FROM routine_exercises WHERE routineId = ?;", (routine_id,))
        await self.execute("DELETE FROM routine_days WHERE routineId = ?;", (routine_id,))
        await self.execute("DELETE FROM routines WHERE id = ?;", (routine_id,))

    async def clear_program(self, program_name: str) -> None:
        count = await self.execute(
            "UPDATE routines SET programName = NULL WHERE LOWER(TRIM(programName)) = ?;",
            (normalize_program_name(program_name),),
        )
        logger.debug("Cleared program %r from %d routines", program_name, count)

    async def save_routines_order(self, routines: List[Routine]) -> None:
        self._require_connection()
        logger.debug("Routine order is creation order on the SQLite backend; ignoring")
