import datetime
import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import SQLiteRepository
from models import ExerciseLog, Program, Routine, RoutineExercise, TrainingState
from repository import StorageNotInitializedError
from settings_schema import SettingsSchema
from storage_service import StorageService


def _settings(tmp_path, platform="native", db_name="liftlog.db") -> SettingsSchema:
    return SettingsSchema(
        platform=platform,
        db_path=str(tmp_path / db_name),
        preferences_path=str(tmp_path / "prefs.yaml"),
    )


def _push_day() -> Routine:
    return Routine(
        id="push",
        name="Push Day",
        program_name="Push",
        days=["Monday", "Thursday"],
        exercises=[
            RoutineExercise(
                exercise_id="bench_press",
                exercise_name="Bench Press",
                target_sets=3,
                target_reps=10,
                order=0,
            )
        ],
    )


@pytest.mark.parametrize("platform", ["native", "web"])
@pytest.mark.asyncio
async def test_same_shape_on_both_backends(tmp_path, platform):
    service = StorageService(_settings(tmp_path, platform))
    await service.initialize_database()
    try:
        assert service.backend == platform
        routine = _push_day()
        await service.save_routine(routine)
        loaded = (await service.get_routines())[0]
        assert loaded == routine.model_copy(
            update={
                "exercises": [
                    routine.exercises[0].model_copy(update={"reserve_reps": 0, "notes": ""})
                ]
            }
        )

        await service.save_program(Program(name="Push"))
        await service.delete_program("Push")
        routines = await service.get_routines()
        assert len(routines) == 1
        assert routines[0].program_name is None
        assert await service.get_programs() == []

        log = await service.log_exercise(
            ExerciseLog(exercise_id="bench_press", date=datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc))
        )
        assert [entry.id for entry in await service.get_exercise_logs()] == [log.id]
        assert (await service.get_exercise_by_id("bench_press")).name == "Bench Press"
    finally:
        await service.close()


@pytest.mark.asyncio
async def test_native_requires_initialization(tmp_path):
    service = StorageService(_settings(tmp_path))
    assert service.backend == "native"
    with pytest.raises(StorageNotInitializedError):
        await service.get_routines()


@pytest.mark.asyncio
async def test_falls_back_to_preferences_when_database_unavailable(tmp_path):
    (tmp_path / "blocked").mkdir()
    service = StorageService(_settings(tmp_path, db_name="blocked"))
    await service.initialize_database()
    try:
        assert service.initialized is True
        assert service.backend == "web"
        await service.save_routine(_push_day())
        await service.delete_program("Push")
        assert [r.id for r in await service.get_routines()] == ["push"]
    finally:
        await service.close()


@pytest.mark.asyncio
async def test_falls_back_on_any_initialization_error(tmp_path, monkeypatch):
    async def broken(self):
        raise RuntimeError("driver unavailable")

    monkeypatch.setattr(SQLiteRepository, "initialize", broken)
    service = StorageService(_settings(tmp_path))
    await service.initialize_database()
    try:
        assert service.backend == "web"
        assert len(await service.get_exercises()) == 10
    finally:
        await service.close()


@pytest.mark.asyncio
async def test_initialize_twice(tmp_path):
    service = StorageService(_settings(tmp_path))
    await service.initialize_database()
    await service.initialize_database()
    try:
        assert len(await service.get_exercises()) == 10
    finally:
        await service.close()


@pytest.mark.asyncio
async def test_session_settings_use_preferences_on_native(tmp_path):
    service = StorageService(_settings(tmp_path))
    await service.initialize_database()
    try:
        await service.set_training_state(TrainingState(in_progress=True, started_at="2024-05-01T10:00:00Z"))
        await service.set_onboarding_completed(True)
        await service.set_language("es")
        await service.mark_routine_completed("2024-05-01", "push")
        await service.set_training_selection("2024-05-01", ["push"])
    finally:
        await service.close()

    reopened = StorageService(_settings(tmp_path, platform="web"))
    state = await reopened.get_training_state()
    assert state.in_progress is True
    assert await reopened.get_onboarding_completed() is True
    assert await reopened.get_language() == "es"
    assert await reopened.get_completed_routines("2024-05-01") == ["push"]
    assert await reopened.get_training_selection("2024-05-01") == ["push"]
    await reopened.clear_training_state()
    await reopened.clear_training_selection("2024-05-01")
    assert await reopened.get_training_state() is None
    assert await reopened.get_training_selection("2024-05-01") == []


@pytest.mark.asyncio
async def test_user_preferences_are_fixed(tmp_path):
    service = StorageService(_settings(tmp_path, platform="web"))
    await service.update_user_preference("theme", "light")
    prefs = await service.get_user_preferences()
    assert prefs.theme == "dark"
    assert prefs.weight_unit == "lb"
    assert prefs.notifications_enabled is True
