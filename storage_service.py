import logging
from typing import List, Optional

from db import SQLiteRepository
from environment import NATIVE, resolve_platform
from models import (
    Exercise,
    ExerciseFields,
    ExerciseLog,
    Program,
    Routine,
    TrainingState,
    UserPreferences,
)
from preferences import PreferenceRepository, PreferenceStore, SessionPreferences
from program_registry import ProgramRegistry
from repository import StorageRepository
from settings_schema import SettingsSchema

logger = logging.getLogger(__name__)


class StorageService:
    """Entry point used by the rest of the application for persistence.

    The backend is chosen once from the configured platform. If the SQLite
    database cannot be opened the service falls back to preference storage
    for the rest of the process.
    """

    def __init__(self, settings: Optional[SettingsSchema] = None) -> None:
        self.settings = settings or SettingsSchema()
        self.preferences = PreferenceStore(self.settings.preferences_path)
        self.session = SessionPreferences(self.preferences)
        self.platform = resolve_platform(self.settings.platform)
        if self.platform == NATIVE:
            self.repository: StorageRepository = SQLiteRepository(self.settings.db_path)
        else:
            self.repository = PreferenceRepository(self.preferences)
        self.programs = ProgramRegistry(self.preferences, self.repository)
        self._initialized = False

    @property
    def backend(self) -> str:
        return self.repository.name

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize_database(self) -> None:
        if self._initialized:
            return
        try:
            await self.repository.initialize()
        except Exception as exc:
            logger.exception(
                "Error initializing database %s, using preference storage: %s",
                self.settings.db_path,
                exc,
            )
            self._use_preferences()
        self._initialized = True

    def _use_preferences(self) -> None:
        self.repository = PreferenceRepository(self.preferences)
        self.programs = ProgramRegistry(self.preferences, self.repository)

    async def close(self) -> None:
        await self.repository.close()
        self._initialized = False

    async def get_exercises(self) -> List[Exercise]:
        return await self.repository.get_exercises()

    async def get_exercise_by_id(self, exercise_id: str) -> Optional[Exercise]:
        return await self.repository.get_exercise_by_id(exercise_id)

    async def create_exercise(self, fields: ExerciseFields) -> Exercise:
        return await self.repository.create_exercise(fields)

    async def log_exercise(self, log: ExerciseLog) -> ExerciseLog:
        return await self.repository.log_exercise(log)

    async def get_exercise_logs(self) -> List[ExerciseLog]:
        return await self.repository.get_exercise_logs()

    async def save_routine(self, routine: Routine) -> None:
        await self.repository.save_routine(routine)

    async def get_routines(self) -> List[Routine]:
        return await self.repository.get_routines()

    async def delete_routine(self, routine_id: str) -> None:
        await self.repository.delete_routine(routine_id)

    async def save_routines_order(self, routines: List[Routine]) -> None:
        await self.repository.save_routines_order(routines)

    async def get_programs(self) -> List[Program]:
        return await self.programs.get_programs()

    async def save_program(self, program: Program) -> None:
        await self.programs.save_program(program)

    async def save_programs_list(self, programs: List[Program]) -> None:
        await self.programs.save_programs_list(programs)

    async def delete_program(self, name: str) -> None:
        await self.programs.delete_program(name)

    async def get_user_preferences(self) -> UserPreferences:
        # stored preference rows are not consulted; the app uses fixed values
        return UserPreferences()

    async def update_user_preference(self, key: str, value: str) -> None:
        logger.debug("Preference update ignored: %s = %s", key, value)

    async def set_training_state(self, state: TrainingState) -> None:
        await self.session.set_training_state(state)

    async def get_training_state(self) -> Optional[TrainingState]:
        return await self.session.get_training_state()

    async def clear_training_state(self) -> None:
        await self.session.clear_training_state()

    async def get_onboarding_completed(self) -> bool:
        return await self.session.get_onboarding_completed()

    async def set_onboarding_completed(self, completed: bool) -> None:
        await self.session.set_onboarding_completed(completed)

    async def get_language(self) -> str:
        return await self.session.get_language()

    async def set_language(self, language: str) -> None:
        await self.session.set_language(language)

    async def get_completed_routines(self, date_label: str) -> List[str]:
        return await self.session.get_completed_routines(date_label)

    async def set_completed_routines(self, date_label: str, routine_ids: List[str]) -> None:
        await self.session.set_completed_routines(date_label, routine_ids)

    async def mark_routine_completed(self, date_label: str, routine_id: str) -> None:
        await self.session.mark_routine_completed(date_label, routine_id)

    async def get_training_selection(self, date_label: str) -> List[str]:
        return await self.session.get_training_selection(date_label)

    async def set_training_selection(self, date_label: str, routine_ids: List[str]) -> None:
        await self.session.set_training_selection(date_label, routine_ids)

    async def clear_training_selection(self, date_label: str) -> None:
        await self.session.clear_training_selection(date_label)
