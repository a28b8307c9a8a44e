from typing import List

from models import Program
from preferences import PROGRAMS_KEY, PreferenceStore
from repository import StorageRepository


class ProgramRegistry:
    """Named program groupings kept in the preference store.

    Routines refer to programs by name only, so deleting a program clears
    the name from its routines instead of deleting them.
    """

    def __init__(self, store: PreferenceStore, repository: StorageRepository) -> None:
        self.store = store
        self.repository = repository

    async def get_programs(self) -> List[Program]:
        return self.store.get_models(PROGRAMS_KEY, Program)

    async def save_program(self, program: Program) -> None:
        programs = await self.get_programs()
        for index, existing in enumerate(programs):
            if existing.name == program.name:
                programs[index] = program
                break
        else:
            programs.append(program)
        self.store.set_models(PROGRAMS_KEY, programs)

    async def save_programs_list(self, programs: List[Program]) -> None:
        self.store.set_models(PROGRAMS_KEY, programs)

    async def delete_program(self, name: str) -> None:
        programs = [p for p in await self.get_programs() if p.name != name]
        self.store.set_models(PROGRAMS_KEY, programs)
        await self.repository.clear_program(name)
