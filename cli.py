import argparse
import asyncio
import datetime
import json
import logging
import shutil
from typing import List, Optional

from config import APP_VERSION
from models import Frequency, Routine, RoutineExercise
from settings_schema import load_settings
from storage_service import StorageService


def _service(args: argparse.Namespace) -> StorageService:
    settings = load_settings(args.config)
    overrides = {}
    if args.db:
        overrides["db_path"] = args.db
    if args.prefs:
        overrides["preferences_path"] = args.prefs
    if args.platform:
        overrides["platform"] = args.platform
    return StorageService(settings.model_copy(update=overrides))


async def init_storage(service: StorageService) -> str:
    await service.initialize_database()
    return service.backend


async def list_exercises(service: StorageService) -> List[dict]:
    await service.initialize_database()
    return [exercise.to_dict() for exercise in await service.get_exercises()]


async def list_routines(service: StorageService) -> List[dict]:
    await service.initialize_database()
    return [routine.to_dict() for routine in await service.get_routines()]


async def export_data(service: StorageService, output: str) -> None:
    """Write routines, programs and exercise logs to a JSON file."""
    await service.initialize_database()
    data = {
        "routines": [r.to_dict() for r in await service.get_routines()],
        "programs": [p.to_dict() for p in await service.get_programs()],
        "exerciseLogs": [log.to_dict() for log in await service.get_exercise_logs()],
    }
    with open(output, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


async def demo_data(service: StorageService) -> bool:
    """Insert a demo routine if no routines exist."""
    await service.initialize_database()
    if await service.get_routines():
        return False
    routine = Routine(
        name="Push Day",
        program_name="Push",
        frequency=Frequency.WEEKLY,
        days=["Monday", "Thursday"],
        is_active=True,
        exercises=[
            RoutineExercise(exercise_id="bench_press", weight=135, target_sets=3, target_reps=10, order=0),
            RoutineExercise(exercise_id="overhead_press", weight=85, target_sets=3, target_reps=8, order=1),
            RoutineExercise(exercise_id="tricep_dip", target_sets=3, target_reps=12, reserve_reps=2, order=2),
        ],
    )
    await service.save_routine(routine)
    return True


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


async def _run(args: argparse.Namespace) -> None:
    service = _service(args)
    try:
        if args.cmd == "init":
            print(f"Storage ready using {await init_storage(service)} backend")
        elif args.cmd == "exercises":
            print(json.dumps(await list_exercises(service), indent=2))
        elif args.cmd == "routines":
            print(json.dumps(await list_routines(service), indent=2))
        elif args.cmd == "export":
            await export_data(service, args.out)
            print(f"Exported to {args.out}")
        elif args.cmd == "demo":
            if await demo_data(service):
                print("Demo data inserted")
            else:
                print("Storage already contains routines")
    finally:
        await service.close()


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="LiftLog storage utilities")
    parser.add_argument("--version", action="version", version=APP_VERSION)
    parser.add_argument("--config", default="settings.yaml")
    parser.add_argument("--db", default=None)
    parser.add_argument("--prefs", default=None)
    parser.add_argument("--platform", choices=["auto", "native", "web"], default=None)
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="cmd", required=True)

    sub.add_parser("init")
    sub.add_parser("exercises")
    sub.add_parser("routines")
    sub.add_parser("demo")

    exp = sub.add_parser("export")
    exp.add_argument("--out", default=f"liftlog_{datetime.date.today().isoformat()}.json")

    bkp = sub.add_parser("backup")
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.cmd in ("backup", "restore"):
        db_path = args.db or load_settings(args.config).db_path
        if args.cmd == "backup":
            backup_db(db_path, args.out)
        else:
            restore_db(args.src, db_path)
        return
    asyncio.run(_run(args))


if __name__ == "__main__":
    main()
