import asyncio
import sys

from db import Database


async def migrate(db_path: str = "liftlog.db") -> int:
    """Bring ``db_path`` up to the current schema and return its version."""
    database = Database(db_path)
    await database.initialize()
    try:
        return await database.schema_version()
    finally:
        await database.close()


if __name__ == "__main__":
    path = sys.argv[1] if len(sys.argv) > 1 else "liftlog.db"
    print(f"{path} is at schema version {asyncio.run(migrate(path))}")
