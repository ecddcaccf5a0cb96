from typing import List

from pymongo import ASCENDING

from space_together.core.logging import logger


TENANT_COLLECTIONS = ["students", "teachers", "classes", "subjects", "class_timetables"]


async def initialize_school_db(db) -> List[str]:
    """Create the per-school collections and indexes; safe to run more than once.

    Returns the collections that were newly created.
    """
    existing = set(await db.list_collection_names())
    created = []
    for name in TENANT_COLLECTIONS:
        if name in existing:
            continue
        await db.create_collection(name)
        created.append(name)

    await db["class_timetables"].create_index(
        [("class_id", ASCENDING), ("academic_year", ASCENDING)],
        unique=True,
        name="class_year_unique",
    )

    logger.info(
        f"School database {db.name} initialised ({len(created)} new collections)",
        extra={"tenant": db.name}
    )
    return created
