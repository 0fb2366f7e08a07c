import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from mesclasses.models import (
    ClassRecord,
    CycleRecord,
    DocumentRecord,
    SessionRecord,
    StudentRecord,
)

logger = logging.getLogger(__name__)

COLLECTIONS = ("students", "classes", "cycles", "sessions", "documents")

T = TypeVar("T", bound=BaseModel)


class ObjectStore:
    """Key-value access to the Mongo collections: get-all, get, upsert and delete by ``id``."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def get_all(self, collection: str) -> List[Dict[str, Any]]:
        return await self.db[collection].find({}, {"_id": 0}).to_list(None)

    async def get(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        return await self.db[collection].find_one({"id": key}, {"_id": 0})

    async def put(self, collection: str, document: Dict[str, Any]) -> None:
        await self.db[collection].replace_one({"id": document["id"]}, document, upsert=True)

    async def delete(self, collection: str, key: str) -> None:
        await self.db[collection].delete_one({"id": key})


class Repository(Generic[T]):
    def __init__(self, objects: ObjectStore, collection: str, model: Type[T]):
        self.objects = objects
        self.collection = collection
        self.model = model

    async def get_all(self) -> List[T]:
        docs = await self.objects.get_all(self.collection)
        return [self.model.model_validate(doc) for doc in docs]

    async def get(self, key: str) -> Optional[T]:
        doc = await self.objects.get(self.collection, key)
        return self.model.model_validate(doc) if doc else None

    async def put(self, entity: T) -> T:
        await self.objects.put(self.collection, entity.model_dump())
        return entity

    async def delete(self, key: str) -> None:
        await self.objects.delete(self.collection, key)


@dataclass
class Snapshot:
    cycles: List[CycleRecord]
    classes: List[ClassRecord]
    students: List[StudentRecord]
    sessions: List[SessionRecord]


class EntityStore:
    def __init__(self, objects: ObjectStore):
        self.objects = objects
        self.cycles: Repository[CycleRecord] = Repository(objects, "cycles", CycleRecord)
        self.classes: Repository[ClassRecord] = Repository(objects, "classes", ClassRecord)
        self.students: Repository[StudentRecord] = Repository(objects, "students", StudentRecord)
        self.sessions: Repository[SessionRecord] = Repository(objects, "sessions", SessionRecord)
        self.documents: Repository[DocumentRecord] = Repository(objects, "documents", DocumentRecord)

    @classmethod
    def from_database(cls, db: AsyncIOMotorDatabase) -> "EntityStore":
        return cls(ObjectStore(db))

    async def snapshot(self) -> Snapshot:
        cycles, classes, students, sessions = await asyncio.gather(
            self.cycles.get_all(),
            self.classes.get_all(),
            self.students.get_all(),
            self.sessions.get_all(),
        )
        return Snapshot(cycles=cycles, classes=classes, students=students, sessions=sessions)

    async def ensure_indexes(self) -> None:
        for name in COLLECTIONS:
            await self.objects.db[name].create_index([("id", 1)], unique=True)
        await self.objects.db.students.create_index([("class_name", 1)])
        await self.objects.db.sessions.create_index([("class_name", 1), ("cycle_id", 1)])
        await self.objects.db.documents.create_index([("parent_id", 1)])
        logger.info("Indexes ensured on %s", ", ".join(COLLECTIONS))
