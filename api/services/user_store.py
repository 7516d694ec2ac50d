"""
User Store Service
==================

Document-store access for user records.

Two implementations share one interface:
- MongoUserStore: MongoDB through the async Motor driver, with unique
  indexes on username and email
- InMemoryUserStore: dict-backed store used when no MongoDB URI is
  configured (development) and in tests

Records are kept with the camelCase keys clients see (`coverImage`,
`refreshToken`, `createdAt`, ...). Driver failures surface as
DocumentStoreError, unique-index violations as DuplicateRecordError.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Optional, Protocol

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from config import Settings, get_settings
from exceptions import DocumentStoreError, DuplicateRecordError
from models import User, utc_now


logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"
UNIQUE_FIELDS = ("username", "email")


class UserStoreProtocol(Protocol):
    """
    Interface every user store implements.

    `update` treats a None value in the patch as "remove this field".
    """

    async def initialize(self) -> None: ...

    async def ping(self) -> bool: ...

    async def find_by_username_or_email(
        self, username: Optional[str], email: Optional[str]
    ) -> Optional[User]: ...

    async def get(self, user_id: str) -> Optional[User]: ...

    async def create(self, fields: Dict[str, Any]) -> User: ...

    async def update(self, user_id: str, patch: Dict[str, Any]) -> Optional[User]: ...

    async def close(self) -> None: ...


def _lookup_conditions(username: Optional[str], email: Optional[str]) -> list[dict]:
    return [{key: value} for key, value in (("username", username), ("email", email)) if value]


def _split_patch(patch: Dict[str, Any]) -> tuple[dict, dict]:
    to_set = {key: value for key, value in patch.items() if value is not None}
    to_unset = {key: "" for key, value in patch.items() if value is None}
    return to_set, to_unset


@contextmanager
def _store_errors(action: str):
    """Translate driver exceptions raised while performing `action`."""
    try:
        yield
    except DuplicateKeyError as e:
        raise DuplicateRecordError(f"Duplicate key error: {e}") from e
    except PyMongoError as e:
        logger.error(f"MongoDB error while trying to {action}: {e}")
        raise DocumentStoreError(f"Failed to {action}") from e


class MongoUserStore:
    """
    User store backed by MongoDB.

    Example:
        store = MongoUserStore(settings)
        await store.initialize()
        user = await store.get("507f1f77bcf86cd799439011")
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[AsyncIOMotorClient] = None
    ):
        self.settings = settings or get_settings()
        self.client = client or AsyncIOMotorClient(self.settings.mongodb_uri)
        self.collection = self.client[self.settings.mongodb_db][USERS_COLLECTION]
        self._is_initialized = False

    async def initialize(self) -> None:
        """Create the unique indexes that guard username and email."""
        if self._is_initialized:
            return
        with _store_errors("create user indexes"):
            for field in UNIQUE_FIELDS:
                await self.collection.create_index(field, unique=True)
        self._is_initialized = True
        logger.info(f"MongoUserStore initialized on database '{self.settings.mongodb_db}'")

    async def ping(self) -> bool:
        with _store_errors("ping MongoDB"):
            await self.client.admin.command("ping")
        return True

    @staticmethod
    def _to_user(doc: Optional[dict]) -> Optional[User]:
        if doc is None:
            return None
        return User.model_validate({**doc, "_id": str(doc["_id"])})

    async def find_by_username_or_email(
        self, username: Optional[str], email: Optional[str]
    ) -> Optional[User]:
        conditions = _lookup_conditions(username, email)
        if not conditions:
            return None
        with _store_errors("look up user"):
            doc = await self.collection.find_one({"$or": conditions})
        return self._to_user(doc)

    async def get(self, user_id: str) -> Optional[User]:
        if not user_id or not ObjectId.is_valid(user_id):
            return None
        with _store_errors("load user"):
            doc = await self.collection.find_one({"_id": ObjectId(user_id)})
        return self._to_user(doc)

    async def create(self, fields: Dict[str, Any]) -> User:
        now = utc_now()
        doc = {**fields, "createdAt": now, "updatedAt": now}
        with _store_errors("create user"):
            result = await self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return self._to_user(doc)

    async def update(self, user_id: str, patch: Dict[str, Any]) -> Optional[User]:
        if not user_id or not ObjectId.is_valid(user_id):
            return None
        to_set, to_unset = _split_patch(patch)
        to_set["updatedAt"] = utc_now()
        operations: Dict[str, Any] = {"$set": to_set}
        if to_unset:
            operations["$unset"] = to_unset
        with _store_errors("update user"):
            doc = await self.collection.find_one_and_update(
                {"_id": ObjectId(user_id)},
                operations,
                return_document=ReturnDocument.AFTER,
            )
        return self._to_user(doc)

    async def close(self) -> None:
        self.client.close()  # Motor client's close() is not async


class InMemoryUserStore:
    """
    Dict-backed user store (non-persistent).

    Enforces the same unique constraints as the MongoDB indexes.
    """

    def __init__(self):
        self._users: Dict[str, Dict[str, Any]] = {}

    async def initialize(self) -> None:
        logger.warning("Using in-memory user store, data will not survive a restart")

    async def ping(self) -> bool:
        return True

    async def find_by_username_or_email(
        self, username: Optional[str], email: Optional[str]
    ) -> Optional[User]:
        conditions = _lookup_conditions(username, email)
        for record in self._users.values():
            if any(record.get(key) == value for cond in conditions for key, value in cond.items()):
                return User.model_validate(record)
        return None

    async def get(self, user_id: str) -> Optional[User]:
        record = self._users.get(user_id)
        return User.model_validate(record) if record else None

    async def create(self, fields: Dict[str, Any]) -> User:
        for field in UNIQUE_FIELDS:
            value = fields.get(field)
            if any(record.get(field) == value for record in self._users.values()):
                raise DuplicateRecordError(f"Duplicate key error: {field} '{value}' already exists")

        now = utc_now()
        user_id = str(ObjectId())
        record = {**fields, "_id": user_id, "createdAt": now, "updatedAt": now}
        self._users[user_id] = record
        return User.model_validate(record)

    async def update(self, user_id: str, patch: Dict[str, Any]) -> Optional[User]:
        record = self._users.get(user_id)
        if record is None:
            return None
        to_set, to_unset = _split_patch(patch)
        record.update(to_set)
        for key in to_unset:
            record.pop(key, None)
        record["updatedAt"] = utc_now()
        return User.model_validate(record)

    async def close(self) -> None:
        self._users.clear()


def create_user_store(settings: Optional[Settings] = None) -> UserStoreProtocol:
    """
    Factory function to create the configured user store.

    Args:
        settings: Application settings

    Returns:
        MongoUserStore when a MongoDB URI is configured, else InMemoryUserStore
    """
    settings = settings or get_settings()
    if settings.mongodb_uri:
        logger.info("Creating MongoDB user store")
        return MongoUserStore(settings)

    logger.info("No MongoDB URI configured, creating in-memory user store")
    return InMemoryUserStore()
