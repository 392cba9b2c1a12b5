"""
MongoDB access for the QuizMania collections.

A ``Database`` is built once per process (see the lifespan in ``main.py``) and
handed to the services; nothing here is a module-level connection.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, MongoClient
from pymongo.collection import Collection

logger = logging.getLogger(__name__)

USERS = "users"
QUIZZES = "quizzes"
RESET_TOKENS = "reset_tokens"


class Database:
    def __init__(self, client: MongoClient, name: str):
        self.client = client
        self.db = client[name]
        self.name = name

    @classmethod
    def connect(cls, url: str, name: str) -> "Database":
        # Short server selection timeout so requests fail instead of hanging.
        client = MongoClient(url, serverSelectionTimeoutMS=5000, tz_aware=True)
        logger.info("MongoDB client created for database %s", name)
        return cls(client, name)

    @property
    def users(self) -> Collection:
        return self.db[USERS]

    @property
    def quizzes(self) -> Collection:
        return self.db[QUIZZES]

    @property
    def reset_tokens(self) -> Collection:
        return self.db[RESET_TOKENS]

    def ensure_indexes(self) -> None:
        self.users.create_index([("email", ASCENDING)], unique=True)
        self.reset_tokens.create_index([("email", ASCENDING)], unique=True)
        self.quizzes.create_index([("user", ASCENDING), ("status", ASCENDING)])

    def list_collection_names(self) -> List[str]:
        return self.db.list_collection_names()

    def close(self) -> None:
        self.client.close()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """BSON dates come back naive unless the client is tz-aware."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_object_id(value: str) -> Optional[ObjectId]:
    if not ObjectId.is_valid(value):
        return None
    return ObjectId(value)


def serialize_document(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Make a stored document JSON friendly and drop credential fields."""
    out = {}
    for key, value in doc.items():
        if key == "password_hash":
            continue
        if isinstance(value, ObjectId):
            value = str(value)
        elif isinstance(value, datetime):
            value = as_utc(value).isoformat()
        out[key] = value
    return out


def serialize_documents(docs) -> List[Dict[str, Any]]:
    return [serialize_document(doc) for doc in docs]
