import logging
import os

from fastapi import Depends
from pymongo import MongoClient

from .services.data_manager import DataManager
from .stores.base import GradeStore
from .stores.local import LocalGradeStore
from .stores.mongo import MongoGradeStore


logger = logging.getLogger(__name__)

# "mongo" or "local"
STORE_BACKEND = os.getenv("STORE_BACKEND", "mongo")
MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "kampos_xestion")
LOCAL_STORE_DIR = os.getenv("LOCAL_STORE_DIR", "./data")
GRADE_LOOKUP_RETRY_DELAY = float(os.getenv("GRADE_LOOKUP_RETRY_DELAY", "0.3"))

_client: MongoClient | None = None
_store: GradeStore | None = None


def get_mongo_client() -> MongoClient:
    global _client
    if _client is None:
        _client = MongoClient(MONGO_URL, serverSelectionTimeoutMS=5000)
    return _client


def get_db():
    client = get_mongo_client()
    return client[MONGO_DB_NAME]


def create_store(backend: str = STORE_BACKEND) -> GradeStore:
    if backend == "mongo":
        return MongoGradeStore(get_db(), retry_delay=GRADE_LOOKUP_RETRY_DELAY)
    if backend == "local":
        return LocalGradeStore(LOCAL_STORE_DIR)
    raise ValueError(f"Unknown STORE_BACKEND {backend!r}, expected 'mongo' or 'local'")


def get_store() -> GradeStore:
    global _store
    if _store is None:
        _store = create_store()
        logger.info("Using the %s store", _store.backend_name)
    return _store


def get_data_manager(store: GradeStore = Depends(get_store)) -> DataManager:
    return DataManager(store)


def get_local_store() -> LocalGradeStore:
    """Local store read by the migration, whatever backend is active."""
    return LocalGradeStore(LOCAL_STORE_DIR)
