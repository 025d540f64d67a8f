import logging
import time
from contextlib import contextmanager
from typing import Dict, List, Optional, Tuple

from bson import ObjectId
from pymongo import ASCENDING
from pymongo.database import Database
from pymongo.errors import (
    BulkWriteError,
    ConnectionFailure,
    DuplicateKeyError,
    OperationFailure,
    PyMongoError,
    ServerSelectionTimeoutError,
)

from ..errors import InvalidRequestError, StoreError
from ..schemas.core import StudentGrade
from .base import BACKUP_KEY, ENROLLMENTS, GRADES, GradeStore, _latest_first


logger = logging.getLogger(__name__)

BACKUPS = "backups"
UNAUTHORIZED = 13
DUPLICATE_KEY = 11000


@contextmanager
def _store_errors():
    try:
        yield
    except DuplicateKeyError as exc:
        raise InvalidRequestError("A record for this student and subject already exists") from exc
    except BulkWriteError as exc:
        errors = exc.details.get("writeErrors", [])
        if any(error.get("code") == DUPLICATE_KEY for error in errors):
            raise InvalidRequestError("The data contains duplicate records") from exc
        logger.error("MongoDB bulk write failed: %s", exc)
        raise StoreError("unknown-error", str(exc)) from exc
    except ServerSelectionTimeoutError as exc:
        logger.error("MongoDB server not reachable: %s", exc)
        raise StoreError("service-unavailable", str(exc)) from exc
    except ConnectionFailure as exc:
        logger.error("MongoDB connection failure: %s", exc)
        raise StoreError("network-error", str(exc)) from exc
    except OperationFailure as exc:
        logger.error("MongoDB operation failed: %s", exc)
        code = "permission-denied" if exc.code == UNAUTHORIZED else "unknown-error"
        raise StoreError(code, str(exc)) from exc
    except PyMongoError as exc:
        logger.error("MongoDB error: %s", exc)
        raise StoreError("unknown-error", str(exc)) from exc


def _doc_to_record(doc: dict) -> dict:
    record = {k: v for k, v in doc.items() if k != "_id"}
    record["id"] = str(doc["_id"])
    return record


def _query(filters: dict) -> dict:
    return {("_id" if key == "id" else key): value for key, value in filters.items()}


class MongoGradeStore(GradeStore):
    """
    Stores each entity type in its own collection. Record ids are generated
    ObjectIds kept as strings, so ids coming from a restored backup or from
    the local backend can be written back unchanged.

    Grade lookups remember the last id seen for each (student, subject) pair
    and, when nothing turns up, look once more after ``retry_delay`` seconds.
    """

    backend_name = "mongo"

    def __init__(self, db: Database, retry_delay: float = 0.3):
        self.db = db
        self.retry_delay = retry_delay
        self._last_grade_ids: Dict[Tuple[str, str], str] = {}
        with _store_errors():
            for collection in (ENROLLMENTS, GRADES):
                self.db[collection].create_index(
                    [("student_id", ASCENDING), ("subject_id", ASCENDING)], unique=True
                )

    # primitives

    def _find(self, collection: str, **filters) -> List[dict]:
        with _store_errors():
            return [_doc_to_record(doc) for doc in self.db[collection].find(_query(filters))]

    def _get(self, collection: str, record_id: str) -> Optional[dict]:
        with _store_errors():
            doc = self.db[collection].find_one({"_id": record_id})
        return _doc_to_record(doc) if doc else None

    def _insert(self, collection: str, data: dict) -> str:
        doc = {k: v for k, v in data.items() if k != "id"}
        doc["_id"] = str(ObjectId())
        with _store_errors():
            self.db[collection].insert_one(doc)
        if collection == GRADES:
            self._last_grade_ids[(doc["student_id"], doc["subject_id"])] = doc["_id"]
        return doc["_id"]

    def _replace(self, collection: str, record_id: str, data: dict) -> bool:
        doc = {k: v for k, v in data.items() if k != "id"}
        with _store_errors():
            result = self.db[collection].replace_one({"_id": record_id}, doc)
        return result.matched_count > 0

    def _delete(self, collection: str, record_id: str) -> bool:
        with _store_errors():
            result = self.db[collection].delete_one({"_id": record_id})
        return result.deleted_count > 0

    def _delete_where(self, collection: str, **filters) -> int:
        with _store_errors():
            result = self.db[collection].delete_many(_query(filters))
        return result.deleted_count

    def _replace_all(self, collection: str, records: List[dict]) -> None:
        docs = []
        for record in records:
            doc = {k: v for k, v in record.items() if k != "id"}
            doc["_id"] = str(record.get("id") or ObjectId())
            docs.append(doc)
        with _store_errors():
            self.db[collection].delete_many({})
            if docs:
                self.db[collection].insert_many(docs)
        if collection == GRADES:
            self._last_grade_ids.clear()

    def save_backup(self, snapshot: dict) -> None:
        with _store_errors():
            self.db[BACKUPS].replace_one({"_id": BACKUP_KEY}, snapshot, upsert=True)
        logger.info("Backup stored in collection %s", BACKUPS)

    def load_backup(self) -> Optional[dict]:
        with _store_errors():
            doc = self.db[BACKUPS].find_one({"_id": BACKUP_KEY})
        if doc is None:
            return None
        return {k: v for k, v in doc.items() if k != "_id"}

    # grade lookup

    def _lookup_grade(self, student_id: str, subject_id: str) -> Optional[StudentGrade]:
        pair = (student_id, subject_id)

        known_id = self._last_grade_ids.get(pair)
        if known_id:
            record = self._get(GRADES, known_id)
            if record and (record["student_id"], record["subject_id"]) == pair:
                return StudentGrade.model_validate(record)
            self._last_grade_ids.pop(pair, None)

        matches = _latest_first(self._find(GRADES, student_id=student_id, subject_id=subject_id))
        if not matches:
            return None
        for stale in matches[1:]:
            logger.warning("Removing stale grade %s for student %s", stale["id"], student_id)
            self._delete(GRADES, stale["id"])
        self._last_grade_ids[pair] = matches[0]["id"]
        return StudentGrade.model_validate(matches[0])

    def get_student_grade(self, student_id: str, subject_id: str) -> Optional[StudentGrade]:
        grade = self._lookup_grade(student_id, subject_id)
        if grade is None:
            time.sleep(self.retry_delay)
            grade = self._lookup_grade(student_id, subject_id)
        return grade
