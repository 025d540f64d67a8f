from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..auth.dependencies import get_current_active_professor
from ..database import get_data_manager, get_local_store
from ..errors import InvalidRequestError, NotFoundError
from ..schemas.auth import ProfessorRecord
from ..schemas.backup import BackupCounts, BackupSnapshot
from ..schemas.core import MigrationResult
from ..services.data_manager import DataManager, migrate_local_data
from ..stores.local import LocalGradeStore

router = APIRouter()


class MigrationRequest(BaseModel):
    # owner of the records in the local store, defaults to the current professor
    source_professor_id: Optional[str] = None


@router.get("", response_model=BackupSnapshot)
def create_backup(
    _: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    return manager.create_backup()


@router.get("/latest", response_model=BackupSnapshot)
def latest_backup(
    _: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    snapshot = manager.latest_backup()
    if snapshot is None:
        raise NotFoundError("No backup has been made yet")
    return snapshot


@router.post("/restore", response_model=BackupCounts)
def restore_backup(
    payload: BackupSnapshot,
    _: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    return manager.restore_backup(payload)


@router.post("/new-course", response_model=BackupSnapshot)
def start_new_course(
    _: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    return manager.start_new_course()


@router.post("/migrate", response_model=MigrationResult)
def migrate_local(
    payload: MigrationRequest,
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
    source: LocalGradeStore = Depends(get_local_store),
):
    if manager.store.backend_name == "local":
        raise InvalidRequestError("Migration needs the remote store to be the active backend")
    return migrate_local_data(
        source,
        manager.store,
        payload.source_professor_id or professor.id,
        target_professor_id=professor.id,
    )
