from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from ..auth.dependencies import get_current_active_professor
from ..database import get_data_manager
from ..schemas.auth import ProfessorRecord
from ..schemas.core import EvaluationConfig, StudentOut, SubjectCreate, SubjectOut
from ..services.data_manager import DataManager

router = APIRouter()


@router.get("", response_model=list[SubjectOut])
def list_subjects(
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    return manager.list_subjects(professor.id)


@router.post("", response_model=SubjectOut, status_code=status.HTTP_201_CREATED)
def create_subject(
    payload: SubjectCreate,
    default_config: bool = Query(False, description="Attach the default evaluation configuration"),
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    subject = manager.add_subject(professor.id, payload)
    if default_config:
        subject = manager.save_evaluation_config(subject.id, manager.default_evaluation_config(subject.id))
    return subject


@router.get("/{subject_id}", response_model=SubjectOut)
def get_subject(
    subject_id: str,
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    return manager.require_subject(subject_id, professor.id)


@router.put("/{subject_id}", response_model=SubjectOut)
def update_subject(
    subject_id: str,
    payload: SubjectCreate,
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    subject = manager.require_subject(subject_id, professor.id)
    subject.name = payload.name
    subject.level = payload.level
    subject.course = payload.course
    subject.weekly_sessions = payload.weekly_sessions
    subject.evaluation_count = payload.evaluation_count
    return manager.update_subject(subject)


@router.delete("/{subject_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_subject(
    subject_id: str,
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    manager.require_subject(subject_id, professor.id)
    manager.delete_subject(subject_id)


@router.put("/{subject_id}/evaluation-config", response_model=SubjectOut)
def save_evaluation_config(
    subject_id: str,
    payload: EvaluationConfig,
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    manager.require_subject(subject_id, professor.id)
    return manager.save_evaluation_config(subject_id, payload)


@router.get("/{subject_id}/evaluation-config/default", response_model=EvaluationConfig)
def default_evaluation_config(
    subject_id: str,
    evaluation_count: Optional[int] = Query(None, ge=1),
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    manager.require_subject(subject_id, professor.id)
    return manager.default_evaluation_config(subject_id, evaluation_count)


@router.get("/{subject_id}/students", response_model=list[StudentOut])
def list_subject_students(
    subject_id: str,
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    manager.require_subject(subject_id, professor.id)
    return manager.students_by_subject(subject_id)
