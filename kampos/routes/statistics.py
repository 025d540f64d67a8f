from fastapi import APIRouter, Depends

from ..auth.dependencies import get_current_active_professor
from ..database import get_data_manager
from ..schemas.auth import ProfessorRecord
from ..schemas.statistics import GeneralStatistics, SubjectStatistics
from ..services.data_manager import DataManager

router = APIRouter()


@router.get("", response_model=GeneralStatistics)
def general_statistics(
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    return manager.general_statistics(professor.id)


@router.get("/subjects", response_model=list[SubjectStatistics])
def all_subject_statistics(
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    return [manager.subject_statistics(s) for s in manager.list_subjects(professor.id)]


@router.get("/subjects/{subject_id}", response_model=SubjectStatistics)
def subject_statistics(
    subject_id: str,
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    return manager.subject_statistics(manager.require_subject(subject_id, professor.id))
