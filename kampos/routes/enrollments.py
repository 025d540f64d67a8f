from fastapi import APIRouter, Depends, status

from ..auth.dependencies import get_current_active_professor
from ..database import get_data_manager
from ..errors import NotFoundError
from ..schemas.auth import ProfessorRecord
from ..schemas.core import EnrollmentCreate, EnrollmentOut
from ..services.data_manager import DataManager

router = APIRouter()


@router.get("/{subject_id}/enrollments", response_model=list[EnrollmentOut])
def list_enrollments(
    subject_id: str,
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    manager.require_subject(subject_id, professor.id)
    return manager.list_enrollments_by_subject(subject_id)


@router.post("/{subject_id}/enrollments", response_model=EnrollmentOut, status_code=status.HTTP_201_CREATED)
def enroll_student(
    subject_id: str,
    payload: EnrollmentCreate,
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    manager.require_subject(subject_id, professor.id)
    manager.require_student(payload.student_id, professor.id)
    enrollment_id = manager.enroll_student(payload.student_id, subject_id)
    return next(e for e in manager.list_enrollments_by_subject(subject_id) if e.id == enrollment_id)


@router.delete("/{subject_id}/enrollments/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_enrollment(
    subject_id: str,
    student_id: str,
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    manager.require_subject(subject_id, professor.id)
    if not manager.remove_enrollment(student_id, subject_id):
        raise NotFoundError("Enrollment not found")
