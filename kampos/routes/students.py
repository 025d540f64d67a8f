from fastapi import APIRouter, Depends, File, UploadFile, status

from ..auth.dependencies import get_current_active_professor
from ..database import get_data_manager
from ..schemas.auth import ProfessorRecord
from ..schemas.core import EnrollmentOut, ImportSummary, StudentCreate, StudentOut
from ..services.data_manager import DataManager

router = APIRouter()


@router.get("", response_model=list[StudentOut])
def list_students(
    search: str = "",
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    students = manager.list_students(professor.id)
    if search:
        needle = search.lower()
        students = [
            s for s in students
            if needle in f"{s.name} {s.surname}".lower() or needle in s.email.lower()
        ]
    return sorted(students, key=lambda s: (s.surname.lower(), s.name.lower()))


@router.post("", response_model=StudentOut, status_code=status.HTTP_201_CREATED)
def create_student(
    payload: StudentCreate,
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    return manager.add_student(professor.id, payload)


@router.post("/bulk", response_model=list[str], status_code=status.HTTP_201_CREATED)
def create_students(
    payload: list[StudentCreate],
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    return manager.add_students(professor.id, payload)


@router.post("/import", response_model=ImportSummary)
def import_students(
    file: UploadFile = File(...),
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    content = file.file.read()
    return manager.import_students(professor.id, file.filename, content)


@router.get("/{student_id}", response_model=StudentOut)
def get_student(
    student_id: str,
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    return manager.require_student(student_id, professor.id)


@router.put("/{student_id}", response_model=StudentOut)
def update_student(
    student_id: str,
    payload: StudentCreate,
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    student = manager.require_student(student_id, professor.id)
    student.name = payload.name
    student.surname = payload.surname
    student.email = payload.email
    student.phone = payload.phone
    return manager.update_student(student)


@router.delete("/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_student(
    student_id: str,
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    manager.require_student(student_id, professor.id)
    manager.delete_student(student_id)


@router.get("/{student_id}/enrollments", response_model=list[EnrollmentOut])
def list_student_enrollments(
    student_id: str,
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    manager.require_student(student_id, professor.id)
    return manager.list_enrollments_by_student(student_id)
