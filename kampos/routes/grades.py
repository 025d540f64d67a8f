from fastapi import APIRouter, Depends

from ..auth.dependencies import get_current_active_professor
from ..database import get_data_manager
from ..errors import InvalidRequestError, NotFoundError
from ..schemas.auth import ProfessorRecord
from ..schemas.core import EvaluationGrade, ExamGrade, StudentGrade, StudentGradeUpdate
from ..services.data_manager import DataManager

router = APIRouter()


def _require_enrolled(manager: DataManager, professor: ProfessorRecord, subject_id: str, student_id: str) -> None:
    manager.require_subject(subject_id, professor.id)
    manager.require_student(student_id, professor.id)
    if not manager.is_enrolled(student_id, subject_id):
        raise InvalidRequestError("The student is not enrolled in this subject")


def _apply_scores(grade: StudentGrade, payload: StudentGradeUpdate) -> StudentGrade:
    """Overwrite the submitted scores, keep every other entry of the record."""
    by_evaluation = {eg.evaluation_id: eg for eg in grade.evaluation_grades}
    for evaluation_input in payload.evaluation_grades:
        evaluation_grade = by_evaluation.get(evaluation_input.evaluation_id)
        if evaluation_grade is None:
            evaluation_grade = EvaluationGrade(evaluation_id=evaluation_input.evaluation_id)
            grade.evaluation_grades.append(evaluation_grade)
            by_evaluation[evaluation_grade.evaluation_id] = evaluation_grade

        by_exam = {eg.exam_id: eg for eg in evaluation_grade.exam_grades}
        for exam_input in evaluation_input.exam_grades:
            exam_grade = by_exam.get(exam_input.exam_id)
            if exam_grade is None:
                evaluation_grade.exam_grades.append(ExamGrade(**exam_input.model_dump()))
            else:
                exam_grade.value = exam_input.value
                exam_grade.remark = exam_input.remark
    return grade


@router.get("/subjects/{subject_id}", response_model=list[StudentGrade])
def list_subject_grades(
    subject_id: str,
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    manager.require_subject(subject_id, professor.id)
    return manager.list_grades_by_subject(subject_id)


@router.post("/subjects/{subject_id}/init", response_model=list[StudentGrade])
def init_subject_grades(
    subject_id: str,
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    manager.require_subject(subject_id, professor.id)
    return manager.init_subject_grades(subject_id)


@router.get("/subjects/{subject_id}/students/{student_id}", response_model=StudentGrade)
def get_student_grade(
    subject_id: str,
    student_id: str,
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    manager.require_subject(subject_id, professor.id)
    grade = manager.get_student_grade(student_id, subject_id)
    if grade is None:
        raise NotFoundError("No grades recorded for this student")
    return grade


@router.post("/subjects/{subject_id}/students/{student_id}/init", response_model=StudentGrade)
def init_student_grade(
    subject_id: str,
    student_id: str,
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    _require_enrolled(manager, professor, subject_id, student_id)
    return manager.init_student_grade(student_id, subject_id)


@router.put("/subjects/{subject_id}/students/{student_id}", response_model=StudentGrade)
def update_student_grade(
    subject_id: str,
    student_id: str,
    payload: StudentGradeUpdate,
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    _require_enrolled(manager, professor, subject_id, student_id)
    grade = manager.get_student_grade(student_id, subject_id) or StudentGrade(
        student_id=student_id, subject_id=subject_id
    )
    return manager.update_student_grade(_apply_scores(grade, payload))


@router.post("/deduplicate")
def remove_duplicate_grades(
    _: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    return {"removed": manager.remove_duplicate_grades()}
