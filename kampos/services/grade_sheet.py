import io
import re
from typing import List

from openpyxl import Workbook
from openpyxl.styles import Font

from ..schemas.core import StudentGrade, StudentOut, SubjectOut
from .grades import compute_evaluation_grade, compute_final_subject_grade


def _header(subject: SubjectOut) -> List[str]:
    header = ["Surname", "Name", "Email"]
    config = subject.evaluation_config
    for evaluation in config.evaluations if config else []:
        for exam in evaluation.exams:
            header.append(f"E{evaluation.number} {exam.name} ({exam.weight:g}%)")
        header.append(f"E{evaluation.number} grade")
    header.append("Final grade")
    return header


def _row(student: StudentOut, grade: StudentGrade | None, subject: SubjectOut) -> list:
    row = [student.surname, student.name, student.email]
    config = subject.evaluation_config
    evaluation_grades = {eg.evaluation_id: eg for eg in grade.evaluation_grades} if grade else {}

    for evaluation in config.evaluations if config else []:
        evaluation_grade = evaluation_grades.get(evaluation.id)
        values = {eg.exam_id: eg.value for eg in evaluation_grade.exam_grades} if evaluation_grade else {}
        for exam in evaluation.exams:
            row.append(values.get(exam.id))
        row.append(compute_evaluation_grade(evaluation_grade, evaluation) if evaluation_grade else None)

    row.append(compute_final_subject_grade(grade, subject) if grade else None)
    return row


def build_grade_workbook(subject: SubjectOut, students: List[StudentOut], grades: List[StudentGrade]) -> bytes:
    """
    One row per student (sorted by surname), one column per exam, the
    evaluation grades and the final grade. Students without a grade record
    get empty score cells.
    Returns the .xlsx file content.
    """
    by_student = {grade.student_id: grade for grade in grades}

    wb = Workbook()
    ws = wb.active
    ws.title = re.sub(r"[\[\]:*?/\\]", "", subject.name)[:31] or "Grades"

    header = _header(subject)
    for idx, title in enumerate(header):
        cell = ws.cell(row=1, column=idx + 1)
        cell.value = title
        cell.font = Font(bold=True)

    for student in sorted(students, key=lambda s: (s.surname.lower(), s.name.lower())):
        ws.append(_row(student, by_student.get(student.id), subject))

    ws.freeze_panes = "D2"

    out_buffer = io.BytesIO()
    wb.save(out_buffer)
    out_buffer.seek(0)
    return out_buffer.getvalue()
