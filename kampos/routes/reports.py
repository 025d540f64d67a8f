import re

from fastapi import APIRouter, Depends, Response

from ..auth.dependencies import get_current_active_professor
from ..database import get_data_manager
from ..schemas.auth import ProfessorRecord
from ..services.data_manager import DataManager
from ..services.grade_sheet import build_grade_workbook
from ..services.reports import ReportService

router = APIRouter()

PDF = "application/pdf"
XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def get_report_service() -> ReportService:
    return ReportService()


def _attachment(content: bytes, media_type: str, filename: str, headers: dict | None = None) -> Response:
    safe_name = re.sub(r"[^A-Za-z0-9._-]+", "_", filename)
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{safe_name}"', **(headers or {})},
    )


@router.get("/subjects/{subject_id}/roster.pdf")
def class_roster(
    subject_id: str,
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
    reports: ReportService = Depends(get_report_service),
):
    subject = manager.require_subject(subject_id, professor.id)
    pdf = reports.class_roster_pdf(subject, manager.students_by_subject(subject_id))
    return _attachment(pdf, PDF, f"roster_{subject.name}.pdf")


@router.get("/subjects/{subject_id}/students/{student_id}/report.pdf")
def student_report(
    subject_id: str,
    student_id: str,
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
    reports: ReportService = Depends(get_report_service),
):
    subject = manager.require_subject(subject_id, professor.id)
    student = manager.require_student(student_id, professor.id)
    pdf = reports.student_report_pdf(student, subject, manager.get_student_grade(student_id, subject_id))
    return _attachment(pdf, PDF, f"{student.surname}_{student.name}_{subject.name}.pdf")


@router.get("/subjects/{subject_id}/statistics.pdf")
def subject_statistics_report(
    subject_id: str,
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
    reports: ReportService = Depends(get_report_service),
):
    subject = manager.require_subject(subject_id, professor.id)
    pdf = reports.subject_statistics_pdf(subject, manager.subject_statistics(subject))
    return _attachment(pdf, PDF, f"statistics_{subject.name}.pdf")


@router.get("/subjects/{subject_id}/reports.zip")
def bulk_student_reports(
    subject_id: str,
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
    reports: ReportService = Depends(get_report_service),
):
    subject = manager.require_subject(subject_id, professor.id)
    archive, generated, failed = reports.bulk_student_reports(
        subject, manager.students_by_subject(subject_id), manager.list_grades_by_subject(subject_id)
    )
    return _attachment(
        archive,
        "application/zip",
        f"reports_{subject.name}.zip",
        headers={"X-Reports-Generated": str(generated), "X-Reports-Failed": str(failed)},
    )


@router.get("/subjects/{subject_id}/grades.xlsx")
def grade_sheet(
    subject_id: str,
    professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    subject = manager.require_subject(subject_id, professor.id)
    workbook = build_grade_workbook(
        subject, manager.students_by_subject(subject_id), manager.list_grades_by_subject(subject_id)
    )
    return _attachment(workbook, XLSX, f"grades_{subject.name}.xlsx")
