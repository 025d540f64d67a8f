import io
import zipfile

import pytest
from openpyxl import load_workbook

from kampos.services.grade_sheet import build_grade_workbook
from kampos.services.reports import ReportService

from conftest import make_student, make_subject


class FakePdfReportService(ReportService):
    """Returns the rendered HTML instead of converting it to PDF."""

    def _html_to_pdf(self, html_content: str) -> bytes:
        return html_content.encode("utf-8")


@pytest.fixture
def reports():
    return FakePdfReportService()


@pytest.fixture
def graded_subject(local_store):
    ana = make_student(local_store)
    brais = make_student(local_store, name="Brais", surname="Lema", email="brais@example.com")
    subject_id = make_subject(local_store, evaluation_count=1)
    for student_id in (ana, brais):
        local_store.enroll_student(student_id, subject_id)

    grade = local_store.init_student_grade(ana, subject_id)
    grade.evaluation_grades[0].exam_grades[0].value = 8
    grade.evaluation_grades[0].exam_grades[1].value = 6
    local_store.update_student_grade(grade)

    subject = local_store.get_subject(subject_id)
    students = [local_store.get_student(ana), local_store.get_student(brais)]
    return subject, students, local_store.list_grades_by_subject(subject_id)


def test_student_report_shows_scores_and_final_grade(reports, graded_subject):
    subject, students, grades = graded_subject
    html = reports.student_report_html(students[0], subject, grades[0])

    assert "Castro, Ana" in html
    assert "Exame final" in html
    assert "8.00" in html
    assert "7.40" in html
    assert 'class="pass"' in html


def test_student_report_without_grades(reports, graded_subject):
    subject, students, _ = graded_subject
    html = reports.student_report_html(students[1], subject, None)
    assert "Lema, Brais" in html
    assert "7.40" not in html


def test_roster_lists_students_by_surname(reports, graded_subject):
    subject, students, _ = graded_subject
    html = reports.class_roster_pdf(subject, list(reversed(students))).decode("utf-8")

    assert html.index("Castro") < html.index("Lema")
    assert "DAW 1º" in html


def test_template_output_is_escaped(reports, graded_subject):
    subject, students, _ = graded_subject
    students[0].name = "<b>Ana</b>"
    html = reports.class_roster_pdf(subject, students).decode("utf-8")
    assert "&lt;b&gt;Ana&lt;/b&gt;" in html


def test_bulk_reports_bundle_and_skip_failures(graded_subject):
    subject, students, grades = graded_subject

    class FailingForLema(FakePdfReportService):
        def student_report_pdf(self, student, subject, grade):
            if student.surname == "Lema":
                raise RuntimeError("render failed")
            return super().student_report_pdf(student, subject, grade)

    archive, generated, failed = FailingForLema().bulk_student_reports(subject, students, grades)

    assert (generated, failed) == (1, 1)
    with zipfile.ZipFile(io.BytesIO(archive)) as bundle:
        names = bundle.namelist()
    assert len(names) == 1
    assert names[0].startswith("Castro_Ana_")


def test_grade_workbook_has_row_per_student(graded_subject):
    subject, students, grades = graded_subject
    wb = load_workbook(io.BytesIO(build_grade_workbook(subject, students, grades)))
    ws = wb.active

    header = [cell.value for cell in ws[1]]
    assert header[:3] == ["Surname", "Name", "Email"]
    assert header[-1] == "Final grade"
    assert ws.max_row == 3

    ana = [cell.value for cell in ws[2]]
    assert ana[0] == "Castro"
    assert ana[3:5] == [8, 6]
    assert ana[-1] == pytest.approx(7.4)

    brais = [cell.value for cell in ws[3]]
    assert brais[-1] is None
