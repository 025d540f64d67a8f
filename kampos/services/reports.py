import io
import logging
import re
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..schemas.core import StudentGrade, StudentOut, SubjectOut
from ..schemas.statistics import SubjectStatistics
from .grades import compute_evaluation_grade, compute_final_subject_grade
from .statistics import PASS_MARK


logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"


def _slug(text: str) -> str:
    return re.sub(r"[^A-Za-z0-9]+", "_", text).strip("_") or "report"


def _by_surname(students: List[StudentOut]) -> List[StudentOut]:
    return sorted(students, key=lambda s: (s.surname.lower(), s.name.lower()))


class ReportService:
    def __init__(self, template_dir: Optional[Path] = None):
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir or TEMPLATE_DIR)),
            autoescape=select_autoescape(["html"]),
        )

    def _render_template(self, template_name: str, data: Dict[str, Any]) -> str:
        template = self.env.get_template(template_name)
        return template.render(generated_at=datetime.now().strftime("%d/%m/%Y %H:%M"), **data)

    def _html_to_pdf(self, html_content: str) -> bytes:
        # weasyprint needs the pango system libraries, only load it when a PDF is built
        import weasyprint

        return weasyprint.HTML(string=html_content).write_pdf()

    def class_roster_pdf(self, subject: SubjectOut, students: List[StudentOut]) -> bytes:
        html = self._render_template("roster.html", {"subject": subject, "students": _by_surname(students)})
        return self._html_to_pdf(html)

    def student_report_html(self, student: StudentOut, subject: SubjectOut, grade: Optional[StudentGrade]) -> str:
        evaluations = []
        config = subject.evaluation_config
        evaluation_grades = {eg.evaluation_id: eg for eg in grade.evaluation_grades} if grade else {}

        for evaluation in config.evaluations if config else []:
            evaluation_grade = evaluation_grades.get(evaluation.id)
            values = {eg.exam_id: eg for eg in evaluation_grade.exam_grades} if evaluation_grade else {}
            evaluations.append(
                {
                    "number": evaluation.number,
                    "weight": evaluation.weight,
                    "exams": [
                        {
                            "name": exam.name,
                            "weight": exam.weight,
                            "value": values[exam.id].value if exam.id in values else None,
                            "remark": values[exam.id].remark if exam.id in values else None,
                        }
                        for exam in evaluation.exams
                    ],
                    "grade": compute_evaluation_grade(evaluation_grade, evaluation) if evaluation_grade else None,
                }
            )

        final_grade = compute_final_subject_grade(grade, subject) if grade else None
        return self._render_template(
            "student_report.html",
            {
                "student": student,
                "subject": subject,
                "evaluations": evaluations,
                "final_grade": final_grade,
                "passed": final_grade is not None and final_grade >= PASS_MARK,
            },
        )

    def student_report_pdf(self, student: StudentOut, subject: SubjectOut, grade: Optional[StudentGrade]) -> bytes:
        return self._html_to_pdf(self.student_report_html(student, subject, grade))

    def subject_statistics_pdf(self, subject: SubjectOut, stats: SubjectStatistics) -> bytes:
        html = self._render_template("subject_statistics.html", {"subject": subject, "stats": stats})
        return self._html_to_pdf(html)

    def bulk_student_reports(
        self, subject: SubjectOut, students: List[StudentOut], grades: List[StudentGrade]
    ) -> Tuple[bytes, int, int]:
        """
        One PDF report per student bundled in a zip archive. A student whose
        report fails is logged and left out.
        Returns (zip_bytes, generated, failed).
        """
        by_student = {grade.student_id: grade for grade in grades}
        generated = 0
        failed = 0

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
            for student in _by_surname(students):
                try:
                    pdf = self.student_report_pdf(student, subject, by_student.get(student.id))
                except Exception as exc:
                    logger.warning("Report for student %s failed: %s", student.id, exc)
                    failed += 1
                    continue
                archive.writestr(f"{_slug(student.surname)}_{_slug(student.name)}_{student.id}.pdf", pdf)
                generated += 1

        logger.info("Bulk reports for subject %s: %d generated, %d failed", subject.id, generated, failed)
        return buffer.getvalue(), generated, failed
