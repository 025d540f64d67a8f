"""
Single entry point the API layer talks to.

``DataManager`` wraps whichever ``GradeStore`` was configured and forwards
every operation to it unchanged (no retry, no fallback). On top of the store
it adds the operations that span several entities: students of a subject,
statistics, backup/restore, the new-course reset and bulk imports.
"""

import logging
from typing import List, Optional

from ..auth.security import hash_password
from ..errors import InvalidRequestError, NotFoundError
from ..schemas.auth import ProfessorCreate, ProfessorRecord
from ..schemas.backup import BackupCounts, BackupSnapshot
from ..schemas.core import (
    EvaluationConfig,
    FailedItem,
    ImportSummary,
    MigratedItem,
    MigrationResult,
    StudentBase,
    StudentGrade,
    StudentOut,
    SubjectBase,
    SubjectOut,
)
from ..schemas.statistics import GeneralStatistics, SubjectStatistics
from ..stores.base import ENROLLMENTS, GRADES, PROFESSORS, STUDENTS, SUBJECTS, GradeStore
from . import statistics
from .grades import default_evaluation_config
from .importers import parse_students_file


logger = logging.getLogger(__name__)

SNAPSHOT_FIELDS = {
    "professors": PROFESSORS,
    "students": STUDENTS,
    "subjects": SUBJECTS,
    "enrollments": ENROLLMENTS,
    "grades": GRADES,
}


class DataManager:
    def __init__(self, store: GradeStore):
        self.store = store

    # professors

    def register_professor(self, data: ProfessorCreate) -> ProfessorRecord:
        professor_id = self.store.add_professor(data, hash_password(data.password))
        return self.store.get_professor(professor_id)

    def get_professor(self, professor_id: str) -> Optional[ProfessorRecord]:
        return self.store.get_professor(professor_id)

    def get_professor_by_email(self, email: str) -> Optional[ProfessorRecord]:
        return self.store.get_professor_by_email(email)

    def list_professors(self) -> List[ProfessorRecord]:
        return self.store.list_professors()

    def update_professor(self, professor: ProfessorRecord) -> ProfessorRecord:
        return self.store.update_professor(professor)

    def delete_professor(self, professor_id: str) -> None:
        self.store.delete_professor(professor_id)

    # students

    def list_students(self, professor_id: str) -> List[StudentOut]:
        return self.store.list_students_by_professor(professor_id)

    def get_student(self, student_id: str) -> Optional[StudentOut]:
        return self.store.get_student(student_id)

    def require_student(self, student_id: str, professor_id: str) -> StudentOut:
        student = self.store.get_student(student_id)
        if student is None or student.professor_id != professor_id:
            raise NotFoundError("Student not found")
        return student

    def add_student(self, professor_id: str, data: StudentBase) -> StudentOut:
        return self.store.get_student(self.store.add_student(professor_id, data))

    def add_students(self, professor_id: str, students: List[StudentBase]) -> List[str]:
        return self.store.add_students(professor_id, students)

    def update_student(self, student: StudentOut) -> StudentOut:
        return self.store.update_student(student)

    def delete_student(self, student_id: str) -> None:
        self.store.delete_student(student_id)

    def students_by_subject(self, subject_id: str) -> List[StudentOut]:
        """Students enrolled in the subject; enrollments of missing students are skipped."""
        students = []
        for enrollment in self.store.list_enrollments_by_subject(subject_id):
            student = self.store.get_student(enrollment.student_id)
            if student is None:
                logger.warning("Enrollment %s points to missing student %s", enrollment.id, enrollment.student_id)
                continue
            students.append(student)
        return students

    def import_students(self, professor_id: str, filename: str, content: bytes) -> ImportSummary:
        parsed = parse_students_file(filename, content)
        created_ids = self.store.add_students(professor_id, parsed.students)
        logger.info("Imported %d students from %s (%d rejected)", len(created_ids), filename, len(parsed.errors))
        return ImportSummary(created_ids=created_ids, errors=parsed.errors)

    # subjects

    def list_subjects(self, professor_id: str) -> List[SubjectOut]:
        return self.store.list_subjects_by_professor(professor_id)

    def get_subject(self, subject_id: str) -> Optional[SubjectOut]:
        return self.store.get_subject(subject_id)

    def require_subject(self, subject_id: str, professor_id: str) -> SubjectOut:
        subject = self.store.get_subject(subject_id)
        if subject is None or subject.professor_id != professor_id:
            raise NotFoundError("Subject not found")
        return subject

    def add_subject(
        self, professor_id: str, data: SubjectBase, evaluation_config: Optional[EvaluationConfig] = None
    ) -> SubjectOut:
        return self.store.get_subject(self.store.add_subject(professor_id, data, evaluation_config))

    def update_subject(self, subject: SubjectOut) -> SubjectOut:
        return self.store.update_subject(subject)

    def delete_subject(self, subject_id: str) -> None:
        self.store.delete_subject(subject_id)

    def save_evaluation_config(self, subject_id: str, config: EvaluationConfig) -> SubjectOut:
        return self.store.save_evaluation_config(subject_id, config)

    def default_evaluation_config(self, subject_id: str, evaluation_count: Optional[int] = None) -> EvaluationConfig:
        subject = self.store.get_subject(subject_id)
        if subject is None:
            raise NotFoundError("Subject not found")
        return default_evaluation_config(subject, evaluation_count)

    # enrollments

    def enroll_student(self, student_id: str, subject_id: str) -> str:
        return self.store.enroll_student(student_id, subject_id)

    def is_enrolled(self, student_id: str, subject_id: str) -> bool:
        return self.store.is_enrolled(student_id, subject_id)

    def list_enrollments_by_subject(self, subject_id: str):
        return self.store.list_enrollments_by_subject(subject_id)

    def list_enrollments_by_student(self, student_id: str):
        return self.store.list_enrollments_by_student(student_id)

    def remove_enrollment(self, student_id: str, subject_id: str) -> bool:
        return self.store.remove_enrollment(student_id, subject_id)

    # grades

    def get_student_grade(self, student_id: str, subject_id: str) -> Optional[StudentGrade]:
        return self.store.get_student_grade(student_id, subject_id)

    def init_student_grade(self, student_id: str, subject_id: str) -> StudentGrade:
        return self.store.init_student_grade(student_id, subject_id)

    def init_subject_grades(self, subject_id: str) -> List[StudentGrade]:
        return [self.store.init_student_grade(s.id, subject_id) for s in self.students_by_subject(subject_id)]

    def update_student_grade(self, grade: StudentGrade) -> StudentGrade:
        return self.store.update_student_grade(grade)

    def delete_student_grades(self, student_id: str, subject_id: str) -> int:
        return self.store.delete_student_grades(student_id, subject_id)

    def list_grades(self) -> List[StudentGrade]:
        return self.store.list_grades()

    def list_grades_by_subject(self, subject_id: str) -> List[StudentGrade]:
        return self.store.list_grades_by_subject(subject_id)

    def remove_duplicate_grades(self) -> int:
        return self.store.remove_duplicate_grades()

    # statistics

    def subject_statistics(self, subject: SubjectOut) -> SubjectStatistics:
        return statistics.subject_statistics(
            subject, self.students_by_subject(subject.id), self.store.list_grades_by_subject(subject.id)
        )

    def general_statistics(self, professor_id: str) -> GeneralStatistics:
        subjects = self.store.list_subjects_by_professor(professor_id)
        return statistics.general_statistics(subjects, [self.subject_statistics(s) for s in subjects])

    # backup

    def create_backup(self) -> BackupSnapshot:
        data = self.store.export_collections()
        snapshot = BackupSnapshot.model_validate(
            {field: data[collection] for field, collection in SNAPSHOT_FIELDS.items()}
        )
        self.store.save_backup(snapshot.model_dump(mode="json"))
        logger.info("Backup created at %s", snapshot.timestamp.isoformat())
        return snapshot

    def latest_backup(self) -> Optional[BackupSnapshot]:
        data = self.store.load_backup()
        return BackupSnapshot.model_validate(data) if data else None

    def restore_backup(self, snapshot: BackupSnapshot) -> BackupCounts:
        """
        Replace every collection present in the snapshot. Collections the
        snapshot does not carry are left as they are.
        """
        present = {
            field: getattr(snapshot, field) for field in SNAPSHOT_FIELDS if getattr(snapshot, field) is not None
        }
        if not present:
            raise InvalidRequestError("The backup does not contain any data")

        stored = self.store.replace_collections(
            {
                SNAPSHOT_FIELDS[field]: [item.model_dump(mode="json") for item in items]
                for field, items in present.items()
            }
        )
        counts = BackupCounts(**{field: stored[SNAPSHOT_FIELDS[field]] for field in present})
        logger.info("Backup from %s (version %s) restored: %s", snapshot.timestamp, snapshot.version, counts)
        return counts

    def start_new_course(self) -> BackupSnapshot:
        """Back everything up, then drop students, enrollments and grades."""
        backup = self.create_backup()
        self.store.clear_students_and_grades()
        logger.info("New course started, professors and subjects kept")
        return backup


def migrate_local_data(
    source: GradeStore, target: GradeStore, professor_id: str, target_professor_id: Optional[str] = None
) -> MigrationResult:
    """
    Best-effort copy of a professor's students and subjects from ``source``
    into ``target``. Each item that fails is logged and reported; the rest
    still get copied. Enrollments and grades are not migrated since their
    student and subject ids change on the way.
    """
    owner_id = target_professor_id or professor_id
    result = MigrationResult(professor_id=owner_id)

    for student in source.list_students_by_professor(professor_id):
        try:
            new_id = target.add_student(owner_id, StudentBase.model_validate(student.model_dump()))
        except Exception as exc:
            logger.warning("Student %s could not be migrated: %s", student.id, exc)
            result.failed.append(FailedItem(kind="student", source_id=student.id, reason=str(exc)))
            continue
        result.migrated.append(
            MigratedItem(kind="student", source_id=student.id, target_id=new_id, name=f"{student.name} {student.surname}")
        )

    for subject in source.list_subjects_by_professor(professor_id):
        try:
            new_id = target.add_subject(owner_id, SubjectBase.model_validate(subject.model_dump()), subject.evaluation_config)
        except Exception as exc:
            logger.warning("Subject %s could not be migrated: %s", subject.id, exc)
            result.failed.append(FailedItem(kind="subject", source_id=subject.id, reason=str(exc)))
            continue
        result.migrated.append(MigratedItem(kind="subject", source_id=subject.id, target_id=new_id, name=subject.name))

    logger.info(
        "Migration for professor %s finished: %d migrated, %d failed",
        owner_id,
        len(result.migrated),
        len(result.failed),
    )
    return result
