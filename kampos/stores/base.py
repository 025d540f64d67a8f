"""
Persistence interface shared by the local and the remote backend.

A backend only has to provide the collection primitives (find, get, insert,
replace, delete...). Entity operations, owner filtering and the cascade
rules are written once here on top of them, so both backends refuse the same
deletes and produce the same records.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from ..errors import DeleteBlockedError, InvalidRequestError, NotFoundError
from ..schemas.auth import ProfessorBase, ProfessorRecord
from ..schemas.core import (
    EnrollmentOut,
    EvaluationConfig,
    StudentBase,
    StudentGrade,
    StudentOut,
    SubjectBase,
    SubjectOut,
)
from ..services.grades import apply_computed_grades, empty_evaluation_grades, merge_missing_entries


logger = logging.getLogger(__name__)

PROFESSORS = "profesores"
STUDENTS = "alumnos"
SUBJECTS = "asignaturas"
ENROLLMENTS = "matriculas"
GRADES = "notas"

COLLECTIONS = (PROFESSORS, STUDENTS, SUBJECTS, ENROLLMENTS, GRADES)

# at most one record per (student, subject) in these
PAIR_COLLECTIONS = {ENROLLMENTS: "enrollment", GRADES: "grade"}

BACKUP_KEY = "kampos_xestion_backup"


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def deduplicate_pairs(records: Iterable[dict], kind: str = "grade") -> List[dict]:
    """Keep the first record for each (student, subject) pair and for each id."""
    seen_pairs = set()
    seen_ids = set()
    unique = []
    for record in records:
        pair = (record.get("student_id"), record.get("subject_id"))
        if pair in seen_pairs:
            logger.warning(
                "Dropping duplicate %s for student %s in subject %s", kind, pair[0], pair[1]
            )
            continue
        if record.get("id") in seen_ids:
            logger.warning("Dropping %s with duplicate id %s", kind, record.get("id"))
            continue
        seen_pairs.add(pair)
        seen_ids.add(record.get("id"))
        unique.append(record)
    return unique


def _check_unique_ids(collection: str, records: List[dict]) -> None:
    seen = set()
    for record in records:
        record_id = record.get("id")
        if record_id and record_id in seen:
            raise InvalidRequestError(f"Duplicate id {record_id} in {collection}")
        seen.add(record_id)


def _latest_first(records: List[dict]) -> List[dict]:
    return sorted(records, key=lambda r: r.get("updated_at") or "", reverse=True)


class GradeStore(ABC):
    backend_name = "abstract"

    # ------------------------------------------------------------------
    # collection primitives
    # ------------------------------------------------------------------

    @abstractmethod
    def _find(self, collection: str, **filters) -> List[dict]:
        """Records whose fields equal every filter value, ``id`` included."""

    @abstractmethod
    def _get(self, collection: str, record_id: str) -> Optional[dict]:
        ...

    @abstractmethod
    def _insert(self, collection: str, data: dict) -> str:
        """Store a new record and return the id assigned to it."""

    @abstractmethod
    def _replace(self, collection: str, record_id: str, data: dict) -> bool:
        ...

    @abstractmethod
    def _delete(self, collection: str, record_id: str) -> bool:
        ...

    @abstractmethod
    def _delete_where(self, collection: str, **filters) -> int:
        ...

    @abstractmethod
    def _replace_all(self, collection: str, records: List[dict]) -> None:
        """Overwrite a whole collection with ``records`` (ids preserved)."""

    @abstractmethod
    def save_backup(self, snapshot: dict) -> None:
        """Keep a copy of a full snapshot under the backend's backup key."""

    @abstractmethod
    def load_backup(self) -> Optional[dict]:
        ...

    # ------------------------------------------------------------------
    # professors
    # ------------------------------------------------------------------

    def add_professor(self, data: ProfessorBase, hashed_password: str) -> str:
        if self.get_professor_by_email(data.email) is not None:
            raise InvalidRequestError("A professor with this email already exists")
        doc = data.model_dump(mode="json", exclude={"password"})
        doc.update({"hashed_password": hashed_password, "active": True})
        professor_id = self._insert(PROFESSORS, doc)
        logger.info("Registered professor %s", professor_id)
        return professor_id

    def list_professors(self) -> List[ProfessorRecord]:
        return [ProfessorRecord.model_validate(r) for r in self._find(PROFESSORS)]

    def get_professor(self, professor_id: str) -> Optional[ProfessorRecord]:
        record = self._get(PROFESSORS, professor_id)
        return ProfessorRecord.model_validate(record) if record else None

    def get_professor_by_email(self, email: str) -> Optional[ProfessorRecord]:
        matches = self._find(PROFESSORS, email=email)
        return ProfessorRecord.model_validate(matches[0]) if matches else None

    def update_professor(self, professor: ProfessorRecord) -> ProfessorRecord:
        if not self._replace(PROFESSORS, professor.id, professor.model_dump(mode="json", exclude={"id"})):
            raise NotFoundError("Professor not found")
        return professor

    def delete_professor(self, professor_id: str) -> None:
        if self._get(PROFESSORS, professor_id) is None:
            raise NotFoundError("Professor not found")
        owned = len(self._find(STUDENTS, professor_id=professor_id)) + len(
            self._find(SUBJECTS, professor_id=professor_id)
        )
        if owned:
            raise DeleteBlockedError(
                f"Cannot delete a professor who still owns {owned} students or subjects"
            )
        self._delete(PROFESSORS, professor_id)

    # ------------------------------------------------------------------
    # students
    # ------------------------------------------------------------------

    def list_students_by_professor(self, professor_id: str) -> List[StudentOut]:
        return [StudentOut.model_validate(r) for r in self._find(STUDENTS, professor_id=professor_id)]

    def get_student(self, student_id: str) -> Optional[StudentOut]:
        record = self._get(STUDENTS, student_id)
        return StudentOut.model_validate(record) if record else None

    def add_student(self, professor_id: str, data: StudentBase) -> str:
        stamp = now_iso()
        doc = StudentBase.model_validate(data.model_dump()).model_dump(mode="json")
        doc.update({"professor_id": professor_id, "created_at": stamp, "updated_at": stamp})
        student_id = self._insert(STUDENTS, doc)
        logger.info("Added student %s for professor %s", student_id, professor_id)
        return student_id

    def add_students(self, professor_id: str, students: List[StudentBase]) -> List[str]:
        return [self.add_student(professor_id, student) for student in students]

    def update_student(self, student: StudentOut) -> StudentOut:
        student.updated_at = datetime.now(timezone.utc)
        if not self._replace(STUDENTS, student.id, student.model_dump(mode="json", exclude={"id"})):
            raise NotFoundError("Student not found")
        return student

    def delete_student(self, student_id: str) -> None:
        if self._get(STUDENTS, student_id) is None:
            raise NotFoundError("Student not found")

        enrollments = self._find(ENROLLMENTS, student_id=student_id)
        if enrollments:
            subjects = [self._describe_subject(e["subject_id"]) for e in enrollments]
            raise DeleteBlockedError(
                "Cannot delete a student with active enrollments. "
                f"The student is enrolled in: {', '.join(subjects)}. "
                "Remove the enrollments before deleting the student.",
                blocking=subjects,
            )

        self._delete(STUDENTS, student_id)
        orphans = self._delete_where(GRADES, student_id=student_id)
        logger.info("Deleted student %s (%d orphan grades removed)", student_id, orphans)

    def _describe_subject(self, subject_id: str) -> str:
        record = self._get(SUBJECTS, subject_id)
        if record is None:
            return f"Subject {subject_id}"
        return f"{record['name']} ({record['level']} - {record['course']}º)"

    # ------------------------------------------------------------------
    # subjects
    # ------------------------------------------------------------------

    def list_subjects_by_professor(self, professor_id: str) -> List[SubjectOut]:
        return [SubjectOut.model_validate(r) for r in self._find(SUBJECTS, professor_id=professor_id)]

    def get_subject(self, subject_id: str) -> Optional[SubjectOut]:
        record = self._get(SUBJECTS, subject_id)
        return SubjectOut.model_validate(record) if record else None

    def add_subject(
        self, professor_id: str, data: SubjectBase, evaluation_config: Optional[EvaluationConfig] = None
    ) -> str:
        stamp = now_iso()
        doc = SubjectBase.model_validate(data.model_dump()).model_dump(mode="json")
        doc.update(
            {
                "professor_id": professor_id,
                "evaluation_config": evaluation_config.model_dump(mode="json") if evaluation_config else None,
                "created_at": stamp,
                "updated_at": stamp,
            }
        )
        subject_id = self._insert(SUBJECTS, doc)
        if evaluation_config is not None and evaluation_config.subject_id != subject_id:
            doc["evaluation_config"]["subject_id"] = subject_id
            self._replace(SUBJECTS, subject_id, doc)
        logger.info("Added subject %s for professor %s", subject_id, professor_id)
        return subject_id

    def update_subject(self, subject: SubjectOut) -> SubjectOut:
        subject.updated_at = datetime.now(timezone.utc)
        if not self._replace(SUBJECTS, subject.id, subject.model_dump(mode="json", exclude={"id"})):
            raise NotFoundError("Subject not found")
        return subject

    def save_evaluation_config(self, subject_id: str, config: EvaluationConfig) -> SubjectOut:
        subject = self.get_subject(subject_id)
        if subject is None:
            raise NotFoundError(f"Subject {subject_id} not found")
        config.subject_id = subject_id
        subject.evaluation_config = config
        logger.info("Saved evaluation config for subject %s", subject.name)
        return self.update_subject(subject)

    def delete_subject(self, subject_id: str) -> None:
        if self._get(SUBJECTS, subject_id) is None:
            raise NotFoundError("Subject not found")

        enrollments = self._find(ENROLLMENTS, subject_id=subject_id)
        if enrollments:
            students = list(dict.fromkeys(self._describe_student(e["student_id"]) for e in enrollments))
            raise DeleteBlockedError(
                "Cannot delete a subject with enrolled students. "
                f"Enrolled students: {', '.join(students)}. "
                "Remove the enrollments before deleting the subject.",
                blocking=students,
            )

        self._delete(SUBJECTS, subject_id)
        orphans = self._delete_where(GRADES, subject_id=subject_id)
        logger.info("Deleted subject %s (%d orphan grades removed)", subject_id, orphans)

    def _describe_student(self, student_id: str) -> str:
        record = self._get(STUDENTS, student_id)
        if record is None:
            return f"Student {student_id}"
        return f"{record['name']} {record['surname']}"

    # ------------------------------------------------------------------
    # enrollments
    # ------------------------------------------------------------------

    def enroll_student(self, student_id: str, subject_id: str) -> str:
        if self._get(STUDENTS, student_id) is None:
            raise NotFoundError("Student not found")
        if self._get(SUBJECTS, subject_id) is None:
            raise NotFoundError("Subject not found")
        if self.is_enrolled(student_id, subject_id):
            raise InvalidRequestError("The student is already enrolled in this subject")

        stamp = now_iso()
        enrollment_id = self._insert(
            ENROLLMENTS,
            {"student_id": student_id, "subject_id": subject_id, "created_at": stamp, "updated_at": stamp},
        )
        logger.info("Enrolled student %s in subject %s", student_id, subject_id)
        return enrollment_id

    def is_enrolled(self, student_id: str, subject_id: str) -> bool:
        return bool(self._find(ENROLLMENTS, student_id=student_id, subject_id=subject_id))

    def list_enrollments_by_subject(self, subject_id: str) -> List[EnrollmentOut]:
        return [EnrollmentOut.model_validate(r) for r in self._find(ENROLLMENTS, subject_id=subject_id)]

    def list_enrollments_by_student(self, student_id: str) -> List[EnrollmentOut]:
        return [EnrollmentOut.model_validate(r) for r in self._find(ENROLLMENTS, student_id=student_id)]

    def remove_enrollment(self, student_id: str, subject_id: str) -> bool:
        matches = self._find(ENROLLMENTS, student_id=student_id, subject_id=subject_id)
        if not matches:
            logger.info("No enrollment of student %s in subject %s to remove", student_id, subject_id)
            return False

        self.delete_student_grades(student_id, subject_id)
        for record in matches:
            self._delete(ENROLLMENTS, record["id"])
        logger.info("Removed enrollment of student %s in subject %s", student_id, subject_id)
        return True

    # ------------------------------------------------------------------
    # grades
    # ------------------------------------------------------------------

    def get_student_grade(self, student_id: str, subject_id: str) -> Optional[StudentGrade]:
        matches = _latest_first(self._find(GRADES, student_id=student_id, subject_id=subject_id))
        return StudentGrade.model_validate(matches[0]) if matches else None

    def _subject_with_config(self, subject_id: str) -> SubjectOut:
        subject = self.get_subject(subject_id)
        if subject is None:
            raise NotFoundError("Subject not found")
        if subject.evaluation_config is None:
            raise InvalidRequestError("The subject has no evaluation configuration")
        return subject

    def init_student_grade(self, student_id: str, subject_id: str) -> StudentGrade:
        subject = self._subject_with_config(subject_id)

        existing = self.get_student_grade(student_id, subject_id)
        if existing is not None:
            if merge_missing_entries(existing, subject.evaluation_config):
                apply_computed_grades(existing, subject)
                existing.updated_at = datetime.now(timezone.utc)
                self._replace(GRADES, existing.id, existing.model_dump(mode="json", exclude={"id"}))
                logger.info("Completed grade %s with entries added to the configuration", existing.id)
            return existing

        stamp = datetime.now(timezone.utc)
        grade = StudentGrade(
            student_id=student_id,
            subject_id=subject_id,
            evaluation_grades=empty_evaluation_grades(subject.evaluation_config),
            created_at=stamp,
            updated_at=stamp,
        )
        grade.id = self._insert(GRADES, grade.model_dump(mode="json", exclude={"id"}))
        logger.info("Initialized grade %s for student %s in subject %s", grade.id, student_id, subject_id)
        return grade

    def update_student_grade(self, grade: StudentGrade) -> StudentGrade:
        subject = self._subject_with_config(grade.subject_id)
        existing = self.get_student_grade(grade.student_id, grade.subject_id)

        merge_missing_entries(grade, subject.evaluation_config)
        apply_computed_grades(grade, subject)
        stamp = datetime.now(timezone.utc)
        grade.updated_at = stamp

        if existing is not None:
            if grade.id and grade.id != existing.id:
                logger.warning("Grade id %s redirected to existing record %s", grade.id, existing.id)
            grade.id = existing.id
            grade.created_at = existing.created_at
            self._replace(GRADES, grade.id, grade.model_dump(mode="json", exclude={"id"}))
        else:
            grade.created_at = stamp
            grade.id = self._insert(GRADES, grade.model_dump(mode="json", exclude={"id"}))
        return grade

    def delete_student_grades(self, student_id: str, subject_id: str) -> int:
        removed = self._delete_where(GRADES, student_id=student_id, subject_id=subject_id)
        logger.info("Removed %d grades of student %s in subject %s", removed, student_id, subject_id)
        return removed

    def list_grades(self) -> List[StudentGrade]:
        return [StudentGrade.model_validate(r) for r in self._find(GRADES)]

    def list_grades_by_subject(self, subject_id: str) -> List[StudentGrade]:
        return [StudentGrade.model_validate(r) for r in self._find(GRADES, subject_id=subject_id)]

    def remove_duplicate_grades(self) -> int:
        """Keep the most recently updated grade of every (student, subject) pair."""
        groups: Dict[tuple, List[dict]] = {}
        for record in self._find(GRADES):
            groups.setdefault((record["student_id"], record["subject_id"]), []).append(record)

        removed = 0
        for records in groups.values():
            for stale in _latest_first(records)[1:]:
                self._delete(GRADES, stale["id"])
                removed += 1
        logger.info("Duplicate cleanup: %d pairs checked, %d grades removed", len(groups), removed)
        return removed

    # ------------------------------------------------------------------
    # whole-store operations
    # ------------------------------------------------------------------

    def export_collections(self) -> Dict[str, List[dict]]:
        return {collection: self._find(collection) for collection in COLLECTIONS}

    def replace_collections(self, data: Dict[str, List[dict]]) -> Dict[str, int]:
        """
        Replace the given collections, checking all of them before any is
        wiped. Returns how many records each collection ended up with.
        """
        prepared = {}
        for collection in COLLECTIONS:
            if collection not in data:
                continue
            records = data[collection] or []
            if collection in PAIR_COLLECTIONS:
                records = deduplicate_pairs(records, PAIR_COLLECTIONS[collection])
            _check_unique_ids(collection, records)
            prepared[collection] = records
        for collection, records in prepared.items():
            self._replace_all(collection, records)
        return {collection: len(records) for collection, records in prepared.items()}

    def clear_students_and_grades(self) -> None:
        for collection in (GRADES, ENROLLMENTS, STUDENTS):
            self._replace_all(collection, [])
        logger.info("Removed every student, enrollment and grade")
