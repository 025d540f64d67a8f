from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


class EducationalLevel(str, Enum):
    SMR = "SMR"
    DAW = "DAW"
    DAM = "DAM"
    FPBASICA = "FPBASICA"
    ESO = "ESO"
    BACHILLERATO = "BACHILLERATO"
    OUTROS = "OUTROS"


class StudentBase(BaseModel):
    name: str
    surname: str
    email: str
    phone: Optional[str] = None


class StudentCreate(StudentBase):
    email: EmailStr


class StudentOut(StudentBase):
    id: str
    professor_id: str
    created_at: datetime
    updated_at: datetime


class Exam(BaseModel):
    """A gradable item (exam, assignment...) inside an evaluation period."""

    id: str
    name: str
    weight: float
    description: Optional[str] = None


class Evaluation(BaseModel):
    id: str
    number: int
    weight: float
    exams: List[Exam] = []


class EvaluationConfig(BaseModel):
    subject_id: str
    evaluations: List[Evaluation] = []


class SubjectBase(BaseModel):
    name: str
    level: EducationalLevel
    course: int
    weekly_sessions: int
    evaluation_count: int = Field(3, ge=1)


class SubjectCreate(SubjectBase):
    pass


class SubjectOut(SubjectBase):
    id: str
    professor_id: str
    evaluation_config: Optional[EvaluationConfig] = None
    created_at: datetime
    updated_at: datetime


class EnrollmentCreate(BaseModel):
    student_id: str


class EnrollmentOut(BaseModel):
    id: str
    student_id: str
    subject_id: str
    created_at: datetime
    updated_at: datetime


class ExamGrade(BaseModel):
    exam_id: str
    value: Optional[float] = 0
    remark: Optional[str] = None


class EvaluationGrade(BaseModel):
    evaluation_id: str
    exam_grades: List[ExamGrade] = []
    final_grade: Optional[float] = None


class StudentGrade(BaseModel):
    id: Optional[str] = None
    student_id: str
    subject_id: str
    evaluation_grades: List[EvaluationGrade] = []
    final_grade: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ExamGradeInput(BaseModel):
    exam_id: str
    value: float = Field(..., ge=0, le=10)
    remark: Optional[str] = None


class EvaluationGradeInput(BaseModel):
    evaluation_id: str
    exam_grades: List[ExamGradeInput] = []


class StudentGradeUpdate(BaseModel):
    evaluation_grades: List[EvaluationGradeInput]


class MigratedItem(BaseModel):
    kind: str
    source_id: str
    target_id: str
    name: str


class FailedItem(BaseModel):
    kind: str
    source_id: str
    reason: str


class MigrationResult(BaseModel):
    professor_id: str
    migrated: List[MigratedItem] = []
    failed: List[FailedItem] = []

    @property
    def succeeded(self) -> int:
        return len(self.migrated)


class ImportIssue(BaseModel):
    line: int
    reason: str
    data: str = ""


class ImportResult(BaseModel):
    students: List[StudentBase] = []
    errors: List[ImportIssue] = []


class ImportSummary(BaseModel):
    created_ids: List[str]
    errors: List[ImportIssue] = []
