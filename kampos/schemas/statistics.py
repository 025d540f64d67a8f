from typing import List, Optional

from pydantic import BaseModel

from .core import EducationalLevel


class GradeBucket(BaseModel):
    label: str
    count: int
    percentage: float


class GradeSummary(BaseModel):
    count: int
    mean: float
    minimum: float
    maximum: float
    passed: int
    failed: int
    pass_rate: float
    distribution: List[GradeBucket]


class EvaluationSummary(BaseModel):
    evaluation_id: str
    number: int
    label: str
    mean: float
    passed: int
    failed: int


class SubjectStatistics(BaseModel):
    subject_id: str
    subject_name: str
    level: EducationalLevel
    course: int
    total_students: int
    students_with_grades: int
    summary: GradeSummary
    evaluations: List[EvaluationSummary] = []


class LevelCount(BaseModel):
    level: str
    count: int


class EvaluationTrend(BaseModel):
    number: int
    label: str
    mean: float
    trend: str
    previous_mean: Optional[float] = None


class GeneralStatistics(BaseModel):
    total_subjects: int
    total_enrollments: int
    subjects_with_grades: int
    overall_mean: float
    overall_pass_rate: float
    subjects_by_level: List[LevelCount]
    evaluation_trend: List[EvaluationTrend]
