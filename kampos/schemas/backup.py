from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field

from .auth import ProfessorRecord
from .core import EnrollmentOut, StudentGrade, StudentOut, SubjectOut

BACKUP_VERSION = "3.0"


class BackupSnapshot(BaseModel):
    """Full copy of every collection, as written to a backup file."""

    professors: Optional[List[ProfessorRecord]] = None
    students: Optional[List[StudentOut]] = None
    subjects: Optional[List[SubjectOut]] = None
    enrollments: Optional[List[EnrollmentOut]] = None
    grades: Optional[List[StudentGrade]] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    version: str = BACKUP_VERSION


class BackupCounts(BaseModel):
    professors: int = 0
    students: int = 0
    subjects: int = 0
    enrollments: int = 0
    grades: int = 0
