"""
Reducers over computed grades, per subject and across a professor's subjects.
"""

from collections import OrderedDict
from typing import Iterable, List

from ..schemas.core import StudentGrade, StudentOut, SubjectOut
from ..schemas.statistics import (
    EvaluationSummary,
    EvaluationTrend,
    GeneralStatistics,
    GradeBucket,
    GradeSummary,
    LevelCount,
    SubjectStatistics,
)
from .grades import compute_evaluation_grade, compute_final_subject_grade, round_grade


PASS_MARK = 5.0

# (label, lower bound); a grade falls in the last bucket whose bound it reaches
BUCKETS = (
    ("0-2.9", 0.0),
    ("3-4.9", 3.0),
    ("5-6.9", 5.0),
    ("7-8.9", 7.0),
    ("9-10", 9.0),
)


def _bucket_index(value: float) -> int:
    index = 0
    for position, (_, lower) in enumerate(BUCKETS):
        if value >= lower:
            index = position
    return index


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def summarize_final_grades(grades: Iterable[float]) -> GradeSummary:
    values = list(grades)
    total = len(values)

    counts = [0] * len(BUCKETS)
    for value in values:
        counts[_bucket_index(value)] += 1

    passed = sum(1 for value in values if value >= PASS_MARK)
    return GradeSummary(
        count=total,
        mean=round_grade(_mean(values)),
        minimum=round_grade(min(values)) if values else 0.0,
        maximum=round_grade(max(values)) if values else 0.0,
        passed=passed,
        failed=total - passed,
        pass_rate=round_grade(passed * 100 / total) if total else 0.0,
        distribution=[
            GradeBucket(label=label, count=count, percentage=round_grade(count * 100 / total) if total else 0.0)
            for (label, _), count in zip(BUCKETS, counts)
        ],
    )


def subject_statistics(
    subject: SubjectOut, students: List[StudentOut], grades: List[StudentGrade]
) -> SubjectStatistics:
    """
    ``students`` are the students enrolled in ``subject`` and ``grades`` its
    grade records. A final grade of 0 means nothing has been graded yet, and
    such students are left out of every figure except ``total_students``.
    """
    by_student = {grade.student_id: grade for grade in grades}

    finals = []
    for student in students:
        grade = by_student.get(student.id)
        if grade is None:
            continue
        final = compute_final_subject_grade(grade, subject)
        if final > 0:
            finals.append(final)

    evaluations = []
    config = subject.evaluation_config
    for evaluation in config.evaluations if config else []:
        values = []
        for grade in grades:
            for evaluation_grade in grade.evaluation_grades:
                if evaluation_grade.evaluation_id != evaluation.id:
                    continue
                value = compute_evaluation_grade(evaluation_grade, evaluation)
                if value > 0:
                    values.append(value)
        passed = sum(1 for value in values if value >= PASS_MARK)
        evaluations.append(
            EvaluationSummary(
                evaluation_id=evaluation.id,
                number=evaluation.number,
                label=f"Evaluation {evaluation.number}",
                mean=round_grade(_mean(values)),
                passed=passed,
                failed=len(values) - passed,
            )
        )

    return SubjectStatistics(
        subject_id=subject.id,
        subject_name=subject.name,
        level=subject.level,
        course=subject.course,
        total_students=len(students),
        students_with_grades=len(finals),
        summary=summarize_final_grades(finals),
        evaluations=evaluations,
    )


def _trend(current: float, previous) -> str:
    if previous is None or current == previous:
        return "stable"
    return "up" if current > previous else "down"


def general_statistics(subjects: List[SubjectOut], subject_stats: List[SubjectStatistics]) -> GeneralStatistics:
    graded = [stats for stats in subject_stats if stats.students_with_grades > 0]
    graded_students = sum(stats.students_with_grades for stats in graded)
    weighted_sum = sum(stats.summary.mean * stats.students_with_grades for stats in graded)
    passed = sum(stats.summary.passed for stats in graded)

    levels: "OrderedDict[str, int]" = OrderedDict()
    for subject in subjects:
        key = f"{subject.level.value} {subject.course}º"
        levels[key] = levels.get(key, 0) + 1

    by_number: "OrderedDict[int, List[float]]" = OrderedDict()
    for stats in subject_stats:
        for evaluation in stats.evaluations:
            by_number.setdefault(evaluation.number, []).append(evaluation.mean)

    trend = []
    previous = None
    for number in sorted(by_number):
        mean = round_grade(_mean(by_number[number]))
        trend.append(
            EvaluationTrend(
                number=number,
                label=f"Evaluation {number}",
                mean=mean,
                trend=_trend(mean, previous),
                previous_mean=previous,
            )
        )
        previous = mean

    return GeneralStatistics(
        total_subjects=len(subjects),
        total_enrollments=sum(stats.total_students for stats in subject_stats),
        subjects_with_grades=len(graded),
        overall_mean=round_grade(weighted_sum / graded_students) if graded_students else 0.0,
        overall_pass_rate=round_grade(passed * 100 / graded_students) if graded_students else 0.0,
        subjects_by_level=[LevelCount(level=level, count=count) for level, count in levels.items()],
        evaluation_trend=trend,
    )
