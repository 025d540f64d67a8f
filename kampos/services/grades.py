"""
Weighted grade calculation.

Grades roll up in three levels: exam scores are weighted into an
evaluation grade, evaluation grades are weighted into the final subject
grade. Weights are percentages and are expected to add up to 100; when the
weights that actually contribute add up to something else, the weighted sum
is rescaled as if they did. Missing configuration or missing scores never
raise, they simply do not contribute.
"""

import math
import time
from typing import List, Optional

from ..schemas.core import (
    Evaluation,
    EvaluationConfig,
    EvaluationGrade,
    Exam,
    ExamGrade,
    StudentGrade,
    SubjectOut,
)


DEFAULT_EXAMS = (
    ("Exame final", 70, "Exame final da avaliación"),
    ("Traballos", 30, "Traballos realizados durante a avaliación"),
)


def round_grade(value: float) -> float:
    # half-up, two decimals
    return math.floor(value * 100 + 0.5) / 100


def _is_score(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _weighted_average(pairs) -> float:
    weighted_sum = 0.0
    total_weight = 0.0
    for value, weight in pairs:
        weighted_sum += value * (weight / 100)
        total_weight += weight

    if total_weight == 0:
        return 0.0
    if total_weight != 100:
        weighted_sum = weighted_sum * 100 / total_weight
    return round_grade(weighted_sum)


def compute_evaluation_grade(evaluation_grade: EvaluationGrade, evaluation: Evaluation) -> float:
    if evaluation_grade is None or evaluation is None:
        return 0.0

    exams = {exam.id: exam for exam in evaluation.exams}
    pairs = []
    for exam_grade in evaluation_grade.exam_grades:
        exam = exams.get(exam_grade.exam_id)
        if exam is None or not _is_score(exam_grade.value):
            continue
        pairs.append((exam_grade.value, exam.weight))
    return _weighted_average(pairs)


def compute_final_subject_grade(student_grade: StudentGrade, subject: SubjectOut) -> float:
    if student_grade is None or subject is None or subject.evaluation_config is None:
        return 0.0

    evaluations = {e.id: e for e in subject.evaluation_config.evaluations}
    pairs = []
    for evaluation_grade in student_grade.evaluation_grades:
        evaluation = evaluations.get(evaluation_grade.evaluation_id)
        if evaluation is None:
            continue
        pairs.append((compute_evaluation_grade(evaluation_grade, evaluation), evaluation.weight))
    return _weighted_average(pairs)


def apply_computed_grades(student_grade: StudentGrade, subject: SubjectOut) -> StudentGrade:
    """Fill in every evaluation's final grade and the overall final grade."""
    if subject.evaluation_config is None:
        return student_grade

    evaluations = {e.id: e for e in subject.evaluation_config.evaluations}
    for evaluation_grade in student_grade.evaluation_grades:
        evaluation = evaluations.get(evaluation_grade.evaluation_id)
        if evaluation is not None:
            evaluation_grade.final_grade = compute_evaluation_grade(evaluation_grade, evaluation)
    student_grade.final_grade = compute_final_subject_grade(student_grade, subject)
    return student_grade


def empty_evaluation_grades(config: EvaluationConfig) -> List[EvaluationGrade]:
    return [
        EvaluationGrade(
            evaluation_id=evaluation.id,
            exam_grades=[ExamGrade(exam_id=exam.id, value=0) for exam in evaluation.exams],
        )
        for evaluation in config.evaluations
    ]


def merge_missing_entries(student_grade: StudentGrade, config: EvaluationConfig) -> bool:
    """
    Add a zero score for every evaluation and exam of ``config`` that the
    grade record does not have yet. Entered scores are left untouched.
    Returns True when something was added.
    """
    changed = False
    by_evaluation = {eg.evaluation_id: eg for eg in student_grade.evaluation_grades}

    for evaluation in config.evaluations:
        evaluation_grade = by_evaluation.get(evaluation.id)
        if evaluation_grade is None:
            evaluation_grade = EvaluationGrade(evaluation_id=evaluation.id)
            student_grade.evaluation_grades.append(evaluation_grade)
            by_evaluation[evaluation.id] = evaluation_grade
            changed = True

        present = {exam_grade.exam_id for exam_grade in evaluation_grade.exam_grades}
        for exam in evaluation.exams:
            if exam.id not in present:
                evaluation_grade.exam_grades.append(ExamGrade(exam_id=exam.id, value=0))
                changed = True

    return changed


def default_evaluation_config(subject: SubjectOut, evaluation_count: Optional[int] = None) -> EvaluationConfig:
    """
    Equal weight for every evaluation (the last one takes the remainder so
    the total is 100), each with a final exam worth 70 and coursework worth 30.
    """
    count = evaluation_count or subject.evaluation_count
    share = 100 // count
    stamp = int(time.time() * 1000)

    evaluations = []
    for number in range(1, count + 1):
        weight = 100 - share * (count - 1) if number == count else share
        exams = [
            Exam(id=f"exam_{stamp}_{number}_{idx}", name=name, weight=exam_weight, description=description)
            for idx, (name, exam_weight, description) in enumerate(DEFAULT_EXAMS, start=1)
        ]
        evaluations.append(Evaluation(id=f"eval_{stamp}_{number}", number=number, weight=weight, exams=exams))

    return EvaluationConfig(subject_id=subject.id, evaluations=evaluations)
