import pytest

from kampos.schemas.core import (
    EducationalLevel,
    Evaluation,
    EvaluationConfig,
    EvaluationGrade,
    Exam,
    ExamGrade,
    StudentGrade,
    StudentOut,
    SubjectOut,
)
from kampos.services.statistics import general_statistics, subject_statistics, summarize_final_grades

STAMP = "2024-09-15T08:00:00+00:00"


def _subject(subject_id="subj-1", level=EducationalLevel.SMR, course=1, evaluations=2):
    config = EvaluationConfig(
        subject_id=subject_id,
        evaluations=[
            Evaluation(id=f"ev{n}", number=n, weight=100 / evaluations, exams=[Exam(id=f"t{n}", name="Exame", weight=100)])
            for n in range(1, evaluations + 1)
        ],
    )
    return SubjectOut(
        id=subject_id,
        professor_id="prof-1",
        name=f"Subject {subject_id}",
        level=level,
        course=course,
        weekly_sessions=5,
        evaluation_count=evaluations,
        evaluation_config=config,
        created_at=STAMP,
        updated_at=STAMP,
    )


def _student(student_id):
    return StudentOut(
        id=student_id,
        professor_id="prof-1",
        name="Name",
        surname=student_id,
        email=f"{student_id}@example.com",
        created_at=STAMP,
        updated_at=STAMP,
    )


def _grade(student_id, values, subject_id="subj-1"):
    return StudentGrade(
        student_id=student_id,
        subject_id=subject_id,
        evaluation_grades=[
            EvaluationGrade(evaluation_id=f"ev{n}", exam_grades=[ExamGrade(exam_id=f"t{n}", value=v)])
            for n, v in enumerate(values, start=1)
        ],
    )


def test_distribution_buckets_and_pass_rate():
    summary = summarize_final_grades([2, 4, 5, 7, 9])

    assert [(b.label, b.count) for b in summary.distribution] == [
        ("0-2.9", 1),
        ("3-4.9", 1),
        ("5-6.9", 1),
        ("7-8.9", 1),
        ("9-10", 1),
    ]
    assert all(b.percentage == 20 for b in summary.distribution)
    assert summary.passed == 3
    assert summary.failed == 2
    assert summary.pass_rate == 60
    assert summary.mean == pytest.approx(5.4)
    assert (summary.minimum, summary.maximum) == (2, 9)


def test_bucket_boundaries_have_no_gaps():
    summary = summarize_final_grades([2.95, 4.95, 6.99, 8.95, 10])
    assert [b.count for b in summary.distribution] == [1, 1, 1, 1, 1]


def test_empty_summary_is_all_zero():
    summary = summarize_final_grades([])
    assert summary.count == 0
    assert summary.mean == 0
    assert summary.pass_rate == 0
    assert all(b.count == 0 and b.percentage == 0 for b in summary.distribution)


def test_subject_statistics_ignores_ungraded_students():
    subject = _subject()
    students = [_student("a"), _student("b"), _student("c")]
    grades = [_grade("a", [8, 6]), _grade("b", [0, 0])]

    stats = subject_statistics(subject, students, grades)

    assert stats.total_students == 3
    assert stats.students_with_grades == 1
    assert stats.summary.mean == pytest.approx(7.0)
    assert [(e.label, e.mean, e.passed) for e in stats.evaluations] == [
        ("Evaluation 1", 8.0, 1),
        ("Evaluation 2", 6.0, 1),
    ]


def test_general_statistics_weighted_by_graded_students():
    first = _subject("s1", level=EducationalLevel.DAW, course=1)
    second = _subject("s2", level=EducationalLevel.DAW, course=1)
    third = _subject("s3", level=EducationalLevel.ESO, course=4)

    stats = [
        subject_statistics(first, [_student("a"), _student("b")], [_grade("a", [4, 6], "s1"), _grade("b", [8, 8], "s1")]),
        subject_statistics(second, [_student("c")], [_grade("c", [2, 2], "s2")]),
        subject_statistics(third, [_student("d")], []),
    ]
    general = general_statistics([first, second, third], stats)

    assert general.total_subjects == 3
    assert general.total_enrollments == 4
    assert general.subjects_with_grades == 2
    # (6.5 * 2 + 2 * 1) / 3
    assert general.overall_mean == pytest.approx(5.0)
    assert general.overall_pass_rate == pytest.approx(66.67)
    assert [(l.level, l.count) for l in general.subjects_by_level] == [("DAW 1º", 2), ("ESO 4º", 1)]


def test_evaluation_trend_compares_with_previous_evaluation():
    subject = _subject(evaluations=3)
    stats = subject_statistics(subject, [_student("a")], [_grade("a", [5, 7, 7])])

    trend = general_statistics([subject], [stats]).evaluation_trend

    assert [(t.number, t.trend) for t in trend] == [(1, "stable"), (2, "up"), (3, "stable")]
    assert trend[1].previous_mean == 5
