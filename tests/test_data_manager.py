import pytest

from kampos.auth.security import verify_password
from kampos.errors import InvalidRequestError
from kampos.schemas.auth import ProfessorCreate
from kampos.schemas.backup import BACKUP_VERSION, BackupSnapshot
from kampos.schemas.core import StudentBase
from kampos.services.data_manager import migrate_local_data

from conftest import PROFESSOR_ID, make_student, make_subject


def _populate(store):
    ana = make_student(store)
    brais = make_student(store, name="Brais", surname="Lema", email="brais@example.com")
    subject_id = make_subject(store)
    for student_id in (ana, brais):
        store.enroll_student(student_id, subject_id)
    return ana, brais, subject_id


def test_register_professor_hashes_password(manager):
    professor = manager.register_professor(
        ProfessorCreate(name="Xoán", surname="Pereira", email="xoan@example.com", password="segredo123")
    )
    assert professor.hashed_password != "segredo123"
    assert verify_password("segredo123", professor.hashed_password)
    assert manager.get_professor_by_email("xoan@example.com").id == professor.id


def test_students_by_subject_skips_missing_students(manager, store):
    ana, brais, subject_id = _populate(store)
    store._delete("alumnos", brais)

    assert [s.id for s in manager.students_by_subject(subject_id)] == [ana]


def test_init_subject_grades_creates_one_record_per_student(manager, store):
    _, _, subject_id = _populate(store)

    grades = manager.init_subject_grades(subject_id)
    again = manager.init_subject_grades(subject_id)

    assert len(grades) == 2
    assert sorted(g.id for g in again) == sorted(g.id for g in grades)
    assert len(manager.list_grades_by_subject(subject_id)) == 2


def test_create_backup_contains_every_collection(manager, store):
    _populate(store)
    backup = manager.create_backup()

    assert backup.version == BACKUP_VERSION
    assert len(backup.students) == 2
    assert len(backup.subjects) == 1
    assert len(backup.enrollments) == 2
    assert backup.grades == []
    assert manager.latest_backup().timestamp == backup.timestamp


def test_restore_backup_replaces_collections(manager, store):
    ana, _, subject_id = _populate(store)
    manager.init_subject_grades(subject_id)
    backup = manager.create_backup()

    manager.start_new_course()
    assert manager.list_students(PROFESSOR_ID) == []

    counts = manager.restore_backup(backup)

    assert counts.students == 2
    assert counts.grades == 2
    assert store.get_student(ana).name == "Ana"
    assert len(manager.list_grades_by_subject(subject_id)) == 2


def test_restore_drops_duplicate_enrollments(manager, store):
    _, _, subject_id = _populate(store)
    backup = manager.create_backup()
    backup.enrollments.append(backup.enrollments[0].model_copy(update={"id": "repeated"}))

    counts = manager.restore_backup(backup)

    assert counts.enrollments == 2
    assert len(manager.list_enrollments_by_subject(subject_id)) == 2


def test_restore_with_repeated_student_ids_changes_nothing(manager, store):
    ana, brais, _ = _populate(store)
    backup = manager.create_backup()
    backup.students.append(backup.students[0])
    store._delete("alumnos", brais)

    with pytest.raises(InvalidRequestError):
        manager.restore_backup(backup)

    assert [s.id for s in manager.list_students(PROFESSOR_ID)] == [ana]


def test_restore_keeps_collections_missing_from_snapshot(manager, store):
    ana, _, subject_id = _populate(store)
    manager.restore_backup(BackupSnapshot(grades=[]))

    assert store.get_student(ana) is not None
    assert len(manager.list_enrollments_by_subject(subject_id)) == 2


def test_restore_empty_snapshot_is_rejected(manager):
    with pytest.raises(InvalidRequestError):
        manager.restore_backup(BackupSnapshot())


def test_start_new_course_keeps_subjects_and_backs_up(manager, store):
    _, _, subject_id = _populate(store)
    manager.init_subject_grades(subject_id)

    backup = manager.start_new_course()

    assert len(backup.students) == 2
    assert manager.list_students(PROFESSOR_ID) == []
    assert manager.list_enrollments_by_subject(subject_id) == []
    assert manager.list_grades() == []
    assert manager.get_subject(subject_id) is not None
    assert len(manager.latest_backup().students) == 2


def test_migrate_local_data_copies_students_and_subjects(local_store, mongo_store):
    _populate(local_store)

    result = migrate_local_data(local_store, mongo_store, PROFESSOR_ID, target_professor_id="remote-prof")

    assert result.succeeded == 3
    assert result.failed == []
    students = mongo_store.list_students_by_professor("remote-prof")
    assert sorted(s.name for s in students) == ["Ana", "Brais"]
    subject = mongo_store.list_subjects_by_professor("remote-prof")[0]
    assert subject.evaluation_config.subject_id == subject.id
    # enrollments and grades stay behind
    assert mongo_store.list_enrollments_by_subject(subject.id) == []


def test_migration_continues_after_failures(local_store, mongo_store, monkeypatch):
    make_student(local_store)
    make_student(local_store, name="Brais", surname="Lema", email="brais@example.com")
    original = mongo_store.add_student

    def flaky_add(professor_id, data: StudentBase):
        if data.name == "Ana":
            raise RuntimeError("write refused")
        return original(professor_id, data)

    monkeypatch.setattr(mongo_store, "add_student", flaky_add)
    result = migrate_local_data(local_store, mongo_store, PROFESSOR_ID)

    assert [m.name for m in result.migrated] == ["Brais Lema"]
    assert [(f.kind, f.reason) for f in result.failed] == [("student", "write refused")]


def test_import_students_creates_valid_rows(manager):
    content = "nome;apelidos;email\nAna;Castro;ana@example.com\nBrais;;brais@example.com\n".encode("utf-8")

    summary = manager.import_students(PROFESSOR_ID, "alumnos.csv", content)

    assert len(summary.created_ids) == 1
    assert summary.errors[0].line == 3
    assert [s.name for s in manager.list_students(PROFESSOR_ID)] == ["Ana"]
