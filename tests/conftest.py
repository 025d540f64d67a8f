import mongomock
import pytest
from fastapi.testclient import TestClient

from kampos.database import get_local_store, get_store
from kampos.main import app
from kampos.schemas.core import EducationalLevel, StudentBase, SubjectBase
from kampos.services.data_manager import DataManager
from kampos.services.grades import default_evaluation_config
from kampos.stores.local import LocalGradeStore
from kampos.stores.mongo import MongoGradeStore


PROFESSOR_ID = "prof-1"


@pytest.fixture
def local_store(tmp_path):
    return LocalGradeStore(tmp_path / "data")


@pytest.fixture
def mongo_store():
    db = mongomock.MongoClient()["kampos_test"]
    return MongoGradeStore(db, retry_delay=0)


@pytest.fixture(params=["local", "mongo"])
def store(request, tmp_path):
    if request.param == "local":
        return LocalGradeStore(tmp_path / "data")
    return MongoGradeStore(mongomock.MongoClient()["kampos_test"], retry_delay=0)


@pytest.fixture
def manager(store):
    return DataManager(store)


def make_student(store, name="Ana", surname="Castro", email="ana@example.com"):
    return store.add_student(PROFESSOR_ID, StudentBase(name=name, surname=surname, email=email))


def make_subject(store, name="Programación", with_config=True, evaluation_count=3):
    subject_id = store.add_subject(
        PROFESSOR_ID,
        SubjectBase(
            name=name,
            level=EducationalLevel.DAW,
            course=1,
            weekly_sessions=8,
            evaluation_count=evaluation_count,
        ),
    )
    if with_config:
        subject = store.get_subject(subject_id)
        store.save_evaluation_config(subject_id, default_evaluation_config(subject))
    return subject_id


@pytest.fixture
def api_store(tmp_path):
    return MongoGradeStore(mongomock.MongoClient()["kampos_api"], retry_delay=0)


@pytest.fixture
def client(api_store, tmp_path):
    app.dependency_overrides[get_store] = lambda: api_store
    app.dependency_overrides[get_local_store] = lambda: LocalGradeStore(tmp_path / "local")
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(client):
    client.post(
        "/api/auth/register",
        json={"name": "Xoán", "surname": "Pereira", "email": "xoan@example.com", "password": "segredo123"},
    )
    response = client.post("/api/auth/login", data={"username": "xoan@example.com", "password": "segredo123"})
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
