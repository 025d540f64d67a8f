import json

import pytest

from kampos.errors import InvalidRequestError
from kampos.services.importers import parse_students_csv, parse_students_file, parse_students_json


def test_csv_with_galician_headers_and_semicolons():
    text = "Nome;Apelidos;Email;Teléfono\nAna;Castro Pena;ana@example.com;600111222\n"
    result = parse_students_csv(text)

    assert result.errors == []
    student = result.students[0]
    assert (student.name, student.surname, student.email, student.phone) == (
        "Ana",
        "Castro Pena",
        "ana@example.com",
        "600111222",
    )


def test_csv_with_spanish_headers_and_commas():
    text = "nombre,apellidos,email\nBrais,Lema,brais@example.com\n\n"
    result = parse_students_csv(text)
    assert [s.name for s in result.students] == ["Brais"]
    assert result.students[0].phone is None


def test_csv_reports_bad_rows_with_line_numbers():
    text = (
        "nome,apelidos,email\n"
        "Ana,Castro,ana@example.com\n"
        "Brais,,brais@example.com\n"
        "Uxía,Souto,not-an-email\n"
        "Iria\n"
    )
    result = parse_students_csv(text)

    assert [s.name for s in result.students] == ["Ana"]
    assert [(e.line, e.data) for e in result.errors][1] == (4, "not-an-email")
    assert [e.line for e in result.errors] == [3, 4, 5]


def test_csv_missing_required_column():
    result = parse_students_csv("nome,email\nAna,ana@example.com\n")
    assert result.students == []
    assert result.errors[0].line == 1
    assert "apelidos" in result.errors[0].reason


def test_csv_without_data_rows():
    result = parse_students_csv("nome,apelidos,email")
    assert result.students == []
    assert result.errors[0].line == 1


def test_json_bare_array():
    text = json.dumps([{"name": "Ana", "surname": "Castro", "email": "ana@example.com", "phone": "600"}])
    result = parse_students_json(text)
    assert result.students[0].phone == "600"


def test_json_nested_under_data_students():
    text = json.dumps(
        {"data": {"students": [
            {"name": "Ana", "surname": "Castro", "email": "ana@example.com"},
            {"name": "Brais", "surname": "Lema", "email": "brais"},
        ]}}
    )
    result = parse_students_json(text)

    assert [s.name for s in result.students] == ["Ana"]
    assert result.errors[0].line == 2
    assert result.errors[0].data == "brais"


def test_json_unknown_layout():
    result = parse_students_json(json.dumps({"students": []}))
    assert result.students == []
    assert len(result.errors) == 1


@pytest.mark.parametrize("payload", [{"data": ["x"]}, {"data": "alumnos"}, {"data": None}])
def test_json_data_that_is_not_an_object(payload):
    result = parse_students_json(json.dumps(payload))
    assert result.students == []
    assert result.errors[0].reason.startswith("Unrecognised JSON layout")


def test_json_invalid_syntax():
    result = parse_students_json("[{")
    assert result.errors[0].reason.startswith("Invalid JSON")


def test_parse_file_by_extension():
    assert len(parse_students_file("ALUMNOS.CSV", b"nome,apelidos,email\nAna,Castro,ana@example.com").students) == 1
    with pytest.raises(InvalidRequestError):
        parse_students_file("alumnos.xlsx", b"")
