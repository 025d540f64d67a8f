import csv
import json
import logging
import re
from typing import Optional

from ..errors import InvalidRequestError
from ..schemas.core import ImportIssue, ImportResult, StudentBase


logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# accepted header names, Galician first
REQUIRED_COLUMNS = {
    "name": ("nome", "nombre"),
    "surname": ("apelidos", "apellidos"),
    "email": ("email",),
}
PHONE_COLUMNS = ("telefono", "teléfono", "tel", "tlf", "móvil", "movil")

MISSING_FIELDS = "Missing required fields (name, surname or email)"
INVALID_EMAIL = "Invalid email format"


def _validate(name, surname, email) -> Optional[str]:
    if not name or not surname or not email:
        return MISSING_FIELDS
    if not EMAIL_RE.match(email):
        return INVALID_EMAIL
    return None


def _detect_delimiter(header: str) -> str:
    return ";" if ";" in header and "," not in header else ","


def parse_students_csv(text: str) -> ImportResult:
    result = ImportResult()
    lines = text.lstrip("\ufeff").splitlines()
    if len(lines) < 2:
        result.errors.append(
            ImportIssue(line=1, reason="The file is empty or has no data rows", data=lines[0] if lines else "")
        )
        return result

    delimiter = _detect_delimiter(lines[0])
    rows = csv.reader(lines, delimiter=delimiter)
    headers = [h.strip().lower() for h in next(rows)]

    indexes = {}
    for field, accepted in REQUIRED_COLUMNS.items():
        index = next((i for i, h in enumerate(headers) if h in accepted), None)
        if index is None:
            result.errors.append(
                ImportIssue(line=1, reason=f"Required column not found: {accepted[0]}", data=delimiter.join(headers))
            )
            return result
        indexes[field] = index
    phone_index = next((i for i, h in enumerate(headers) if h in PHONE_COLUMNS), None)

    for line_number, values in enumerate(rows, start=2):
        raw = delimiter.join(values)
        if not raw.strip():
            continue
        if len(values) <= max(indexes.values()):
            result.errors.append(ImportIssue(line=line_number, reason="Not enough fields on the line", data=raw))
            continue

        name = values[indexes["name"]].strip()
        surname = values[indexes["surname"]].strip()
        email = values[indexes["email"]].strip()
        phone = None
        if phone_index is not None and phone_index < len(values):
            phone = values[phone_index].strip() or None

        reason = _validate(name, surname, email)
        if reason:
            result.errors.append(
                ImportIssue(line=line_number, reason=reason, data=email if reason == INVALID_EMAIL else raw)
            )
            continue
        result.students.append(StudentBase(name=name, surname=surname, email=email, phone=phone))

    logger.info("CSV import parsed: %d students, %d errors", len(result.students), len(result.errors))
    return result


def parse_students_json(text: str) -> ImportResult:
    """
    Accepts either a bare array of ``{name, surname, email, phone}`` objects
    or the same array nested under ``data.students``.
    """
    result = ImportResult()
    try:
        payload = json.loads(text)
    except ValueError as exc:
        result.errors.append(ImportIssue(line=0, reason=f"Invalid JSON: {exc}"))
        return result

    if isinstance(payload, list):
        items = payload
    elif isinstance(payload, dict) and isinstance(payload.get("data"), dict) and isinstance(
        payload["data"].get("students"), list
    ):
        items = payload["data"]["students"]
    else:
        result.errors.append(
            ImportIssue(line=0, reason="Unrecognised JSON layout: expected an array of students or data.students")
        )
        return result

    for position, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            result.errors.append(ImportIssue(line=position, reason=MISSING_FIELDS, data=json.dumps(item)))
            continue
        name = str(item.get("name") or "").strip()
        surname = str(item.get("surname") or "").strip()
        email = str(item.get("email") or "").strip()
        phone = str(item.get("phone") or "").strip() or None

        reason = _validate(name, surname, email)
        if reason:
            data = email if reason == INVALID_EMAIL else json.dumps(item, ensure_ascii=False)
            result.errors.append(ImportIssue(line=position, reason=reason, data=data))
            continue
        result.students.append(StudentBase(name=name, surname=surname, email=email, phone=phone))

    logger.info("JSON import parsed: %d students, %d errors", len(result.students), len(result.errors))
    return result


def parse_students_file(filename: str, content: bytes) -> ImportResult:
    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise InvalidRequestError("The file must be UTF-8 encoded") from exc

    lowered = (filename or "").lower()
    if lowered.endswith(".csv"):
        return parse_students_csv(text)
    if lowered.endswith(".json"):
        return parse_students_json(text)
    raise InvalidRequestError("Only .csv and .json files can be imported")
