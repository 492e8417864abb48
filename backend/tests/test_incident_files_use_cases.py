from __future__ import annotations

from types import SimpleNamespace

import pytest

from app.config import settings
from app.domain_errors import DomainError
from app.models import IncidentFile
from app.schemas import IncidentFileCreate
from app.use_cases.incident_files import (
    create_incident_file_use_case,
    delete_incident_file_use_case,
    list_incident_files_use_case,
    validate_incident_file,
)

PNG_URI = "data:image/png;base64,iVBORw0KGgo="


class _QueryStub:
    def __init__(self, *, first_result=None, rows=()):
        self._first_result = first_result
        self._rows = list(rows)
        self.filter_calls = 0

    def filter(self, *_args, **_kwargs):
        self.filter_calls += 1
        return self

    def order_by(self, *_args):
        return self

    def first(self):
        return self._first_result

    def all(self):
        return list(self._rows)


class _SessionStub:
    def __init__(self, *, incident_exists=True, file=None, files=()):
        self._incident_exists = incident_exists
        self._file = file
        self._files = files
        self.file_queries = []
        self.added = []
        self.deleted = []
        self.commit_calls = 0

    def query(self, entity):
        if entity is IncidentFile:
            query = _QueryStub(first_result=self._file, rows=self._files)
            self.file_queries.append(query)
            return query
        # Incident.id existence probe
        return _QueryStub(first_result=(1,) if self._incident_exists else None)

    def add(self, obj):
        self.added.append(obj)

    def delete(self, obj):
        self.deleted.append(obj)

    def commit(self):
        self.commit_calls += 1

    def refresh(self, obj):
        obj.id = 55


def _payload(**overrides):
    values = dict(
        info_level=1,
        file_data_uri=PNG_URI,
        file_name="damage.png",
        file_type="image/png",
        file_size=1024,
    )
    values.update(overrides)
    return IncidentFileCreate(**values)


def _user():
    return SimpleNamespace(id=7, role_id=4)


def test_create_file_for_existing_incident() -> None:
    db = _SessionStub()

    created = create_incident_file_use_case(db=db, incident_id=1, payload=_payload(), current_user=_user())

    assert created.id == 55
    assert created.incident_id == 1
    assert created.file_type == "image/png"
    assert db.commit_calls == 1


def test_create_file_for_missing_incident_is_not_found() -> None:
    db = _SessionStub(incident_exists=False)

    with pytest.raises(DomainError) as exc:
        create_incident_file_use_case(db=db, incident_id=9, payload=_payload(), current_user=_user())

    assert exc.value.code == "INCIDENT_NOT_FOUND"
    assert db.added == []


def test_disallowed_mime_type_is_rejected() -> None:
    with pytest.raises(DomainError) as exc:
        validate_incident_file(
            _payload(
                file_type="application/x-msdownload",
                file_data_uri="data:application/x-msdownload;base64,TVo=",
            )
        )

    assert exc.value.code == "INCIDENT_FILE_TYPE_NOT_ALLOWED"


def test_oversized_file_is_rejected() -> None:
    with pytest.raises(DomainError) as exc:
        validate_incident_file(_payload(file_size=settings.MAX_UPLOAD_SIZE + 1))

    assert exc.value.code == "INCIDENT_FILE_TOO_LARGE"
    assert exc.value.details["max_size"] == settings.MAX_UPLOAD_SIZE


@pytest.mark.parametrize(
    "data_uri",
    ["iVBORw0KGgo=", "data:image/png;base64", "data:image/jpeg;base64,/9j/4AAQ"],
)
def test_invalid_data_uri_is_rejected(data_uri) -> None:
    with pytest.raises(DomainError) as exc:
        validate_incident_file(_payload(file_data_uri=data_uri))

    assert exc.value.code == "INCIDENT_FILE_INVALID_DATA_URI"


def test_file_type_is_compared_case_insensitively() -> None:
    validate_incident_file(_payload(file_type="IMAGE/PNG"))


def test_list_files_filters_by_info_level() -> None:
    files = [SimpleNamespace(id=1, info_level=2)]
    db = _SessionStub(files=files)

    result = list_incident_files_use_case(db=db, incident_id=1, info_level=2)

    assert result == files
    assert db.file_queries[0].filter_calls == 2


def test_delete_file_requires_matching_incident() -> None:
    db = _SessionStub(file=None)

    with pytest.raises(DomainError) as exc:
        delete_incident_file_use_case(db=db, incident_id=1, file_id=3, current_user=_user())

    assert exc.value.code == "INCIDENT_FILE_NOT_FOUND"
    assert exc.value.http_status == 404


def test_delete_file_removes_row() -> None:
    stored = SimpleNamespace(id=3, incident_id=1)
    db = _SessionStub(file=stored)

    delete_incident_file_use_case(db=db, incident_id=1, file_id=3, current_user=_user())

    assert db.deleted == [stored]
    assert db.commit_calls == 1
