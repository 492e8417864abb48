from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from app.auth import create_access_token, decode_token, get_current_user
from app.database import get_db
from app.dependencies import get_parameter_service, get_status_cache
from app.main import app
from app.services.incident_status import DeadlineDays


class _QueryStub:
    def __init__(self, rows):
        self._rows = list(rows)

    def filter(self, *_args, **_kwargs):
        return self

    def order_by(self, *_args):
        return self

    def offset(self, *_args):
        return self

    def limit(self, *_args):
        return self

    def count(self):
        return len(self._rows)

    def first(self):
        return self._rows[0] if self._rows else None

    def all(self):
        return list(self._rows)


class _SessionStub:
    def __init__(self, rows=()):
        self.rows = list(rows)

    def query(self, *_entities):
        return _QueryStub(self.rows)


class _ParameterServiceStub:
    def __init__(self):
        self.updated = []

    def get_deadline_settings(self):
        return DeadlineDays()

    def get_parameter(self, _key):
        return None

    def list_parameters(self):
        return []

    def update_parameter_value(self, key, value, *, user_id):
        self.updated.append((key, value, user_id))
        return SimpleNamespace(
            id=1,
            name="deadline",
            parameter_key=key,
            parameter_value=value,
            description=None,
            data_type="int",
            is_active=True,
            updated_at=None,
        )


def _incident():
    created = datetime.now(timezone.utc) - timedelta(days=1)
    return SimpleNamespace(
        id=1,
        creation_date=created,
        organization=1,
        creator=1,
        occurrence_datetime=created,
        occurrence_location=1,
        shipping_warehouse=1,
        shipping_company=1,
        trouble_category=1,
        trouble_detail_category=1,
        details="short shipment",
        voucher_number=None,
        customer_code=None,
        product_code=None,
        quantity=None,
        unit=None,
        input_date=None,
        process_description=None,
        cause=None,
        photo_data_uri=None,
        input_date3=None,
        recurrence_prevention_measures=None,
        created_at=None,
        updated_at=None,
    )


@pytest.fixture
def parameters():
    return _ParameterServiceStub()


@pytest.fixture
def make_client(parameters):
    def _make(*, role_id=3, rows=()):
        db = _SessionStub(rows)
        app.dependency_overrides[get_db] = lambda: db
        app.dependency_overrides[get_current_user] = lambda: SimpleNamespace(id=7, role_id=role_id)
        app.dependency_overrides[get_parameter_service] = lambda: parameters
        app.dependency_overrides[get_status_cache] = lambda: None
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()


def test_health_endpoint() -> None:
    response = TestClient(app).get("/api/v1/system/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": "1.0.0"}


def test_incident_endpoints_require_bearer_token() -> None:
    response = TestClient(app).get("/api/v1/incidents")

    assert response.status_code in (401, 403)


def test_list_incidents_returns_computed_status(make_client) -> None:
    client = make_client(rows=[_incident()])

    response = client.get("/api/v1/incidents", params={"page": 0, "limit": 1000})

    assert response.status_code == 200
    payload = response.json()
    assert payload["page"] == 1
    assert payload["limit"] == 100
    assert payload["incidents"][0]["status"] == "SecondInfoInvestigation"
    assert payload["incidents"][0]["status_label"] == "2次情報調査中"


def test_export_route_is_not_shadowed_by_incident_id(make_client) -> None:
    client = make_client(rows=[_incident()])

    response = client.get("/api/v1/incidents/export")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment" in response.headers["content-disposition"]
    assert response.content.startswith(b"\xef\xbb\xbf")


def test_dashboard_route(make_client) -> None:
    client = make_client(rows=[_incident()])

    response = client.get("/api/v1/incidents/dashboard/stats")

    assert response.status_code == 200
    assert response.json()["total_incidents"] == 1


def test_missing_incident_renders_problem_details(make_client) -> None:
    client = make_client(rows=[])

    response = client.get("/api/v1/incidents/42")

    assert response.status_code == 404
    assert response.headers["content-type"].startswith("application/problem+json")
    assert response.json()["code"] == "INCIDENT_NOT_FOUND"


def test_permissions_for_new_incident(make_client) -> None:
    client = make_client(role_id=4)

    response = client.get("/api/v1/incidents/permissions")

    assert response.status_code == 200
    assert not any(response.json()["permissions"].values())


def test_three_pl_cannot_create_incident(make_client) -> None:
    client = make_client(role_id=4)
    body = {
        "creation_date": "2024-06-01T00:00:00Z",
        "organization": 1,
        "creator": 1,
        "occurrence_datetime": "2024-06-01T00:00:00Z",
        "occurrence_location": 1,
        "shipping_warehouse": 1,
        "shipping_company": 1,
        "trouble_category": 1,
        "trouble_detail_category": 1,
        "details": "broken pallet",
    }

    response = client.post("/api/v1/incidents", json=body)

    assert response.status_code == 403
    assert response.json()["code"] == "INCIDENT_CREATE_FORBIDDEN"


def test_parameter_update_requires_system_admin(make_client, parameters) -> None:
    forbidden = make_client(role_id=2).put(
        "/api/v1/system-parameters/SECOND_INFO_DEADLINE_DAYS", json={"value": "10"}
    )
    assert forbidden.status_code == 403
    assert forbidden.json()["code"] == "PARAMETER_UPDATE_FORBIDDEN"
    assert parameters.updated == []

    allowed = make_client(role_id=1).put(
        "/api/v1/system-parameters/SECOND_INFO_DEADLINE_DAYS", json={"value": "10"}
    )
    assert allowed.status_code == 200
    assert allowed.json()["parameter_value"] == "10"
    assert parameters.updated == [("SECOND_INFO_DEADLINE_DAYS", "10", 7)]


def test_unknown_parameter_is_not_found(make_client) -> None:
    response = make_client().get("/api/v1/system-parameters/NOPE")

    assert response.status_code == 404
    assert response.json()["code"] == "PARAMETER_NOT_FOUND"


def test_access_token_round_trip() -> None:
    token = create_access_token({"sub": "5"})

    payload = decode_token(token)

    assert payload["sub"] == "5"
    assert payload["type"] == "access"


def test_expired_token_is_rejected() -> None:
    token = create_access_token({"sub": "5"}, expires_delta=timedelta(minutes=-10))

    with pytest.raises(HTTPException) as exc:
        decode_token(token)

    assert exc.value.status_code == 401
    assert exc.value.detail == "Token expired"


def test_tampered_token_is_rejected() -> None:
    token = create_access_token({"sub": "5"}) + "x"

    with pytest.raises(HTTPException) as exc:
        decode_token(token)

    assert exc.value.status_code == 401
