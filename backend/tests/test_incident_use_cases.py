from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from app.domain_errors import DomainError
from app.models import Incident
from app.schemas import IncidentCreate, IncidentSearch, IncidentUpdate
from app.services.incident_status import IncidentStatus, calculate_incident_statuses
from app.use_cases.incidents import (
    create_incident_use_case,
    delete_incident_use_case,
    get_incident_permissions_use_case,
    get_incident_use_case,
    list_incidents_use_case,
    normalize_pagination,
    update_incident_use_case,
)

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


class _QueryStub:
    def __init__(self, rows):
        self._rows = list(rows)
        self._offset = 0
        self._limit = None

    def filter(self, *_args, **_kwargs):
        return self

    def order_by(self, *_args):
        return self

    def offset(self, value):
        self._offset = value
        return self

    def limit(self, value):
        self._limit = value
        return self

    def count(self):
        return len(self._rows)

    def first(self):
        return self._rows[0] if self._rows else None

    def all(self):
        end = None if self._limit is None else self._offset + self._limit
        return self._rows[self._offset:end]


class _SessionStub:
    def __init__(self, rows=()):
        self.rows = list(rows)
        self.added = []
        self.deleted = []
        self.commit_calls = 0

    def query(self, model):
        if model is not Incident:
            raise AssertionError(f"Unexpected query model: {model}")
        return _QueryStub(self.rows)

    def add(self, obj):
        self.added.append(obj)

    def delete(self, obj):
        self.deleted.append(obj)

    def commit(self):
        self.commit_calls += 1

    def refresh(self, obj):
        if obj.id is None:
            obj.id = 101


class _StatusCacheStub:
    def __init__(self):
        self.invalidated = []

    def invalidate(self, incident_id):
        self.invalidated.append(incident_id)

    def clear_expired(self, incidents, *, deadline_days, now=None):
        pass

    def get_statuses(self, incidents, *, deadline_days, now=None):
        return calculate_incident_statuses(incidents, deadline_days=deadline_days, now=now)


def _user(role_id, user_id=7):
    return SimpleNamespace(id=user_id, role_id=role_id)


def _incident(*, id=1, created_days_ago=1, **overrides):
    values = dict(
        id=id,
        creation_date=NOW - timedelta(days=created_days_ago),
        organization=1,
        creator=1,
        occurrence_datetime=NOW - timedelta(days=created_days_ago),
        occurrence_location=1,
        shipping_warehouse=1,
        shipping_company=1,
        trouble_category=1,
        trouble_detail_category=1,
        details="wrong item shipped",
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
        status="SecondInfoInvestigation",
        created_at=None,
        updated_at=None,
        created_by=None,
        updated_by=None,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def _create_payload():
    return IncidentCreate(
        creation_date=NOW,
        organization=1,
        creator=3,
        occurrence_datetime=NOW,
        occurrence_location=2,
        shipping_warehouse=1,
        shipping_company=4,
        trouble_category=1,
        trouble_detail_category=5,
        details="crushed carton",
    )


def test_list_returns_page_with_statuses_and_total() -> None:
    rows = [_incident(id=i, created_days_ago=i * 3) for i in range(1, 6)]
    db = _SessionStub(rows)

    result = list_incidents_use_case(db=db, search=IncidentSearch(page=2, limit=2), now=NOW)

    assert result.total == 5
    assert result.total_pages == 3
    assert [item.id for item in result.incidents] == [3, 4]
    assert result.incidents[0].status == IncidentStatus.SECOND_INFO_DELAYED
    assert result.incidents[0].status_label == "2次情報遅延"


def test_list_filters_by_derived_status_before_paging() -> None:
    rows = [_incident(id=1), _incident(id=2, created_days_ago=10), _incident(id=3, created_days_ago=12)]
    db = _SessionStub(rows)

    result = list_incidents_use_case(
        db=db,
        search=IncidentSearch(status=IncidentStatus.SECOND_INFO_DELAYED, limit=1),
        status_cache=_StatusCacheStub(),
        now=NOW,
    )

    assert result.total == 2
    assert [item.id for item in result.incidents] == [2]


@pytest.mark.parametrize(
    ("page", "limit", "expected"),
    [(0, 20, (1, 20)), (1, 0, (1, 20)), (3, 500, (3, 100)), (2, 50, (2, 50))],
)
def test_pagination_is_clamped(page, limit, expected) -> None:
    search = normalize_pagination(IncidentSearch(page=page, limit=limit))

    assert (search.page, search.limit) == expected


def test_get_missing_incident_raises_not_found() -> None:
    with pytest.raises(DomainError) as exc:
        get_incident_use_case(db=_SessionStub(), incident_id=99, now=NOW)

    assert exc.value.code == "INCIDENT_NOT_FOUND"
    assert exc.value.http_status == 404


def test_get_incident_computes_status_from_clock() -> None:
    incident = _incident(status="Completed", created_days_ago=30)

    result = get_incident_use_case(db=_SessionStub([incident]), incident_id=1, now=NOW)

    assert result.status == IncidentStatus.SECOND_INFO_DELAYED


def test_create_incident_stores_initial_status_and_audit_users() -> None:
    db = _SessionStub()

    result = create_incident_use_case(db=db, payload=_create_payload(), current_user=_user(3), now=NOW)

    assert db.commit_calls == 1
    created = db.added[0]
    assert isinstance(created, Incident)
    assert created.created_by == 7
    assert created.updated_by == 7
    assert created.status == "SecondInfoInvestigation"
    assert result.id == 101
    assert result.status == IncidentStatus.SECOND_INFO_INVESTIGATION


def test_three_pl_cannot_create_incident() -> None:
    db = _SessionStub()

    with pytest.raises(DomainError) as exc:
        create_incident_use_case(db=db, payload=_create_payload(), current_user=_user(4), now=NOW)

    assert exc.value.code == "INCIDENT_CREATE_FORBIDDEN"
    assert exc.value.http_status == 403
    assert db.added == []


def test_three_pl_registers_second_info_and_status_moves_on() -> None:
    incident = _incident(created_days_ago=2)
    db = _SessionStub([incident])
    cache = _StatusCacheStub()
    payload = IncidentUpdate(input_date=NOW, process_description="picking error", cause="label mix-up")

    result = update_incident_use_case(
        db=db,
        incident_id=1,
        payload=payload,
        current_user=_user(4),
        status_cache=cache,
        now=NOW,
    )

    assert result.status == IncidentStatus.THIRD_INFO_INVESTIGATION
    assert incident.status == "ThirdInfoInvestigation"
    assert incident.cause == "label mix-up"
    assert incident.updated_by == 7
    assert db.commit_calls == 1
    assert cache.invalidated == [1]


def test_general_office_cannot_touch_second_info() -> None:
    incident = _incident()
    db = _SessionStub([incident])

    with pytest.raises(DomainError) as exc:
        update_incident_use_case(
            db=db,
            incident_id=1,
            payload=IncidentUpdate(input_date=NOW, cause="x"),
            current_user=_user(3),
            now=NOW,
        )

    assert exc.value.code == "INCIDENT_UPDATE_FORBIDDEN"
    assert exc.value.details == {"info_level": 2, "status": "SecondInfoInvestigation"}
    assert incident.cause is None
    assert db.commit_calls == 0


def test_general_office_edits_first_info_until_second_info_starts() -> None:
    incident = _incident()
    db = _SessionStub([incident])

    update_incident_use_case(
        db=db,
        incident_id=1,
        payload=IncidentUpdate(details="corrected details", voucher_number="V-9"),
        current_user=_user(3),
        now=NOW,
    )
    assert incident.details == "corrected details"
    assert incident.voucher_number == "V-9"

    incident.input_date = NOW
    with pytest.raises(DomainError) as exc:
        update_incident_use_case(
            db=db,
            incident_id=1,
            payload=IncidentUpdate(details="again"),
            current_user=_user(3),
            now=NOW,
        )
    assert exc.value.code == "INCIDENT_UPDATE_FORBIDDEN"


def test_mixed_first_and_later_phase_update_is_rejected() -> None:
    db = _SessionStub([_incident(input_date=NOW)])

    with pytest.raises(DomainError) as exc:
        update_incident_use_case(
            db=db,
            incident_id=1,
            payload=IncidentUpdate(details="d", cause="c"),
            current_user=_user(1),
            now=NOW,
        )

    assert exc.value.code == "INCIDENT_MIXED_PHASE_UPDATE"
    assert exc.value.http_status == 400


def test_empty_update_is_rejected() -> None:
    db = _SessionStub([_incident()])

    with pytest.raises(DomainError) as exc:
        update_incident_use_case(
            db=db,
            incident_id=1,
            payload=IncidentUpdate(details="", cause=""),
            current_user=_user(1),
            now=NOW,
        )

    assert exc.value.code == "INCIDENT_EMPTY_UPDATE"


def test_unstarted_phase_requires_its_input_date() -> None:
    db = _SessionStub([_incident()])

    with pytest.raises(DomainError) as exc:
        update_incident_use_case(
            db=db,
            incident_id=1,
            payload=IncidentUpdate(cause="no date"),
            current_user=_user(4),
            now=NOW,
        )

    assert exc.value.code == "INCIDENT_INPUT_DATE_REQUIRED"
    assert exc.value.details == {"info_levels": [2]}


def test_three_pl_completes_third_info_and_can_revise_it() -> None:
    incident = _incident(
        created_days_ago=5,
        input_date=NOW - timedelta(days=3),
        process_description="p",
        cause="c",
        input_date3=NOW - timedelta(days=1),
        recurrence_prevention_measures="",
    )
    db = _SessionStub([incident])

    result = update_incident_use_case(
        db=db,
        incident_id=1,
        payload=IncidentUpdate(recurrence_prevention_measures="double check labels"),
        current_user=_user(4),
        now=NOW,
    )

    assert result.status == IncidentStatus.COMPLETED

    # Completed incidents stay editable at the 3rd info stage.
    result = update_incident_use_case(
        db=db,
        incident_id=1,
        payload=IncidentUpdate(recurrence_prevention_measures="double check labels and weights"),
        current_user=_user(4),
        now=NOW,
    )
    assert result.status == IncidentStatus.COMPLETED
    assert incident.recurrence_prevention_measures == "double check labels and weights"


def test_blank_text_does_not_clear_another_stage() -> None:
    incident = _incident(
        created_days_ago=5,
        input_date=NOW - timedelta(days=3),
        process_description="picked from wrong bin",
        cause="no double check",
        input_date3=NOW - timedelta(days=1),
        recurrence_prevention_measures="checklist",
    )
    db = _SessionStub([incident])

    result = update_incident_use_case(
        db=db,
        incident_id=1,
        payload=IncidentUpdate(recurrence_prevention_measures="checklist v2", cause=""),
        current_user=_user(4),
        now=NOW,
    )

    assert incident.cause == "no double check"
    assert incident.recurrence_prevention_measures == "checklist v2"
    assert result.status == IncidentStatus.COMPLETED


def test_first_info_edit_leaves_second_info_fields_alone() -> None:
    incident = _incident(created_days_ago=2, process_description="draft notes")
    db = _SessionStub([incident])

    update_incident_use_case(
        db=db,
        incident_id=1,
        payload=IncidentUpdate(details="label torn", process_description=""),
        current_user=_user(3),
        now=NOW,
    )

    assert incident.details == "label torn"
    assert incident.process_description == "draft notes"
    assert db.commit_calls == 1


def test_only_admins_delete_incidents() -> None:
    incident = _incident()
    db = _SessionStub([incident])
    cache = _StatusCacheStub()

    with pytest.raises(DomainError) as exc:
        delete_incident_use_case(db=db, incident_id=1, current_user=_user(3), status_cache=cache)
    assert exc.value.code == "INCIDENT_DELETE_FORBIDDEN"

    delete_incident_use_case(db=db, incident_id=1, current_user=_user(2), status_cache=cache)
    assert db.deleted == [incident]
    assert cache.invalidated == [1]


def test_permissions_use_case_reports_flags_for_incident() -> None:
    db = _SessionStub([_incident(input_date=NOW, process_description="p", cause="c")])

    result = get_incident_permissions_use_case(db=db, incident_id=1, current_user=_user(4), now=NOW)

    assert result.status == IncidentStatus.THIRD_INFO_INVESTIGATION
    assert result.permissions["canCreateThirdInfo"] is True
    assert result.permissions["canCreateFirstInfo"] is False


def test_permissions_use_case_for_new_incident() -> None:
    result = get_incident_permissions_use_case(db=_SessionStub(), incident_id=None, current_user=_user(3))

    assert result.incident_id is None
    assert result.permissions["canCreateFirstInfo"] is True
    assert sum(result.permissions.values()) == 1
