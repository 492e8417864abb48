"""CSV export and dashboard aggregation over incidents."""
from __future__ import annotations

import csv
import io
import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Iterable

from sqlalchemy.orm import Session

from ..models import Incident
from ..schemas import (
    DailyIncidentCount,
    DashboardStatsResponse,
    IncidentSearch,
    ShippingCompanyCount,
    StatusCount,
    TroubleCategoryCount,
    TroubleDetailCategoryCount,
    WarehouseIncidentCount,
)
from ..services.incident_status import (
    STATUS_LABELS_JA,
    DeadlineDays,
    IncidentStatus,
    as_utc,
    calculate_incident_statuses,
    now_utc,
)
from ..services.system_parameters import SystemParameterService, resolve_deadline_days
from .incidents import apply_incident_filters

logger = logging.getLogger(__name__)

DASHBOARD_DAILY_WINDOW_DAYS = 30

CSV_HEADER = [
    "ID",
    "作成日",
    "所属組織",
    "作成者名",
    "発生日時",
    "発生場所",
    "出荷元倉庫",
    "運送会社名",
    "トラブル区分",
    "トラブル詳細区分",
    "内容詳細",
    "伝票番号",
    "得意先コード",
    "商品コード",
    "数量",
    "単位",
    "2次情報入力日",
    "発生経緯",
    "発生原因",
    "3次情報入力日",
    "再発防止策",
    "ステータス",
    "作成日時",
    "更新日時",
]

# Columns needed to derive status and the dashboard breakdowns.
_DASHBOARD_COLUMNS = (
    Incident.id,
    Incident.creation_date,
    Incident.occurrence_datetime,
    Incident.shipping_warehouse,
    Incident.shipping_company,
    Incident.trouble_category,
    Incident.trouble_detail_category,
    Incident.input_date,
    Incident.process_description,
    Incident.cause,
    Incident.input_date3,
    Incident.recurrence_prevention_measures,
)


def _fmt(value: datetime | None, pattern: str) -> str:
    if value is None:
        return ""
    return as_utc(value).strftime(pattern)


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def incident_csv_row(incident: Any, status: IncidentStatus) -> list[str]:
    return [
        str(incident.id),
        _fmt(incident.creation_date, "%Y-%m-%d"),
        _text(incident.organization),
        _text(incident.creator),
        _fmt(incident.occurrence_datetime, "%Y-%m-%d %H:%M"),
        _text(incident.occurrence_location),
        _text(incident.shipping_warehouse),
        _text(incident.shipping_company),
        _text(incident.trouble_category),
        _text(incident.trouble_detail_category),
        _text(incident.details),
        _text(incident.voucher_number),
        _text(incident.customer_code),
        _text(incident.product_code),
        _text(incident.quantity if incident.quantity is not None else 0),
        _text(incident.unit),
        _fmt(incident.input_date, "%Y-%m-%d"),
        _text(incident.process_description),
        _text(incident.cause),
        _fmt(incident.input_date3, "%Y-%m-%d"),
        _text(incident.recurrence_prevention_measures),
        STATUS_LABELS_JA[status],
        _fmt(incident.created_at, "%Y-%m-%d %H:%M:%S"),
        _fmt(incident.updated_at, "%Y-%m-%d %H:%M:%S"),
    ]


def render_incidents_csv(incidents: Iterable[Any], statuses: dict[int, IncidentStatus]) -> bytes:
    """Render incidents as CSV encoded UTF-8 with BOM (opens cleanly in Excel)."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\r\n")
    writer.writerow(CSV_HEADER)
    for incident in incidents:
        writer.writerow(incident_csv_row(incident, statuses[incident.id]))
    return buffer.getvalue().encode("utf-8-sig")


def export_incidents_csv_use_case(
    *,
    db: Session,
    search: IncidentSearch,
    parameters: SystemParameterService | None = None,
    now: datetime | None = None,
) -> bytes:
    """Export every incident matching the search filters (no pagination)."""
    incidents = (
        apply_incident_filters(db.query(Incident), search)
        .order_by(Incident.occurrence_datetime.desc())
        .all()
    )
    statuses = calculate_incident_statuses(
        incidents,
        deadline_days=resolve_deadline_days(parameters),
        now=now,
    )
    if search.status is not None:
        incidents = [incident for incident in incidents if statuses[incident.id] == search.status]

    logger.info("Exporting %s incidents to CSV", len(incidents))
    return render_incidents_csv(incidents, statuses)


def _ranked(counter: Counter) -> list[tuple[str, int]]:
    return sorted(((str(key), count) for key, count in counter.items()), key=lambda item: (-item[1], item[0]))


def summarize_dashboard(
    incidents: list[Any],
    *,
    deadline_days: DeadlineDays,
    now: datetime | None = None,
) -> DashboardStatsResponse:
    """Aggregate dashboard figures from incident rows."""
    current = as_utc(now) if now is not None else now_utc()
    statuses = calculate_incident_statuses(incidents, deadline_days=deadline_days, now=current)
    status_counter = Counter(statuses.values())

    window_start = current - timedelta(days=DASHBOARD_DAILY_WINDOW_DAYS)
    daily = Counter(
        as_utc(incident.occurrence_datetime).date()
        for incident in incidents
        if as_utc(incident.occurrence_datetime) >= window_start
    )

    return DashboardStatsResponse(
        total_incidents=len(incidents),
        completed_incidents=status_counter[IncidentStatus.COMPLETED],
        second_info_delayed_count=status_counter[IncidentStatus.SECOND_INFO_DELAYED],
        third_info_delayed_count=status_counter[IncidentStatus.THIRD_INFO_DELAYED],
        daily_incident_counts=[
            DailyIncidentCount(date=day, count=count) for day, count in sorted(daily.items())
        ],
        warehouse_incident_counts=[
            WarehouseIncidentCount(warehouse=key, count=count)
            for key, count in _ranked(Counter(i.shipping_warehouse for i in incidents))
        ],
        trouble_category_counts=[
            TroubleCategoryCount(category=key, count=count)
            for key, count in _ranked(Counter(i.trouble_category for i in incidents))
        ],
        trouble_detail_category_counts=[
            TroubleDetailCategoryCount(detail_category=key, count=count)
            for key, count in _ranked(Counter(i.trouble_detail_category for i in incidents))
        ],
        shipping_company_counts=[
            ShippingCompanyCount(company=key, count=count)
            for key, count in _ranked(Counter(i.shipping_company for i in incidents))
        ],
        status_counts=[
            StatusCount(status=status, label=STATUS_LABELS_JA[status], count=status_counter[status])
            for status in IncidentStatus
        ],
    )


def get_dashboard_stats_use_case(
    *,
    db: Session,
    parameters: SystemParameterService | None = None,
    now: datetime | None = None,
) -> DashboardStatsResponse:
    rows = db.query(*_DASHBOARD_COLUMNS).all()
    return summarize_dashboard(rows, deadline_days=resolve_deadline_days(parameters), now=now)
