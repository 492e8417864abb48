"""Pydantic schemas for API."""
from pydantic import BaseModel, Field, ConfigDict, computed_field
from typing import Optional
from datetime import date, datetime
from decimal import Decimal

from .services.incident_status import IncidentStatus


# Incident schemas
class IncidentCreate(BaseModel):
    """1st info, required when an incident is first recorded."""
    creation_date: datetime
    organization: int
    creator: int
    occurrence_datetime: datetime
    occurrence_location: int
    shipping_warehouse: int
    shipping_company: int
    trouble_category: int
    trouble_detail_category: int
    details: str = Field(min_length=1, max_length=2000)
    voucher_number: Optional[str] = Field(default=None, max_length=50)
    customer_code: Optional[str] = Field(default=None, max_length=50)
    product_code: Optional[str] = Field(default=None, max_length=50)
    quantity: Optional[Decimal] = Field(default=None, ge=0)
    unit: Optional[int] = None


class IncidentUpdate(BaseModel):
    """Partial update; only submitted fields are applied."""
    # 1st info
    creation_date: Optional[datetime] = None
    organization: Optional[int] = None
    creator: Optional[int] = None
    occurrence_datetime: Optional[datetime] = None
    occurrence_location: Optional[int] = None
    shipping_warehouse: Optional[int] = None
    shipping_company: Optional[int] = None
    trouble_category: Optional[int] = None
    trouble_detail_category: Optional[int] = None
    details: Optional[str] = Field(default=None, max_length=2000)
    voucher_number: Optional[str] = Field(default=None, max_length=50)
    customer_code: Optional[str] = Field(default=None, max_length=50)
    product_code: Optional[str] = Field(default=None, max_length=50)
    quantity: Optional[Decimal] = Field(default=None, ge=0)
    unit: Optional[int] = None

    # 2nd info
    input_date: Optional[datetime] = None
    process_description: Optional[str] = Field(default=None, max_length=2000)
    cause: Optional[str] = Field(default=None, max_length=2000)
    photo_data_uri: Optional[str] = Field(default=None, max_length=500)

    # 3rd info
    input_date3: Optional[datetime] = None
    recurrence_prevention_measures: Optional[str] = Field(default=None, max_length=2000)


class IncidentResponse(BaseModel):
    id: int

    creation_date: datetime
    organization: int
    creator: int
    occurrence_datetime: datetime
    occurrence_location: int
    shipping_warehouse: int
    shipping_company: int
    trouble_category: int
    trouble_detail_category: int
    details: str
    voucher_number: Optional[str] = None
    customer_code: Optional[str] = None
    product_code: Optional[str] = None
    quantity: Optional[Decimal] = None
    unit: Optional[int] = None

    input_date: Optional[datetime] = None
    process_description: Optional[str] = None
    cause: Optional[str] = None
    photo_data_uri: Optional[str] = None

    input_date3: Optional[datetime] = None
    recurrence_prevention_measures: Optional[str] = None

    status: IncidentStatus
    status_label: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class IncidentSearch(BaseModel):
    page: int = 1
    limit: int = 20
    search: Optional[str] = None
    year: Optional[int] = None
    month: Optional[int] = Field(default=None, ge=1, le=12)
    warehouse: Optional[int] = None
    status: Optional[IncidentStatus] = None
    trouble_category: Optional[int] = None


class IncidentListResponse(BaseModel):
    incidents: list[IncidentResponse]
    total: int
    page: int
    limit: int

    @computed_field
    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return -(-self.total // self.limit)


class IncidentPermissionsResponse(BaseModel):
    incident_id: Optional[int] = None
    status: Optional[IncidentStatus] = None
    role_id: int
    permissions: dict[str, bool]


# Incident file schemas
class IncidentFileCreate(BaseModel):
    info_level: int = Field(ge=1, le=2)
    file_data_uri: str = Field(min_length=1)
    file_name: str = Field(min_length=1, max_length=255)
    file_type: str = Field(min_length=1, max_length=100)
    file_size: int = Field(ge=0)


class IncidentFileResponse(BaseModel):
    id: int
    incident_id: int
    info_level: int
    file_data_uri: str
    file_name: str
    file_type: str
    file_size: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# Dashboard
class DailyIncidentCount(BaseModel):
    date: date
    count: int


class WarehouseIncidentCount(BaseModel):
    warehouse: str
    count: int


class TroubleCategoryCount(BaseModel):
    category: str
    count: int


class TroubleDetailCategoryCount(BaseModel):
    detail_category: str
    count: int


class ShippingCompanyCount(BaseModel):
    company: str
    count: int


class StatusCount(BaseModel):
    status: IncidentStatus
    label: str
    count: int


class DashboardStatsResponse(BaseModel):
    total_incidents: int = 0
    completed_incidents: int = 0
    second_info_delayed_count: int = 0
    third_info_delayed_count: int = 0
    daily_incident_counts: list[DailyIncidentCount] = []
    warehouse_incident_counts: list[WarehouseIncidentCount] = []
    trouble_category_counts: list[TroubleCategoryCount] = []
    trouble_detail_category_counts: list[TroubleDetailCategoryCount] = []
    shipping_company_counts: list[ShippingCompanyCount] = []
    status_counts: list[StatusCount] = []

    @computed_field
    @property
    def progress_rate(self) -> float:
        if self.total_incidents <= 0:
            return 0.0
        return self.completed_incidents / self.total_incidents * 100


# System parameters
class SystemParameterResponse(BaseModel):
    id: int
    name: str
    parameter_key: str
    parameter_value: str
    description: Optional[str] = None
    data_type: str
    is_active: bool
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SystemParameterUpdate(BaseModel):
    value: str = Field(min_length=1, max_length=500)


# System
class HealthCheckResponse(BaseModel):
    status: str
    version: str
