"""SQLAlchemy models for incidents, attachments and system parameters."""
from sqlalchemy import (
    Boolean, Column, String, Integer, BigInteger, Numeric, DateTime, Text,
    ForeignKey, CheckConstraint, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .database import Base


class User(Base):
    """User model (role_id drives incident permissions)."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    role_id = Column(Integer, nullable=False, index=True)
    organization_id = Column(Integer, nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(role_id.in_([1, 2, 3, 4]), name="chk_user_role_id"),
    )


class Incident(Base):
    """Logistics trouble incident (1st/2nd/3rd info)."""
    __tablename__ = "incidents"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # 1st info
    creation_date = Column(DateTime(timezone=True), nullable=False, index=True)
    organization = Column(Integer, nullable=False, index=True)
    creator = Column(Integer, nullable=False)
    occurrence_datetime = Column(DateTime(timezone=True), nullable=False, index=True)
    occurrence_location = Column(Integer, nullable=False)
    shipping_warehouse = Column(Integer, nullable=False, index=True)
    shipping_company = Column(Integer, nullable=False, index=True)
    trouble_category = Column(Integer, nullable=False, index=True)
    trouble_detail_category = Column(Integer, nullable=False)
    details = Column(String(2000), nullable=False)
    voucher_number = Column(String(50), nullable=True)
    customer_code = Column(String(50), nullable=True)
    product_code = Column(String(50), nullable=True)
    quantity = Column(Numeric(18, 2), nullable=True)
    unit = Column(Integer, nullable=True)

    # 2nd info
    input_date = Column(DateTime(timezone=True), nullable=True)
    process_description = Column(String(2000), nullable=True)
    cause = Column(String(2000), nullable=True)
    photo_data_uri = Column(String(500), nullable=True)

    # 3rd info
    input_date3 = Column(DateTime(timezone=True), nullable=True)
    recurrence_prevention_measures = Column(String(2000), nullable=True)

    # Last computed status (reporting only, always recomputed on read)
    status = Column(String(50), nullable=False, default="SecondInfoInvestigation")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    __table_args__ = (
        Index("idx_incidents_occurrence_desc", occurrence_datetime.desc()),
    )

    # Relationships
    files = relationship("IncidentFile", back_populates="incident", cascade="all, delete-orphan")
    created_by_user = relationship("User", foreign_keys=[created_by])
    updated_by_user = relationship("User", foreign_keys=[updated_by])


class IncidentFile(Base):
    """File attached to an incident at the 1st or 2nd info stage."""
    __tablename__ = "incident_files"

    id = Column(Integer, primary_key=True, autoincrement=True)
    incident_id = Column(Integer, ForeignKey("incidents.id", ondelete="CASCADE"), nullable=False, index=True)
    info_level = Column(Integer, nullable=False)
    file_data_uri = Column(Text, nullable=False)
    file_name = Column(String(255), nullable=False)
    file_type = Column(String(100), nullable=False)
    file_size = Column(BigInteger, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(info_level.in_([1, 2]), name="chk_incident_file_info_level"),
        CheckConstraint(file_size >= 0, name="chk_incident_file_size_non_negative"),
        Index("idx_incident_files_incident_level", "incident_id", "info_level"),
    )

    incident = relationship("Incident", back_populates="files")


class SystemParameter(Base):
    """Typed key-value configuration row (deadline thresholds etc.)."""
    __tablename__ = "system_parameters"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    parameter_key = Column(String(100), nullable=False)
    parameter_value = Column(String(500), nullable=False)
    description = Column(String(1000), nullable=True)
    data_type = Column(String(50), nullable=False, default="string")
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    __table_args__ = (
        CheckConstraint(
            data_type.in_(["string", "int", "bool", "decimal"]),
            name="chk_system_parameter_data_type",
        ),
        UniqueConstraint("parameter_key", name="uq_system_parameter_key"),
    )
