"""Inspection model for recurring asset inspection tracking."""

import uuid
from datetime import date
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import String, Text, Date, ForeignKey, Index, UniqueConstraint, text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from onschedule.models.base import Base, TimestampMixin, SoftDeleteMixin

if TYPE_CHECKING:
    from onschedule.models.directory import Client, Asset, Employee


class InspectionType(str, Enum):
    """Inspection type. The first five kinds recur."""

    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMI_ANNUAL = "semi_annual"
    ANNUAL = "annual"
    PRE_OPERATION = "pre_operation"
    DAILY = "daily"
    PREVENTIVE_MAINTENANCE = "preventive_maintenance"
    CORRECTIVE_MAINTENANCE = "corrective_maintenance"
    REPAIR = "repair"
    SAFETY = "safety"
    CALIBRATION = "calibration"
    LOAD_TEST = "load_test"
    ELECTRICAL = "electrical"
    STRUCTURAL = "structural"
    FIRE_SAFETY = "fire_safety"
    INSTALLATION = "installation"
    POST_INCIDENT = "post_incident"
    COMMISSIONING = "commissioning"
    SPECIAL = "special"


class InspectionStatus(str, Enum):
    """Inspection status enum."""

    SCHEDULED = "scheduled"
    NOT_SCHEDULED = "not_scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    OVERDUE = "overdue"
    DUE_SOON = "due_soon"
    CANCELLED = "cancelled"


class Inspection(Base, TimestampMixin, SoftDeleteMixin):
    """Scheduled inspection of a client asset."""

    __tablename__ = "inspections"
    __table_args__ = (
        # At most one live inspection per (client, asset, type, due date)
        Index(
            "uq_inspections_active_occurrence",
            "client_id",
            "asset_id",
            "inspection_type",
            "due_date",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    asset_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("assets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    inspection_type: Mapped[InspectionType] = mapped_column(
        SQLEnum(InspectionType, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        index=True,
    )
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    status: Mapped[InspectionStatus] = mapped_column(
        SQLEnum(InspectionStatus, values_callable=lambda x: [e.value for e in x]),
        default=InspectionStatus.SCHEDULED,
        nullable=False,
    )
    location: Mapped[str | None] = mapped_column(String(500), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    client: Mapped["Client"] = relationship("Client")
    asset: Mapped["Asset"] = relationship("Asset", back_populates="inspections")
    inspectors: Mapped[list["InspectionInspector"]] = relationship(
        "InspectionInspector",
        back_populates="inspection",
        cascade="all, delete-orphan",
    )

    @property
    def inspector_ids(self) -> list[uuid.UUID]:
        return [assignment.employee_id for assignment in self.inspectors]

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": str(self.id),
            "client_id": str(self.client_id),
            "asset_id": str(self.asset_id),
            "inspection_type": self.inspection_type.value,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "status": self.status.value,
            "location": self.location,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return (
            f"<Inspection(id={self.id}, asset_id={self.asset_id}, "
            f"type={self.inspection_type}, due_date={self.due_date})>"
        )


class InspectionInspector(Base):
    """Assignment of an employee to an inspection."""

    __tablename__ = "inspection_inspectors"
    __table_args__ = (
        UniqueConstraint("inspection_id", "employee_id", name="uq_inspection_inspector"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    inspection_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("inspections.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    inspection: Mapped["Inspection"] = relationship("Inspection", back_populates="inspectors")
    employee: Mapped["Employee"] = relationship("Employee")
