"""Contact directory models: clients, employees and their assets.

These tables are owned by the resource management side of the product; the
scheduling core only reads names and contact details from them.
"""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import String, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from onschedule.models.base import Base, TimestampMixin, SoftDeleteMixin

if TYPE_CHECKING:
    from onschedule.models.inspection import Inspection


class Client(Base, TimestampMixin, SoftDeleteMixin):
    """Customer company that owns inspected assets."""

    __tablename__ = "clients"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    company: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    assets: Mapped[list["Asset"]] = relationship("Asset", back_populates="client")

    def __repr__(self) -> str:
        return f"<Client(id={self.id}, company={self.company})>"


class Employee(Base, TimestampMixin, SoftDeleteMixin):
    """Staff member who can be assigned as an inspector."""

    __tablename__ = "employees"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    @property
    def display_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def __repr__(self) -> str:
        return f"<Employee(id={self.id}, name={self.display_name})>"


class Asset(Base, TimestampMixin, SoftDeleteMixin):
    """Physical asset subject to periodic inspection."""

    __tablename__ = "assets"

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
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    serial_no: Mapped[str | None] = mapped_column(String(100), nullable=True)
    location: Mapped[str | None] = mapped_column(String(500), nullable=True)

    client: Mapped["Client"] = relationship("Client", back_populates="assets")
    inspections: Mapped[list["Inspection"]] = relationship("Inspection", back_populates="asset")

    @property
    def label(self) -> str:
        """Name, else serial number, else N/A."""
        return self.name or self.serial_no or "N/A"

    def __repr__(self) -> str:
        return f"<Asset(id={self.id}, name={self.name}, serial_no={self.serial_no})>"
