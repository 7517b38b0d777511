"""Message template models for email and SMS reminders."""

import uuid

from sqlalchemy import String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from onschedule.models.base import Base, TimestampMixin, SoftDeleteMixin


class EmailTemplate(Base, TimestampMixin, SoftDeleteMixin):
    """Email template.

    ``provider_template_id`` references the dynamic template hosted by the
    email provider. ``body`` optionally holds raw HTML with ``{{variable}}``
    placeholders, used when a message has to be compiled locally.
    """

    __tablename__ = "email_templates"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    subject: Mapped[str | None] = mapped_column(String(255), nullable=True)
    provider_template_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="SendGrid dynamic template ID",
    )
    body: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<EmailTemplate(id={self.id}, name={self.name})>"


class SMSTemplate(Base, TimestampMixin, SoftDeleteMixin):
    """SMS template."""

    __tablename__ = "sms_templates"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<SMSTemplate(id={self.id}, name={self.name})>"
