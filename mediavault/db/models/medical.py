"""
Medical records ORM models.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import BigInteger, Boolean, Date, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from mediavault.core.time import utcnow
from mediavault.db.database import Base
from mediavault.db.models.base import TimestampMixin, UUIDPrimaryKeyMixin


class MedicalPersonModel(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A person whose medical records are tracked."""

    __tablename__ = "medical_people"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    date_of_birth: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
    )
    notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )


class MedicalDocumentModel(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """An uploaded medical file or a free-text note."""

    __tablename__ = "medical_documents"

    person_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("medical_people.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    uploaded_by: Mapped[Optional[str]] = mapped_column(
        String,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    document_type: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default="file",
    )  # 'file' or 'note'
    file_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    file_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    file_size: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    mime_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    is_encrypted: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    document_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    classification: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    doctor_id: Mapped[Optional[str]] = mapped_column(
        String,
        ForeignKey("medical_doctors.id", ondelete="SET NULL"),
        nullable=True,
    )


class MedicalProviderModel(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A billing provider (clinic, hospital, pharmacy) for a person."""

    __tablename__ = "medical_providers"

    person_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("medical_people.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class MedicalBillModel(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A bill owed by a person, optionally tied to a provider."""

    __tablename__ = "medical_bills"

    person_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("medical_people.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    provider_id: Mapped[Optional[str]] = mapped_column(
        String,
        ForeignKey("medical_providers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    bill_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    doctor_id: Mapped[Optional[str]] = mapped_column(
        String,
        ForeignKey("medical_doctors.id", ondelete="SET NULL"),
        nullable=True,
    )
    source: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="manual",
    )


class MedicalPrescriptionModel(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A medication prescribed to a person."""

    __tablename__ = "medical_prescriptions"

    person_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("medical_people.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    medication_name: Mapped[str] = mapped_column(String(255), nullable=False)
    dosage: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    frequency: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    rx_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )
    start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    doctor_id: Mapped[Optional[str]] = mapped_column(
        String,
        ForeignKey("medical_doctors.id", ondelete="SET NULL"),
        nullable=True,
    )


class MedicalDoctorModel(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A doctor; shared across everyone tracked."""

    __tablename__ = "medical_doctors"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    specialty: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class MedicalConditionModel(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A diagnosed condition for a person."""

    __tablename__ = "medical_conditions"

    person_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("medical_people.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    diagnosed_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )


class MedicalProviderPaymentModel(UUIDPrimaryKeyMixin, Base):
    """A payment made to a billing provider."""

    __tablename__ = "medical_provider_payments"

    provider_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("medical_providers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    document_id: Mapped[Optional[str]] = mapped_column(
        String,
        ForeignKey("medical_documents.id", ondelete="SET NULL"),
        nullable=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="manual",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )


class MedicalBillChargeModel(UUIDPrimaryKeyMixin, Base):
    """One line item on a bill."""

    __tablename__ = "medical_bill_charges"

    bill_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("medical_bills.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    source: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="manual",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )


class MedicalBillDocumentModel(Base):
    """Link between a bill and the documents backing it."""

    __tablename__ = "medical_bill_documents"

    bill_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("medical_bills.id", ondelete="CASCADE"),
        primary_key=True,
    )
    document_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("medical_documents.id", ondelete="CASCADE"),
        primary_key=True,
    )


class MedicalPrescriptionPickupModel(UUIDPrimaryKeyMixin, Base):
    """A pharmacy pickup of a prescription."""

    __tablename__ = "medical_prescription_pickups"

    prescription_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("medical_prescriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    document_id: Mapped[Optional[str]] = mapped_column(
        String,
        ForeignKey("medical_documents.id", ondelete="SET NULL"),
        nullable=True,
    )
    pickup_date: Mapped[date] = mapped_column(Date, nullable=False)
    quantity: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    pharmacy: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
