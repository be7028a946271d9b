"""
Medical records: people, doctors, conditions, documents, billing providers
and their payments, bills with line-item charges, and prescriptions with
pharmacy pickups.

Records are shared by everyone holding the ``medical`` role; access control
happens at the route layer.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mediavault.config import settings
from mediavault.core.exceptions import InvalidUpload, NotFound
from mediavault.core.storage import EncryptedFileStore
from mediavault.core.time import utcnow
from mediavault.db.filters import LIKE_ESCAPE, contains_pattern
from mediavault.db.models import (
    MedicalBillChargeModel,
    MedicalBillDocumentModel,
    MedicalBillModel,
    MedicalConditionModel,
    MedicalDoctorModel,
    MedicalDocumentModel,
    MedicalPersonModel,
    MedicalPrescriptionModel,
    MedicalPrescriptionPickupModel,
    MedicalProviderModel,
    MedicalProviderPaymentModel,
)
from mediavault.services.media_service import validate_upload

logger = logging.getLogger(__name__)

MEDICAL_AREA = "medical"
UNASSIGNED_PROVIDER = "Unassigned"
ZERO = Decimal("0")


@dataclass
class ProviderBalance:
    """What a person was billed by and has paid to one provider."""

    total_charged: Decimal = ZERO
    total_paid: Decimal = ZERO
    bill_count: int = 0

    @property
    def balance(self) -> Decimal:
        return self.total_charged - self.total_paid


@dataclass
class YearTotal:
    year: int
    total: Decimal
    count: int


@dataclass
class ProviderTotal:
    provider_name: str
    total: Decimal
    count: int


@dataclass
class BillSummary:
    """Billing totals for one person."""

    total_charged: Decimal = ZERO
    total_paid: Decimal = ZERO
    by_year: list[YearTotal] = field(default_factory=list)
    by_provider: list[ProviderTotal] = field(default_factory=list)

    @property
    def total_due(self) -> Decimal:
        return self.total_charged - self.total_paid


class MedicalService:
    """Service for medical record CRUD."""

    def __init__(self, session: AsyncSession, store: Optional[EncryptedFileStore] = None):
        self.session = session
        self._store = store

    @property
    def store(self) -> EncryptedFileStore:
        if self._store is None:
            self._store = EncryptedFileStore()
        return self._store

    async def _get(self, model, record_id: str, label: str):
        record = await self.session.get(model, record_id)
        if record is None:
            raise NotFound(f"{label} {record_id} not found", f"{label} not found.")
        return record

    async def _check_doctor(self, doctor_id: Optional[str]) -> None:
        if doctor_id is not None:
            await self.get_doctor(doctor_id)

    async def _check_provider(self, provider_id: Optional[str], person_id: str) -> None:
        if provider_id is None:
            return
        provider = await self.get_provider(provider_id)
        if provider.person_id != person_id:
            raise NotFound(
                f"Provider {provider_id} does not belong to person {person_id}",
                "Provider not found.",
            )

    async def _check_document(self, document_id: Optional[str], person_id: str) -> None:
        if document_id is None:
            return
        document = await self.get_document(document_id)
        if document.person_id != person_id:
            raise NotFound(
                f"Document {document_id} does not belong to person {person_id}",
                "Document not found.",
            )

    # ============ People ============

    async def list_people(self) -> list[MedicalPersonModel]:
        result = await self.session.execute(select(MedicalPersonModel).order_by(MedicalPersonModel.name))
        return list(result.scalars().all())

    async def get_person(self, person_id: str) -> MedicalPersonModel:
        return await self._get(MedicalPersonModel, person_id, "Person")

    async def create_person(
        self,
        name: str,
        date_of_birth: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> MedicalPersonModel:
        person = MedicalPersonModel(name=name.strip(), date_of_birth=date_of_birth, notes=notes)
        self.session.add(person)
        await self.session.flush()
        return person

    # ============ Doctors ============

    async def list_doctors(self) -> list[MedicalDoctorModel]:
        result = await self.session.execute(select(MedicalDoctorModel).order_by(MedicalDoctorModel.name))
        return list(result.scalars().all())

    async def get_doctor(self, doctor_id: str) -> MedicalDoctorModel:
        return await self._get(MedicalDoctorModel, doctor_id, "Doctor")

    async def create_doctor(
        self,
        name: str,
        specialty: Optional[str] = None,
        phone: Optional[str] = None,
        address: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> MedicalDoctorModel:
        doctor = MedicalDoctorModel(
            name=name.strip(),
            specialty=specialty,
            phone=phone,
            address=address,
            notes=notes,
        )
        self.session.add(doctor)
        await self.session.flush()
        return doctor

    async def update_doctor(
        self,
        doctor_id: str,
        name: str,
        specialty: Optional[str] = None,
        phone: Optional[str] = None,
        address: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> MedicalDoctorModel:
        doctor = await self.get_doctor(doctor_id)
        doctor.name = name.strip()
        doctor.specialty = specialty
        doctor.phone = phone
        doctor.address = address
        doctor.notes = notes
        await self.session.flush()
        return doctor

    async def delete_doctor(self, doctor_id: str) -> None:
        """Delete a doctor; documents, bills and prescriptions lose the link."""
        doctor = await self.get_doctor(doctor_id)
        for model in (MedicalDocumentModel, MedicalBillModel, MedicalPrescriptionModel):
            await self.session.execute(
                update(model).where(model.doctor_id == doctor_id).values(doctor_id=None)
            )
        await self.session.delete(doctor)
        await self.session.flush()

    # ============ Conditions ============

    async def list_conditions(
        self,
        person_id: str,
        active_only: bool = False,
    ) -> list[MedicalConditionModel]:
        await self.get_person(person_id)
        query = select(MedicalConditionModel).where(MedicalConditionModel.person_id == person_id)
        if active_only:
            query = query.where(MedicalConditionModel.is_active.is_(True))
        result = await self.session.execute(query.order_by(MedicalConditionModel.name))
        return list(result.scalars().all())

    async def create_condition(
        self,
        person_id: str,
        name: str,
        diagnosed_date: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> MedicalConditionModel:
        await self.get_person(person_id)
        condition = MedicalConditionModel(
            person_id=person_id,
            name=name.strip(),
            diagnosed_date=diagnosed_date,
            notes=notes,
            is_active=True,
        )
        self.session.add(condition)
        await self.session.flush()
        return condition

    async def update_condition(
        self,
        condition_id: str,
        name: str,
        diagnosed_date: Optional[date] = None,
        notes: Optional[str] = None,
        is_active: bool = True,
    ) -> MedicalConditionModel:
        condition = await self._get(MedicalConditionModel, condition_id, "Condition")
        condition.name = name.strip()
        condition.diagnosed_date = diagnosed_date
        condition.notes = notes
        condition.is_active = is_active
        await self.session.flush()
        return condition

    async def delete_condition(self, condition_id: str) -> None:
        condition = await self._get(MedicalConditionModel, condition_id, "Condition")
        await self.session.delete(condition)
        await self.session.flush()

    # ============ Documents ============

    async def search_documents(
        self,
        person_id: str,
        text: Optional[str] = None,
        classification: Optional[str] = None,
        document_type: Optional[str] = None,
        doctor_id: Optional[str] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        offset: int = 0,
        limit: int = 50,
    ) -> list[MedicalDocumentModel]:
        """
        Documents for a person matching every given filter.

        ``text`` matches title or description case-insensitively. Results are
        ordered by document date, most recent first, undated last.
        """
        await self.get_person(person_id)
        query = select(MedicalDocumentModel).where(MedicalDocumentModel.person_id == person_id)

        text = (text or "").strip()
        if text:
            pattern = contains_pattern(text)
            query = query.where(
                or_(
                    MedicalDocumentModel.title.ilike(pattern, escape=LIKE_ESCAPE),
                    MedicalDocumentModel.description.ilike(pattern, escape=LIKE_ESCAPE),
                )
            )
        if classification:
            query = query.where(MedicalDocumentModel.classification == classification)
        if document_type:
            query = query.where(MedicalDocumentModel.document_type == document_type)
        if doctor_id:
            query = query.where(MedicalDocumentModel.doctor_id == doctor_id)
        if from_date:
            query = query.where(MedicalDocumentModel.document_date >= from_date)
        if to_date:
            query = query.where(MedicalDocumentModel.document_date <= to_date)

        result = await self.session.execute(
            query.order_by(
                MedicalDocumentModel.document_date.desc().nulls_last(),
                MedicalDocumentModel.created_at.desc(),
            )
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_documents(
        self,
        person_id: str,
        classification: Optional[str] = None,
        offset: int = 0,
        limit: int = 50,
    ) -> list[MedicalDocumentModel]:
        """Documents for a person, most recent document date first."""
        return await self.search_documents(
            person_id, classification=classification, offset=offset, limit=limit
        )

    async def get_document(self, document_id: str) -> MedicalDocumentModel:
        return await self._get(MedicalDocumentModel, document_id, "Document")

    async def save_document(
        self,
        person_id: str,
        uploaded_by: str,
        file_name: str,
        content_type: Optional[str],
        data: bytes,
        title: Optional[str] = None,
        description: Optional[str] = None,
        document_date: Optional[date] = None,
        classification: Optional[str] = None,
    ) -> MedicalDocumentModel:
        """
        Encrypt and record an uploaded medical file.

        Raises:
            NotFound: Unknown person
            InvalidUpload: Type or size not accepted
        """
        await self.get_person(person_id)
        validate_upload(
            content_type,
            len(data),
            settings.medical_allowed_types,
            settings.medical_max_upload_size,
        )

        relative_path = await self.store.save(MEDICAL_AREA, person_id, file_name, data)
        document = MedicalDocumentModel(
            person_id=person_id,
            uploaded_by=uploaded_by,
            document_type="file",
            file_name=file_name,
            file_path=relative_path,
            file_size=len(data),
            mime_type=content_type.lower(),
            is_encrypted=True,
            title=title or file_name,
            description=description,
            document_date=document_date,
            classification=classification,
        )
        self.session.add(document)
        try:
            await self.session.flush()
        except Exception:
            self.store.delete(relative_path)
            raise

        logger.info(f"Stored medical document {document.id} for person {person_id}")
        return document

    async def save_note(
        self,
        person_id: str,
        uploaded_by: str,
        title: str,
        description: str,
        document_date: Optional[date] = None,
        classification: Optional[str] = None,
    ) -> MedicalDocumentModel:
        """Record a free-text note; notes have no stored file."""
        await self.get_person(person_id)
        document = MedicalDocumentModel(
            person_id=person_id,
            uploaded_by=uploaded_by,
            document_type="note",
            is_encrypted=False,
            title=title,
            description=description,
            document_date=document_date,
            classification=classification,
        )
        self.session.add(document)
        await self.session.flush()
        return document

    async def update_document(
        self,
        document_id: str,
        title: Optional[str],
        description: Optional[str],
        document_date: Optional[date],
        classification: Optional[str],
        doctor_id: Optional[str] = None,
    ) -> MedicalDocumentModel:
        """Replace a document's descriptive fields. The stored file is untouched."""
        document = await self.get_document(document_id)
        await self._check_doctor(doctor_id)
        document.title = title
        document.description = description
        document.document_date = document_date
        document.classification = classification
        document.doctor_id = doctor_id
        await self.session.flush()
        return document

    async def read_document_content(self, document_id: str) -> tuple[MedicalDocumentModel, bytes]:
        """Metadata and decrypted bytes of a file document."""
        document = await self.get_document(document_id)
        if document.document_type != "file" or not document.file_path:
            raise InvalidUpload(
                f"Document {document_id} is a {document.document_type}",
                "This document has no file attached.",
            )
        data = await self.store.read(document.file_path, encrypted=document.is_encrypted)
        return document, data

    async def delete_document(self, document_id: str) -> Optional[str]:
        """
        Delete a document record along with its bill links.

        Returns:
            Storage path of the document's file for ``discard_file``, or None
            for a note
        """
        document = await self.get_document(document_id)
        file_path = document.file_path
        await self.session.execute(
            delete(MedicalBillDocumentModel).where(MedicalBillDocumentModel.document_id == document_id)
        )
        for model in (MedicalProviderPaymentModel, MedicalPrescriptionPickupModel):
            await self.session.execute(
                update(model).where(model.document_id == document_id).values(document_id=None)
            )
        await self.session.delete(document)
        await self.session.flush()
        logger.info(f"Deleted medical document {document_id}")
        return file_path

    def discard_file(self, file_path: str) -> None:
        if not self.store.delete(file_path):
            logger.warning(f"Stored medical file {file_path} was already missing")

    # ============ Billing providers ============

    async def list_providers(self, person_id: str) -> list[MedicalProviderModel]:
        await self.get_person(person_id)
        result = await self.session.execute(
            select(MedicalProviderModel)
            .where(MedicalProviderModel.person_id == person_id)
            .order_by(MedicalProviderModel.name)
        )
        return list(result.scalars().all())

    async def get_provider(self, provider_id: str) -> MedicalProviderModel:
        return await self._get(MedicalProviderModel, provider_id, "Provider")

    async def create_provider(
        self,
        person_id: str,
        name: str,
        notes: Optional[str] = None,
    ) -> MedicalProviderModel:
        await self.get_person(person_id)
        provider = MedicalProviderModel(person_id=person_id, name=name.strip(), notes=notes)
        self.session.add(provider)
        await self.session.flush()
        return provider

    async def update_provider(
        self,
        provider_id: str,
        name: str,
        notes: Optional[str] = None,
    ) -> MedicalProviderModel:
        provider = await self.get_provider(provider_id)
        provider.name = name.strip()
        provider.notes = notes
        await self.session.flush()
        return provider

    async def delete_provider(self, provider_id: str) -> None:
        """Delete a provider and its payments; its bills stay and lose the link."""
        provider = await self.get_provider(provider_id)
        await self.session.execute(
            update(MedicalBillModel)
            .where(MedicalBillModel.provider_id == provider_id)
            .values(provider_id=None)
        )
        await self.session.execute(
            delete(MedicalProviderPaymentModel).where(MedicalProviderPaymentModel.provider_id == provider_id)
        )
        await self.session.delete(provider)
        await self.session.flush()

    async def provider_balances(self, person_id: str) -> dict[str, ProviderBalance]:
        """Billed, paid and bill count per provider of a person."""
        providers = await self.list_providers(person_id)
        balances = {provider.id: ProviderBalance() for provider in providers}

        bills = await self.session.execute(
            select(MedicalBillModel.provider_id, MedicalBillModel.total_amount).where(
                MedicalBillModel.person_id == person_id,
                MedicalBillModel.provider_id.is_not(None),
            )
        )
        for provider_id, amount in bills.all():
            balance = balances[provider_id]
            balance.total_charged += amount
            balance.bill_count += 1

        for provider_id, amount in await self._payments_for_person(person_id):
            balances[provider_id].total_paid += amount
        return balances

    async def _payments_for_person(self, person_id: str) -> list[tuple[str, Decimal]]:
        result = await self.session.execute(
            select(MedicalProviderPaymentModel.provider_id, MedicalProviderPaymentModel.amount)
            .join(MedicalProviderModel, MedicalProviderModel.id == MedicalProviderPaymentModel.provider_id)
            .where(MedicalProviderModel.person_id == person_id)
        )
        return list(result.all())

    # ============ Provider payments ============

    async def list_provider_payments(self, provider_id: str) -> list[MedicalProviderPaymentModel]:
        await self.get_provider(provider_id)
        result = await self.session.execute(
            select(MedicalProviderPaymentModel)
            .where(MedicalProviderPaymentModel.provider_id == provider_id)
            .order_by(
                MedicalProviderPaymentModel.payment_date.desc().nulls_last(),
                MedicalProviderPaymentModel.created_at.desc(),
            )
        )
        return list(result.scalars().all())

    async def create_provider_payment(
        self,
        provider_id: str,
        amount: Decimal,
        payment_date: Optional[date] = None,
        description: Optional[str] = None,
        document_id: Optional[str] = None,
        source: str = "manual",
    ) -> MedicalProviderPaymentModel:
        """
        Record a payment to a provider.

        Raises:
            NotFound: Unknown provider, or a document belonging to someone else
        """
        provider = await self.get_provider(provider_id)
        await self._check_document(document_id, provider.person_id)
        payment = MedicalProviderPaymentModel(
            provider_id=provider_id,
            amount=amount,
            payment_date=payment_date,
            description=description,
            document_id=document_id,
            source=source,
        )
        self.session.add(payment)
        await self.session.flush()
        return payment

    async def delete_provider_payment(self, payment_id: str) -> None:
        payment = await self._get(MedicalProviderPaymentModel, payment_id, "Payment")
        await self.session.delete(payment)
        await self.session.flush()

    # ============ Bills ============

    async def list_bills(
        self,
        person_id: str,
        provider_id: Optional[str] = None,
    ) -> list[MedicalBillModel]:
        await self.get_person(person_id)
        query = select(MedicalBillModel).where(MedicalBillModel.person_id == person_id)
        if provider_id is not None:
            query = query.where(MedicalBillModel.provider_id == provider_id)
        result = await self.session.execute(
            query.order_by(MedicalBillModel.bill_date.desc(), MedicalBillModel.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_bill(self, bill_id: str) -> MedicalBillModel:
        return await self._get(MedicalBillModel, bill_id, "Bill")

    async def create_bill(
        self,
        person_id: str,
        total_amount: Decimal,
        summary: Optional[str] = None,
        category: Optional[str] = None,
        bill_date: Optional[date] = None,
        provider_id: Optional[str] = None,
        source: str = "manual",
        doctor_id: Optional[str] = None,
    ) -> MedicalBillModel:
        """
        Record a bill.

        Raises:
            NotFound: Unknown person or doctor, or a provider belonging to someone else
        """
        await self.get_person(person_id)
        await self._check_provider(provider_id, person_id)
        await self._check_doctor(doctor_id)

        bill = MedicalBillModel(
            person_id=person_id,
            provider_id=provider_id,
            doctor_id=doctor_id,
            total_amount=total_amount,
            summary=summary,
            category=category,
            bill_date=bill_date,
            source=source,
        )
        self.session.add(bill)
        await self.session.flush()
        return bill

    async def update_bill(
        self,
        bill_id: str,
        total_amount: Decimal,
        summary: Optional[str] = None,
        category: Optional[str] = None,
        bill_date: Optional[date] = None,
        provider_id: Optional[str] = None,
        doctor_id: Optional[str] = None,
    ) -> MedicalBillModel:
        bill = await self.get_bill(bill_id)
        await self._check_provider(provider_id, bill.person_id)
        await self._check_doctor(doctor_id)
        bill.total_amount = total_amount
        bill.summary = summary
        bill.category = category
        bill.bill_date = bill_date
        bill.provider_id = provider_id
        bill.doctor_id = doctor_id
        await self.session.flush()
        return bill

    async def delete_bill(self, bill_id: str) -> None:
        """Delete a bill together with its charges and document links."""
        bill = await self.get_bill(bill_id)
        await self.session.execute(
            delete(MedicalBillChargeModel).where(MedicalBillChargeModel.bill_id == bill_id)
        )
        await self.session.execute(
            delete(MedicalBillDocumentModel).where(MedicalBillDocumentModel.bill_id == bill_id)
        )
        await self.session.delete(bill)
        await self.session.flush()

    async def link_document(self, bill_id: str, document_id: str) -> bool:
        """
        Attach a document to a bill. Linking twice is a no-op.

        Returns:
            True if a new link was made

        Raises:
            NotFound: Unknown bill, or a document belonging to someone else
        """
        bill = await self.get_bill(bill_id)
        await self._check_document(document_id, bill.person_id)
        if await self.session.get(MedicalBillDocumentModel, (bill_id, document_id)) is not None:
            return False
        self.session.add(MedicalBillDocumentModel(bill_id=bill_id, document_id=document_id))
        await self.session.flush()
        return True

    async def unlink_document(self, bill_id: str, document_id: str) -> bool:
        """Detach a document from a bill; False if they were not linked."""
        await self.get_bill(bill_id)
        result = await self.session.execute(
            delete(MedicalBillDocumentModel).where(
                MedicalBillDocumentModel.bill_id == bill_id,
                MedicalBillDocumentModel.document_id == document_id,
            )
        )
        return result.rowcount > 0

    async def bill_document_ids(self, bill_ids: list[str]) -> dict[str, list[str]]:
        """Linked document ids for each of the given bills."""
        linked: dict[str, list[str]] = defaultdict(list)
        if not bill_ids:
            return linked
        result = await self.session.execute(
            select(MedicalBillDocumentModel.bill_id, MedicalBillDocumentModel.document_id)
            .where(MedicalBillDocumentModel.bill_id.in_(bill_ids))
            .order_by(MedicalBillDocumentModel.document_id)
        )
        for bill_id, document_id in result.all():
            linked[bill_id].append(document_id)
        return linked

    async def get_bill_summary(self, person_id: str) -> BillSummary:
        """
        Totals billed and paid for a person, with bills broken down by year
        and by provider.

        Bills without a date count toward the year they were recorded.
        """
        await self.get_person(person_id)
        result = await self.session.execute(
            select(MedicalBillModel, MedicalProviderModel.name)
            .outerjoin(MedicalProviderModel, MedicalProviderModel.id == MedicalBillModel.provider_id)
            .where(MedicalBillModel.person_id == person_id)
        )

        summary = BillSummary()
        years: dict[int, YearTotal] = {}
        providers: dict[str, ProviderTotal] = {}
        for bill, provider_name in result.all():
            summary.total_charged += bill.total_amount

            year = (bill.bill_date or bill.created_at).year
            year_total = years.setdefault(year, YearTotal(year, ZERO, 0))
            year_total.total += bill.total_amount
            year_total.count += 1

            name = provider_name or UNASSIGNED_PROVIDER
            provider_total = providers.setdefault(name, ProviderTotal(name, ZERO, 0))
            provider_total.total += bill.total_amount
            provider_total.count += 1

        summary.total_paid = sum(
            (amount for _, amount in await self._payments_for_person(person_id)), ZERO
        )
        summary.by_year = sorted(years.values(), key=lambda t: t.year, reverse=True)
        summary.by_provider = sorted(providers.values(), key=lambda t: t.total, reverse=True)
        return summary

    # ============ Bill charges ============

    async def list_charges(self, bill_id: str) -> list[MedicalBillChargeModel]:
        await self.get_bill(bill_id)
        result = await self.session.execute(
            select(MedicalBillChargeModel)
            .where(MedicalBillChargeModel.bill_id == bill_id)
            .order_by(MedicalBillChargeModel.created_at)
        )
        return list(result.scalars().all())

    async def create_charge(
        self,
        bill_id: str,
        description: str,
        amount: Decimal,
        source: str = "manual",
    ) -> MedicalBillChargeModel:
        await self.get_bill(bill_id)
        charge = MedicalBillChargeModel(
            bill_id=bill_id,
            description=description.strip(),
            amount=amount,
            source=source,
        )
        self.session.add(charge)
        await self.session.flush()
        return charge

    async def delete_charge(self, charge_id: str) -> None:
        charge = await self._get(MedicalBillChargeModel, charge_id, "Charge")
        await self.session.delete(charge)
        await self.session.flush()

    # ============ Prescriptions ============

    async def list_prescriptions(
        self,
        person_id: str,
        active_only: bool = False,
    ) -> list[MedicalPrescriptionModel]:
        """Prescriptions for a person, active ones first."""
        await self.get_person(person_id)
        query = select(MedicalPrescriptionModel).where(MedicalPrescriptionModel.person_id == person_id)
        if active_only:
            query = query.where(MedicalPrescriptionModel.is_active.is_(True))
        result = await self.session.execute(
            query.order_by(
                MedicalPrescriptionModel.is_active.desc(),
                MedicalPrescriptionModel.medication_name,
            )
        )
        return list(result.scalars().all())

    async def get_prescription(self, prescription_id: str) -> MedicalPrescriptionModel:
        return await self._get(MedicalPrescriptionModel, prescription_id, "Prescription")

    async def create_prescription(
        self,
        person_id: str,
        medication_name: str,
        dosage: Optional[str] = None,
        frequency: Optional[str] = None,
        start_date: Optional[date] = None,
        notes: Optional[str] = None,
        rx_number: Optional[str] = None,
        doctor_id: Optional[str] = None,
    ) -> MedicalPrescriptionModel:
        await self.get_person(person_id)
        await self._check_doctor(doctor_id)
        prescription = MedicalPrescriptionModel(
            person_id=person_id,
            doctor_id=doctor_id,
            medication_name=medication_name.strip(),
            dosage=dosage,
            frequency=frequency,
            start_date=start_date,
            notes=notes,
            rx_number=rx_number,
            is_active=True,
        )
        self.session.add(prescription)
        await self.session.flush()
        return prescription

    async def update_prescription(
        self,
        prescription_id: str,
        medication_name: str,
        dosage: Optional[str] = None,
        frequency: Optional[str] = None,
        doctor_id: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        notes: Optional[str] = None,
        is_active: bool = True,
        rx_number: Optional[str] = None,
    ) -> MedicalPrescriptionModel:
        prescription = await self.get_prescription(prescription_id)
        await self._check_doctor(doctor_id)
        prescription.medication_name = medication_name.strip()
        prescription.dosage = dosage
        prescription.frequency = frequency
        prescription.doctor_id = doctor_id
        prescription.start_date = start_date
        prescription.end_date = end_date
        prescription.notes = notes
        prescription.is_active = is_active
        prescription.rx_number = rx_number
        await self.session.flush()
        return prescription

    async def deactivate_prescription(
        self,
        prescription_id: str,
        end_date: Optional[date] = None,
    ) -> MedicalPrescriptionModel:
        """Mark a prescription inactive, ending it today unless a date is given."""
        prescription = await self.get_prescription(prescription_id)
        prescription.is_active = False
        prescription.end_date = end_date or utcnow().date()
        await self.session.flush()
        return prescription

    async def delete_prescription(self, prescription_id: str) -> None:
        prescription = await self.get_prescription(prescription_id)
        await self.session.execute(
            delete(MedicalPrescriptionPickupModel).where(
                MedicalPrescriptionPickupModel.prescription_id == prescription_id
            )
        )
        await self.session.delete(prescription)
        await self.session.flush()

    # ============ Pickups ============

    async def list_pickups(self, prescription_id: str) -> list[MedicalPrescriptionPickupModel]:
        """Pickups of a prescription, latest first."""
        await self.get_prescription(prescription_id)
        result = await self.session.execute(
            select(MedicalPrescriptionPickupModel)
            .where(MedicalPrescriptionPickupModel.prescription_id == prescription_id)
            .order_by(
                MedicalPrescriptionPickupModel.pickup_date.desc(),
                MedicalPrescriptionPickupModel.created_at.desc(),
            )
        )
        return list(result.scalars().all())

    async def create_pickup(
        self,
        prescription_id: str,
        pickup_date: date,
        quantity: Optional[str] = None,
        pharmacy: Optional[str] = None,
        cost: Optional[Decimal] = None,
        notes: Optional[str] = None,
        document_id: Optional[str] = None,
    ) -> MedicalPrescriptionPickupModel:
        prescription = await self.get_prescription(prescription_id)
        await self._check_document(document_id, prescription.person_id)
        pickup = MedicalPrescriptionPickupModel(
            prescription_id=prescription_id,
            pickup_date=pickup_date,
            quantity=quantity,
            pharmacy=pharmacy,
            cost=cost,
            notes=notes,
            document_id=document_id,
        )
        self.session.add(pickup)
        await self.session.flush()
        return pickup

    async def delete_pickup(self, pickup_id: str) -> None:
        pickup = await self._get(MedicalPrescriptionPickupModel, pickup_id, "Pickup")
        await self.session.delete(pickup)
        await self.session.flush()

    async def last_pickup_dates(self, prescription_ids: list[str]) -> dict[str, date]:
        """Most recent pickup date for each prescription that has one."""
        if not prescription_ids:
            return {}
        result = await self.session.execute(
            select(
                MedicalPrescriptionPickupModel.prescription_id,
                MedicalPrescriptionPickupModel.pickup_date,
            ).where(MedicalPrescriptionPickupModel.prescription_id.in_(prescription_ids))
        )
        latest: dict[str, date] = {}
        for prescription_id, pickup_date in result.all():
            if prescription_id not in latest or pickup_date > latest[prescription_id]:
                latest[prescription_id] = pickup_date
        return latest
