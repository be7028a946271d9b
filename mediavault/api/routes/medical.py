"""
Medical records endpoints. Every route requires the ``medical`` role.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Optional

from fastapi import APIRouter, BackgroundTasks, File, Form, Query, Response, UploadFile, status
from pydantic import BaseModel, Field

from mediavault.api.deps import MedicalDep, SessionDep
from mediavault.api.routes.media import read_upload
from mediavault.config import settings
from mediavault.core.exceptions import NotFound
from mediavault.db.models import (
    MedicalBillChargeModel,
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
from mediavault.models.schemas import SuccessResponse
from mediavault.services.medical_service import BillSummary, MedicalService, ProviderBalance

router = APIRouter()

Amount = Annotated[Decimal, Field(ge=0, max_digits=12, decimal_places=2)]


# ============ Request Models ============

class CreatePersonRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    dateOfBirth: Optional[date] = None
    notes: Optional[str] = None


class DoctorRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    specialty: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
    notes: Optional[str] = None


class CreateConditionRequest(BaseModel):
    personId: str
    name: str = Field(..., min_length=1, max_length=255)
    diagnosedDate: Optional[date] = None
    notes: Optional[str] = None


class UpdateConditionRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    diagnosedDate: Optional[date] = None
    notes: Optional[str] = None
    isActive: bool = True


class CreateNoteRequest(BaseModel):
    personId: str
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    documentDate: Optional[date] = None
    classification: Optional[str] = None


class UpdateDocumentRequest(BaseModel):
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    documentDate: Optional[date] = None
    classification: Optional[str] = None
    doctorId: Optional[str] = None


class CreateProviderRequest(BaseModel):
    personId: str
    name: str = Field(..., min_length=1, max_length=255)
    notes: Optional[str] = None


class UpdateProviderRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    notes: Optional[str] = None


class CreatePaymentRequest(BaseModel):
    amount: Amount
    paymentDate: Optional[date] = None
    description: Optional[str] = None
    documentId: Optional[str] = None


class CreateBillRequest(BaseModel):
    personId: str
    totalAmount: Amount
    summary: Optional[str] = None
    category: Optional[str] = None
    billDate: Optional[date] = None
    providerId: Optional[str] = None
    doctorId: Optional[str] = None


class UpdateBillRequest(BaseModel):
    totalAmount: Amount
    summary: Optional[str] = None
    category: Optional[str] = None
    billDate: Optional[date] = None
    providerId: Optional[str] = None
    doctorId: Optional[str] = None


class LinkDocumentRequest(BaseModel):
    documentId: str


class CreateChargeRequest(BaseModel):
    description: str = Field(..., min_length=1, max_length=500)
    amount: Amount


class CreatePrescriptionRequest(BaseModel):
    personId: str
    medicationName: str = Field(..., min_length=1, max_length=255)
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    startDate: Optional[date] = None
    notes: Optional[str] = None
    rxNumber: Optional[str] = None
    doctorId: Optional[str] = None


class UpdatePrescriptionRequest(BaseModel):
    medicationName: str = Field(..., min_length=1, max_length=255)
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    doctorId: Optional[str] = None
    startDate: Optional[date] = None
    endDate: Optional[date] = None
    notes: Optional[str] = None
    isActive: bool = True
    rxNumber: Optional[str] = None


class DeactivatePrescriptionRequest(BaseModel):
    endDate: Optional[date] = None


class CreatePickupRequest(BaseModel):
    pickupDate: date
    quantity: Optional[str] = Field(None, max_length=50)
    pharmacy: Optional[str] = Field(None, max_length=255)
    cost: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    notes: Optional[str] = None
    documentId: Optional[str] = None


# ============ Response Models ============

class PersonResponse(BaseModel):
    id: str
    name: str
    dateOfBirth: Optional[date]
    notes: Optional[str]
    createdAt: datetime


class DoctorResponse(BaseModel):
    id: str
    name: str
    specialty: Optional[str]
    phone: Optional[str]
    address: Optional[str]
    notes: Optional[str]


class ConditionResponse(BaseModel):
    id: str
    personId: str
    name: str
    diagnosedDate: Optional[date]
    notes: Optional[str]
    isActive: bool


class DocumentResponse(BaseModel):
    id: str
    personId: str
    uploadedBy: Optional[str]
    documentType: str
    fileName: Optional[str]
    fileSize: Optional[int]
    mimeType: Optional[str]
    title: Optional[str]
    description: Optional[str]
    documentDate: Optional[date]
    classification: Optional[str]
    doctorId: Optional[str]
    createdAt: datetime


class ProviderResponse(BaseModel):
    id: str
    personId: str
    name: str
    notes: Optional[str]
    totalCharged: float
    totalPaid: float
    billCount: int
    balance: float


class PaymentResponse(BaseModel):
    id: str
    providerId: str
    documentId: Optional[str]
    amount: float
    paymentDate: Optional[date]
    description: Optional[str]
    source: str
    createdAt: datetime


class BillResponse(BaseModel):
    id: str
    personId: str
    providerId: Optional[str]
    doctorId: Optional[str]
    totalAmount: float
    summary: Optional[str]
    category: Optional[str]
    billDate: Optional[date]
    source: str
    documentIds: list[str]


class ChargeResponse(BaseModel):
    id: str
    billId: str
    description: str
    amount: float
    source: str
    createdAt: datetime


class YearTotalResponse(BaseModel):
    year: int
    total: float
    count: int


class ProviderTotalResponse(BaseModel):
    providerName: str
    total: float
    count: int


class BillSummaryResponse(BaseModel):
    totalCharged: float
    totalPaid: float
    totalDue: float
    byYear: list[YearTotalResponse]
    byProvider: list[ProviderTotalResponse]


class PrescriptionResponse(BaseModel):
    id: str
    personId: str
    doctorId: Optional[str]
    medicationName: str
    dosage: Optional[str]
    frequency: Optional[str]
    rxNumber: Optional[str]
    isActive: bool
    startDate: Optional[date]
    endDate: Optional[date]
    notes: Optional[str]
    lastPickupDate: Optional[date]


class PickupResponse(BaseModel):
    id: str
    prescriptionId: str
    documentId: Optional[str]
    pickupDate: date
    quantity: Optional[str]
    pharmacy: Optional[str]
    cost: Optional[float]
    notes: Optional[str]


def format_person(person: MedicalPersonModel) -> PersonResponse:
    return PersonResponse(
        id=person.id,
        name=person.name,
        dateOfBirth=person.date_of_birth,
        notes=person.notes,
        createdAt=person.created_at,
    )


def format_doctor(doctor: MedicalDoctorModel) -> DoctorResponse:
    return DoctorResponse(
        id=doctor.id,
        name=doctor.name,
        specialty=doctor.specialty,
        phone=doctor.phone,
        address=doctor.address,
        notes=doctor.notes,
    )


def format_condition(condition: MedicalConditionModel) -> ConditionResponse:
    return ConditionResponse(
        id=condition.id,
        personId=condition.person_id,
        name=condition.name,
        diagnosedDate=condition.diagnosed_date,
        notes=condition.notes,
        isActive=condition.is_active,
    )


def format_document(doc: MedicalDocumentModel) -> DocumentResponse:
    return DocumentResponse(
        id=doc.id,
        personId=doc.person_id,
        uploadedBy=doc.uploaded_by,
        documentType=doc.document_type,
        fileName=doc.file_name,
        fileSize=doc.file_size,
        mimeType=doc.mime_type,
        title=doc.title,
        description=doc.description,
        documentDate=doc.document_date,
        classification=doc.classification,
        doctorId=doc.doctor_id,
        createdAt=doc.created_at,
    )


def format_provider(
    provider: MedicalProviderModel,
    balance: Optional[ProviderBalance] = None,
) -> ProviderResponse:
    balance = balance or ProviderBalance()
    return ProviderResponse(
        id=provider.id,
        personId=provider.person_id,
        name=provider.name,
        notes=provider.notes,
        totalCharged=float(balance.total_charged),
        totalPaid=float(balance.total_paid),
        billCount=balance.bill_count,
        balance=float(balance.balance),
    )


def format_payment(payment: MedicalProviderPaymentModel) -> PaymentResponse:
    return PaymentResponse(
        id=payment.id,
        providerId=payment.provider_id,
        documentId=payment.document_id,
        amount=float(payment.amount),
        paymentDate=payment.payment_date,
        description=payment.description,
        source=payment.source,
        createdAt=payment.created_at,
    )


def format_bill(bill: MedicalBillModel, document_ids: Optional[list[str]] = None) -> BillResponse:
    return BillResponse(
        id=bill.id,
        personId=bill.person_id,
        providerId=bill.provider_id,
        doctorId=bill.doctor_id,
        totalAmount=float(bill.total_amount),
        summary=bill.summary,
        category=bill.category,
        billDate=bill.bill_date,
        source=bill.source,
        documentIds=document_ids or [],
    )


def format_charge(charge: MedicalBillChargeModel) -> ChargeResponse:
    return ChargeResponse(
        id=charge.id,
        billId=charge.bill_id,
        description=charge.description,
        amount=float(charge.amount),
        source=charge.source,
        createdAt=charge.created_at,
    )


def format_summary(summary: BillSummary) -> BillSummaryResponse:
    return BillSummaryResponse(
        totalCharged=float(summary.total_charged),
        totalPaid=float(summary.total_paid),
        totalDue=float(summary.total_due),
        byYear=[
            YearTotalResponse(year=t.year, total=float(t.total), count=t.count)
            for t in summary.by_year
        ],
        byProvider=[
            ProviderTotalResponse(providerName=t.provider_name, total=float(t.total), count=t.count)
            for t in summary.by_provider
        ],
    )


def format_prescription(
    rx: MedicalPrescriptionModel,
    last_pickup: Optional[date] = None,
) -> PrescriptionResponse:
    return PrescriptionResponse(
        id=rx.id,
        personId=rx.person_id,
        doctorId=rx.doctor_id,
        medicationName=rx.medication_name,
        dosage=rx.dosage,
        frequency=rx.frequency,
        rxNumber=rx.rx_number,
        isActive=rx.is_active,
        startDate=rx.start_date,
        endDate=rx.end_date,
        notes=rx.notes,
        lastPickupDate=last_pickup,
    )


def format_pickup(pickup: MedicalPrescriptionPickupModel) -> PickupResponse:
    return PickupResponse(
        id=pickup.id,
        prescriptionId=pickup.prescription_id,
        documentId=pickup.document_id,
        pickupDate=pickup.pickup_date,
        quantity=pickup.quantity,
        pharmacy=pickup.pharmacy,
        cost=float(pickup.cost) if pickup.cost is not None else None,
        notes=pickup.notes,
    )


async def bill_response(service: MedicalService, bill: MedicalBillModel) -> BillResponse:
    linked = await service.bill_document_ids([bill.id])
    return format_bill(bill, linked.get(bill.id))


async def provider_response(service: MedicalService, provider: MedicalProviderModel) -> ProviderResponse:
    balances = await service.provider_balances(provider.person_id)
    return format_provider(provider, balances.get(provider.id))


# ============ People ============

@router.get("/people", response_model=list[PersonResponse])
async def list_people(context: MedicalDep, session: SessionDep):
    people = await MedicalService(session).list_people()
    return [format_person(p) for p in people]


@router.post("/people", response_model=PersonResponse, status_code=status.HTTP_201_CREATED)
async def create_person(request: CreatePersonRequest, context: MedicalDep, session: SessionDep):
    person = await MedicalService(session).create_person(
        request.name, request.dateOfBirth, request.notes
    )
    return format_person(person)


# ============ Doctors ============

@router.get("/doctors", response_model=list[DoctorResponse])
async def list_doctors(context: MedicalDep, session: SessionDep):
    doctors = await MedicalService(session).list_doctors()
    return [format_doctor(d) for d in doctors]


@router.post("/doctors", response_model=DoctorResponse, status_code=status.HTTP_201_CREATED)
async def create_doctor(request: DoctorRequest, context: MedicalDep, session: SessionDep):
    doctor = await MedicalService(session).create_doctor(**request.model_dump())
    return format_doctor(doctor)


@router.put("/doctors/{doctor_id}", response_model=DoctorResponse)
async def update_doctor(doctor_id: str, request: DoctorRequest, context: MedicalDep, session: SessionDep):
    doctor = await MedicalService(session).update_doctor(doctor_id, **request.model_dump())
    return format_doctor(doctor)


@router.delete("/doctors/{doctor_id}", response_model=SuccessResponse)
async def delete_doctor(doctor_id: str, context: MedicalDep, session: SessionDep):
    await MedicalService(session).delete_doctor(doctor_id)
    return SuccessResponse(message="Doctor deleted.")


# ============ Conditions ============

@router.get("/conditions", response_model=list[ConditionResponse])
async def list_conditions(
    personId: str,
    context: MedicalDep,
    session: SessionDep,
    activeOnly: bool = False,
):
    conditions = await MedicalService(session).list_conditions(personId, activeOnly)
    return [format_condition(c) for c in conditions]


@router.post("/conditions", response_model=ConditionResponse, status_code=status.HTTP_201_CREATED)
async def create_condition(request: CreateConditionRequest, context: MedicalDep, session: SessionDep):
    condition = await MedicalService(session).create_condition(
        request.personId, request.name, request.diagnosedDate, request.notes
    )
    return format_condition(condition)


@router.put("/conditions/{condition_id}", response_model=ConditionResponse)
async def update_condition(
    condition_id: str,
    request: UpdateConditionRequest,
    context: MedicalDep,
    session: SessionDep,
):
    condition = await MedicalService(session).update_condition(
        condition_id,
        name=request.name,
        diagnosed_date=request.diagnosedDate,
        notes=request.notes,
        is_active=request.isActive,
    )
    return format_condition(condition)


@router.delete("/conditions/{condition_id}", response_model=SuccessResponse)
async def delete_condition(condition_id: str, context: MedicalDep, session: SessionDep):
    await MedicalService(session).delete_condition(condition_id)
    return SuccessResponse(message="Condition deleted.")


# ============ Documents ============

@router.get("/documents", response_model=list[DocumentResponse])
async def list_documents(
    personId: str,
    context: MedicalDep,
    session: SessionDep,
    classification: Optional[str] = None,
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    documents = await MedicalService(session).list_documents(personId, classification, offset, limit)
    return [format_document(d) for d in documents]


@router.get("/documents/search", response_model=list[DocumentResponse])
async def search_documents(
    personId: str,
    context: MedicalDep,
    session: SessionDep,
    text: Optional[str] = None,
    classification: Optional[str] = None,
    documentType: Optional[str] = None,
    doctorId: Optional[str] = None,
    fromDate: Optional[date] = None,
    toDate: Optional[date] = None,
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    """Documents for a person filtered by text, type, doctor and date range."""
    documents = await MedicalService(session).search_documents(
        personId,
        text=text,
        classification=classification,
        document_type=documentType,
        doctor_id=doctorId,
        from_date=fromDate,
        to_date=toDate,
        offset=offset,
        limit=limit,
    )
    return [format_document(d) for d in documents]


@router.post("/documents/upload", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
async def upload_document(
    context: MedicalDep,
    session: SessionDep,
    personId: str = Form(...),
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    documentDate: Optional[date] = Form(None),
    classification: Optional[str] = Form(None),
):
    """Upload a PDF or image; it is stored encrypted."""
    data = await read_upload(file, settings.medical_max_upload_size)
    document = await MedicalService(session).save_document(
        person_id=personId,
        uploaded_by=context.user_id,
        file_name=file.filename or "document",
        content_type=file.content_type,
        data=data,
        title=title,
        description=description,
        document_date=documentDate,
        classification=classification,
    )
    return format_document(document)


@router.post("/documents/note", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
async def create_note(request: CreateNoteRequest, context: MedicalDep, session: SessionDep):
    document = await MedicalService(session).save_note(
        person_id=request.personId,
        uploaded_by=context.user_id,
        title=request.title,
        description=request.description,
        document_date=request.documentDate,
        classification=request.classification,
    )
    return format_document(document)


@router.get("/documents/{document_id}", response_model=DocumentResponse)
async def get_document(document_id: str, context: MedicalDep, session: SessionDep):
    document = await MedicalService(session).get_document(document_id)
    return format_document(document)


@router.put("/documents/{document_id}", response_model=DocumentResponse)
async def update_document(
    document_id: str,
    request: UpdateDocumentRequest,
    context: MedicalDep,
    session: SessionDep,
):
    document = await MedicalService(session).update_document(
        document_id,
        title=request.title,
        description=request.description,
        document_date=request.documentDate,
        classification=request.classification,
        doctor_id=request.doctorId,
    )
    return format_document(document)


@router.get("/documents/{document_id}/download")
async def download_document(document_id: str, context: MedicalDep, session: SessionDep):
    """Decrypted file contents."""
    document, data = await MedicalService(session).read_document_content(document_id)
    return Response(
        content=data,
        media_type=document.mime_type or "application/octet-stream",
        headers={"Content-Disposition": f'inline; filename="{document.file_name}"'},
    )


@router.delete("/documents/{document_id}", response_model=SuccessResponse)
async def delete_document(
    document_id: str,
    context: MedicalDep,
    session: SessionDep,
    background_tasks: BackgroundTasks,
):
    """Delete a document; its encrypted file is removed after the delete commits."""
    service = MedicalService(session)
    file_path = await service.delete_document(document_id)
    await session.commit()
    if file_path:
        background_tasks.add_task(service.discard_file, file_path)
    return SuccessResponse(message="Document deleted.")


# ============ Billing providers ============

@router.get("/providers", response_model=list[ProviderResponse])
async def list_providers(personId: str, context: MedicalDep, session: SessionDep):
    """Providers for a person with what they billed and were paid."""
    service = MedicalService(session)
    providers = await service.list_providers(personId)
    balances = await service.provider_balances(personId)
    return [format_provider(p, balances.get(p.id)) for p in providers]


@router.post("/providers", response_model=ProviderResponse, status_code=status.HTTP_201_CREATED)
async def create_provider(request: CreateProviderRequest, context: MedicalDep, session: SessionDep):
    provider = await MedicalService(session).create_provider(
        request.personId, request.name, request.notes
    )
    return format_provider(provider)


@router.put("/providers/{provider_id}", response_model=ProviderResponse)
async def update_provider(
    provider_id: str,
    request: UpdateProviderRequest,
    context: MedicalDep,
    session: SessionDep,
):
    service = MedicalService(session)
    provider = await service.update_provider(provider_id, request.name, request.notes)
    return await provider_response(service, provider)


@router.delete("/providers/{provider_id}", response_model=SuccessResponse)
async def delete_provider(provider_id: str, context: MedicalDep, session: SessionDep):
    await MedicalService(session).delete_provider(provider_id)
    return SuccessResponse(message="Provider deleted.")


@router.get("/providers/{provider_id}/payments", response_model=list[PaymentResponse])
async def list_provider_payments(provider_id: str, context: MedicalDep, session: SessionDep):
    payments = await MedicalService(session).list_provider_payments(provider_id)
    return [format_payment(p) for p in payments]


@router.post(
    "/providers/{provider_id}/payments",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_provider_payment(
    provider_id: str,
    request: CreatePaymentRequest,
    context: MedicalDep,
    session: SessionDep,
):
    payment = await MedicalService(session).create_provider_payment(
        provider_id,
        amount=request.amount,
        payment_date=request.paymentDate,
        description=request.description,
        document_id=request.documentId,
    )
    return format_payment(payment)


@router.delete("/provider-payments/{payment_id}", response_model=SuccessResponse)
async def delete_provider_payment(payment_id: str, context: MedicalDep, session: SessionDep):
    await MedicalService(session).delete_provider_payment(payment_id)
    return SuccessResponse(message="Payment deleted.")


# ============ Bills ============

@router.get("/bills", response_model=list[BillResponse])
async def list_bills(
    personId: str,
    context: MedicalDep,
    session: SessionDep,
    providerId: Optional[str] = None,
):
    service = MedicalService(session)
    bills = await service.list_bills(personId, providerId)
    linked = await service.bill_document_ids([b.id for b in bills])
    return [format_bill(b, linked.get(b.id)) for b in bills]


@router.get("/bills/summary", response_model=BillSummaryResponse)
async def get_bill_summary(personId: str, context: MedicalDep, session: SessionDep):
    """Billed and paid totals for a person, by year and by provider."""
    summary = await MedicalService(session).get_bill_summary(personId)
    return format_summary(summary)


@router.post("/bills", response_model=BillResponse, status_code=status.HTTP_201_CREATED)
async def create_bill(request: CreateBillRequest, context: MedicalDep, session: SessionDep):
    bill = await MedicalService(session).create_bill(
        person_id=request.personId,
        total_amount=request.totalAmount,
        summary=request.summary,
        category=request.category,
        bill_date=request.billDate,
        provider_id=request.providerId,
        doctor_id=request.doctorId,
    )
    return format_bill(bill)


@router.put("/bills/{bill_id}", response_model=BillResponse)
async def update_bill(bill_id: str, request: UpdateBillRequest, context: MedicalDep, session: SessionDep):
    service = MedicalService(session)
    bill = await service.update_bill(
        bill_id,
        total_amount=request.totalAmount,
        summary=request.summary,
        category=request.category,
        bill_date=request.billDate,
        provider_id=request.providerId,
        doctor_id=request.doctorId,
    )
    return await bill_response(service, bill)


@router.delete("/bills/{bill_id}", response_model=SuccessResponse)
async def delete_bill(bill_id: str, context: MedicalDep, session: SessionDep):
    await MedicalService(session).delete_bill(bill_id)
    return SuccessResponse(message="Bill deleted.")


@router.post("/bills/{bill_id}/documents", response_model=BillResponse)
async def link_bill_document(
    bill_id: str,
    request: LinkDocumentRequest,
    context: MedicalDep,
    session: SessionDep,
):
    service = MedicalService(session)
    await service.link_document(bill_id, request.documentId)
    return await bill_response(service, await service.get_bill(bill_id))


@router.delete("/bills/{bill_id}/documents/{document_id}", response_model=SuccessResponse)
async def unlink_bill_document(bill_id: str, document_id: str, context: MedicalDep, session: SessionDep):
    if not await MedicalService(session).unlink_document(bill_id, document_id):
        raise NotFound(
            f"Document {document_id} is not linked to bill {bill_id}",
            "Document is not linked to this bill.",
        )
    return SuccessResponse(message="Document unlinked.")


@router.get("/bills/{bill_id}/charges", response_model=list[ChargeResponse])
async def list_charges(bill_id: str, context: MedicalDep, session: SessionDep):
    charges = await MedicalService(session).list_charges(bill_id)
    return [format_charge(c) for c in charges]


@router.post("/bills/{bill_id}/charges", response_model=ChargeResponse, status_code=status.HTTP_201_CREATED)
async def create_charge(
    bill_id: str,
    request: CreateChargeRequest,
    context: MedicalDep,
    session: SessionDep,
):
    charge = await MedicalService(session).create_charge(bill_id, request.description, request.amount)
    return format_charge(charge)


@router.delete("/bill-charges/{charge_id}", response_model=SuccessResponse)
async def delete_charge(charge_id: str, context: MedicalDep, session: SessionDep):
    await MedicalService(session).delete_charge(charge_id)
    return SuccessResponse(message="Charge deleted.")


# ============ Prescriptions ============

@router.get("/prescriptions", response_model=list[PrescriptionResponse])
async def list_prescriptions(
    personId: str,
    context: MedicalDep,
    session: SessionDep,
    activeOnly: bool = False,
):
    service = MedicalService(session)
    prescriptions = await service.list_prescriptions(personId, activeOnly)
    last_pickups = await service.last_pickup_dates([rx.id for rx in prescriptions])
    return [format_prescription(rx, last_pickups.get(rx.id)) for rx in prescriptions]


@router.post("/prescriptions", response_model=PrescriptionResponse, status_code=status.HTTP_201_CREATED)
async def create_prescription(
    request: CreatePrescriptionRequest,
    context: MedicalDep,
    session: SessionDep,
):
    prescription = await MedicalService(session).create_prescription(
        person_id=request.personId,
        medication_name=request.medicationName,
        dosage=request.dosage,
        frequency=request.frequency,
        start_date=request.startDate,
        notes=request.notes,
        rx_number=request.rxNumber,
        doctor_id=request.doctorId,
    )
    return format_prescription(prescription)


@router.put("/prescriptions/{prescription_id}", response_model=PrescriptionResponse)
async def update_prescription(
    prescription_id: str,
    request: UpdatePrescriptionRequest,
    context: MedicalDep,
    session: SessionDep,
):
    service = MedicalService(session)
    prescription = await service.update_prescription(
        prescription_id,
        medication_name=request.medicationName,
        dosage=request.dosage,
        frequency=request.frequency,
        doctor_id=request.doctorId,
        start_date=request.startDate,
        end_date=request.endDate,
        notes=request.notes,
        is_active=request.isActive,
        rx_number=request.rxNumber,
    )
    last_pickups = await service.last_pickup_dates([prescription.id])
    return format_prescription(prescription, last_pickups.get(prescription.id))


@router.put("/prescriptions/{prescription_id}/deactivate", response_model=PrescriptionResponse)
async def deactivate_prescription(
    prescription_id: str,
    request: DeactivatePrescriptionRequest,
    context: MedicalDep,
    session: SessionDep,
):
    prescription = await MedicalService(session).deactivate_prescription(
        prescription_id, request.endDate
    )
    return format_prescription(prescription)


@router.delete("/prescriptions/{prescription_id}", response_model=SuccessResponse)
async def delete_prescription(prescription_id: str, context: MedicalDep, session: SessionDep):
    await MedicalService(session).delete_prescription(prescription_id)
    return SuccessResponse(message="Prescription deleted.")


@router.get("/prescriptions/{prescription_id}/pickups", response_model=list[PickupResponse])
async def list_pickups(prescription_id: str, context: MedicalDep, session: SessionDep):
    pickups = await MedicalService(session).list_pickups(prescription_id)
    return [format_pickup(p) for p in pickups]


@router.post(
    "/prescriptions/{prescription_id}/pickups",
    response_model=PickupResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_pickup(
    prescription_id: str,
    request: CreatePickupRequest,
    context: MedicalDep,
    session: SessionDep,
):
    pickup = await MedicalService(session).create_pickup(
        prescription_id,
        pickup_date=request.pickupDate,
        quantity=request.quantity,
        pharmacy=request.pharmacy,
        cost=request.cost,
        notes=request.notes,
        document_id=request.documentId,
    )
    return format_pickup(pickup)


@router.delete("/pickups/{pickup_id}", response_model=SuccessResponse)
async def delete_pickup(pickup_id: str, context: MedicalDep, session: SessionDep):
    await MedicalService(session).delete_pickup(pickup_id)
    return SuccessResponse(message="Pickup deleted.")
