"""
SQLAlchemy ORM models package.

Re-exports all models for convenient imports.
"""

from mediavault.db.models.user import (
    UserModel,
    RoleModel,
    UserRoleModel,
    AuthTokenModel,
)
from mediavault.db.models.folder import (
    FolderModel,
    FolderShareModel,
)
from mediavault.db.models.media import UserMediaModel
from mediavault.db.models.medical import (
    MedicalPersonModel,
    MedicalDocumentModel,
    MedicalProviderModel,
    MedicalBillModel,
    MedicalPrescriptionModel,
    MedicalDoctorModel,
    MedicalConditionModel,
    MedicalProviderPaymentModel,
    MedicalBillChargeModel,
    MedicalBillDocumentModel,
    MedicalPrescriptionPickupModel,
)

__all__ = [
    # Users & auth
    "UserModel",
    "RoleModel",
    "UserRoleModel",
    "AuthTokenModel",
    # Folders
    "FolderModel",
    "FolderShareModel",
    # Media
    "UserMediaModel",
    # Medical
    "MedicalPersonModel",
    "MedicalDocumentModel",
    "MedicalProviderModel",
    "MedicalBillModel",
    "MedicalPrescriptionModel",
    "MedicalDoctorModel",
    "MedicalConditionModel",
    "MedicalProviderPaymentModel",
    "MedicalBillChargeModel",
    "MedicalBillDocumentModel",
    "MedicalPrescriptionPickupModel",
]
