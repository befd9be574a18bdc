"""
KYC Module

Identity document submissions and their review. The user's kyc_status
mirrors the state of their single KYC record.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, Optional, Any
from enum import Enum

from .activity import ActivityLog, ActorType
from .identifiers import new_id
from .logging_config import get_logger, log_action
from .mailer import Mailer
from .notifications import NotificationManager, NotificationType
from .storage import StorageInterface, StorageRecord, paginate
from .users import UserManager, KycStatus


class DocumentType(Enum):
    PASSPORT = "passport"
    DRIVERS_LICENSE = "drivers_license"
    NATIONAL_ID = "national_id"


@dataclass
class KycRecord(StorageRecord):
    user_id: str
    document_type: DocumentType
    document_number: str
    front_image: str
    selfie_image: str
    back_image: Optional[str] = None
    status: KycStatus = KycStatus.PENDING
    rejection_reason: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None


class KycManager:
    """KYC submission and review"""

    table_name = "kyc"

    def __init__(
        self,
        storage: StorageInterface,
        activity: ActivityLog,
        users: UserManager,
        notifications: NotificationManager,
        mailer: Mailer
    ):
        self.storage = storage
        self.activity = activity
        self.users = users
        self.notifications = notifications
        self.mailer = mailer
        self.logger = get_logger("bankline.kyc")

    def _save(self, record: KycRecord) -> None:
        record.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.table_name, record.id, record.to_dict())

    def get(self, kyc_id: str) -> Optional[KycRecord]:
        data = self.storage.load(self.table_name, kyc_id)
        if data:
            return KycRecord.from_dict(data)
        return None

    def get_user_kyc(self, user_id: str) -> Optional[KycRecord]:
        data = self.storage.find_one(self.table_name, {'user_id': user_id})
        if data:
            return KycRecord.from_dict(data)
        return None

    def submit_kyc(
        self,
        user_id: str,
        document_type: DocumentType,
        document_number: str,
        front_image: str,
        selfie_image: str,
        back_image: Optional[str] = None
    ) -> KycRecord:
        """Submit documents, or resubmit after a rejection"""
        if not document_number or not front_image or not selfie_image:
            raise ValueError("Document number, front image and selfie are required")
        user = self.users.require_user(user_id)

        record = self.get_user_kyc(user.id)
        if record:
            if record.status == KycStatus.APPROVED:
                raise ValueError("KYC already approved")
            if record.status == KycStatus.PENDING:
                raise ValueError("KYC already pending review")
            record.document_type = document_type
            record.document_number = document_number
            record.front_image = front_image
            record.back_image = back_image
            record.selfie_image = selfie_image
            record.status = KycStatus.PENDING
            record.rejection_reason = None
        else:
            now = datetime.now(timezone.utc)
            record = KycRecord(
                id=new_id(),
                created_at=now,
                updated_at=now,
                user_id=user.id,
                document_type=document_type,
                document_number=document_number,
                front_image=front_image,
                back_image=back_image,
                selfie_image=selfie_image,
            )

        with self.storage.atomic():
            self._save(record)
            user.kyc_status = KycStatus.PENDING
            self.users.save_user(user)

        self.notifications.create(
            user.id, "KYC Submitted",
            "Your KYC documents have been submitted and are pending review.",
            NotificationType.INFO
        )
        self.activity.log(user.id, ActorType.USER, "submit_kyc", "kyc", record.id,
                          details={"document_type": document_type.value})
        self.mailer.send_kyc_submitted(user.email, user.name)
        return record

    def _review(self, kyc_id: str, status: KycStatus, admin_id: str, reason: Optional[str] = None):
        record = self.get(kyc_id)
        if not record:
            raise ValueError("KYC not found")
        if record.status != KycStatus.PENDING:
            raise ValueError("KYC is not pending")

        with self.storage.atomic():
            record.status = status
            record.rejection_reason = reason
            record.reviewed_by = admin_id
            record.reviewed_at = datetime.now(timezone.utc)
            self._save(record)

            user = self.users.get_user(record.user_id)
            if user:
                user.kyc_status = status
                self.users.save_user(user)
        return record, user

    def approve_kyc(self, kyc_id: str, admin_id: str) -> KycRecord:
        record, user = self._review(kyc_id, KycStatus.APPROVED, admin_id)
        if user:
            self.notifications.create(
                user.id, "KYC Approved",
                "Your KYC verification has been approved. You can now access all features.",
                NotificationType.SUCCESS
            )
            self.mailer.send_kyc_approved(user.email, user.name)
        self.activity.log(admin_id, ActorType.ADMIN, "approve_kyc", "kyc", record.id)
        log_action(self.logger, "info", f"KYC {record.id} approved",
                   user_id=admin_id, action="approve_kyc", resource=record.user_id)
        return record

    def reject_kyc(self, kyc_id: str, admin_id: str, reason: str) -> KycRecord:
        if not reason:
            raise ValueError("Rejection reason is required")
        record, user = self._review(kyc_id, KycStatus.REJECTED, admin_id, reason)
        if user:
            self.notifications.create(
                user.id, "KYC Rejected",
                f"Your KYC verification has been rejected. Reason: {reason}",
                NotificationType.ERROR
            )
            self.mailer.send_kyc_rejected(user.email, user.name, reason)
        self.activity.log(admin_id, ActorType.ADMIN, "reject_kyc", "kyc", record.id, details={"reason": reason})
        log_action(self.logger, "info", f"KYC {record.id} rejected",
                   user_id=admin_id, action="reject_kyc", resource=record.user_id)
        return record

    def get_all(self, page: int = 1, limit: int = 20, status: Optional[KycStatus] = None) -> Dict[str, Any]:
        filters: Dict[str, Any] = {'status': status} if status else {}
        records = [KycRecord.from_dict(d) for d in self.storage.find(self.table_name, filters)]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return paginate(records, page, limit)

    def count_pending(self) -> int:
        return len(self.storage.find(self.table_name, {'status': KycStatus.PENDING}))
