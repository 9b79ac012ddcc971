"""
Bonafide Portal — Certificate request workflow

  pending ──approve──▶ approved   (certificate number + approvedDate stamped)
     └─────reject────▶ rejected

approved and rejected are terminal. Re-applying the current status is a
no-op, so an approved request keeps the one number it was given.

Status changes run inside a per-request lock (SET NX + TTL on
lock:cert_request:<id>): read → allocate number → write happens once per
request at a time. Numbers themselves come from an atomic INCR, so
approvals of different requests never share one either.
"""
import logging
from datetime import datetime, timezone
from typing import Callable

from bonafide_portal.core.config import get_settings
from bonafide_portal.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from bonafide_portal.core.retry import LockContention, with_lock_retry
from bonafide_portal.core.security import new_opaque_token
from bonafide_portal.models.user import Role
from bonafide_portal.schemas.auth import Identity
from bonafide_portal.schemas.certificate import (
    CertificateRequest,
    CertificateRequestCreate,
    RequestStatus,
)
from bonafide_portal.services.kv_store import KVStore
from bonafide_portal.services.numbering import CertificateNumberSequence

settings = get_settings()
logger = logging.getLogger(__name__)

REQUEST_PREFIX = "cert_request:"
LOCK_PREFIX = "lock:cert_request:"

TERMINAL_STATES = {RequestStatus.APPROVED, RequestStatus.REJECTED}


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def require_role(caller: Identity, role: Role) -> None:
    if caller.role is not role:
        raise AuthorizationError(f"Unauthorized - {role.value.capitalize()} access required")


class CertificateRequestWorkflow:
    def __init__(
        self,
        kv: KVStore,
        sequence: CertificateNumberSequence | None = None,
        clock: Callable[[], datetime] = _utcnow,
        list_all_requires_admin: bool | None = None,
    ):
        self.kv = kv
        self.sequence = sequence or CertificateNumberSequence(kv)
        self.clock = clock
        self.list_all_requires_admin = (
            settings.LIST_ALL_REQUIRES_ADMIN if list_all_requires_admin is None else list_all_requires_admin
        )

    # ── Submission ───────────────────────────────────────────────────────────

    async def submit(self, caller: Identity, fields: CertificateRequestCreate) -> CertificateRequest:
        require_role(caller, Role.STUDENT)

        now = self.clock()
        millis = int(now.timestamp() * 1000)
        while True:
            request = CertificateRequest(
                id=f"{millis}_{caller.id}",
                student_id=caller.id,
                status=RequestStatus.PENDING,
                created_at=now,
                **fields.model_dump(),
            )
            if await self.kv.set_if_absent(f"{REQUEST_PREFIX}{request.id}", request.to_document()):
                break
            # Same requester, same millisecond: move to the next free id.
            millis += 1

        logger.info("Certificate request %s submitted by %s", request.id, caller.id)
        return request

    # ── Listing ──────────────────────────────────────────────────────────────

    async def _all(self) -> list[CertificateRequest]:
        documents = await self.kv.get_by_prefix(REQUEST_PREFIX)
        requests = [CertificateRequest.model_validate(doc) for doc in documents]
        requests.sort(key=lambda r: r.created_at, reverse=True)
        return requests

    async def list_all(self, caller: Identity) -> list[CertificateRequest]:
        if self.list_all_requires_admin:
            require_role(caller, Role.ADMIN)
        return await self._all()

    async def list_for_student(self, caller: Identity) -> list[CertificateRequest]:
        # Full scan + filter; there is no per-student index.
        return [r for r in await self._all() if r.student_id == caller.id]

    async def get(self, caller: Identity, request_id: str) -> CertificateRequest:
        document = await self.kv.get(f"{REQUEST_PREFIX}{request_id}")
        if document is None:
            raise NotFoundError("Request not found", {"request_id": request_id})
        request = CertificateRequest.model_validate(document)
        if caller.role is not Role.ADMIN and request.student_id != caller.id:
            raise NotFoundError("Request not found", {"request_id": request_id})
        return request

    # ── Review ───────────────────────────────────────────────────────────────

    @with_lock_retry()
    async def _acquire(self, request_id: str) -> str:
        token = new_opaque_token()
        key = f"{LOCK_PREFIX}{request_id}"
        if not await self.kv.set_if_absent(key, token, ttl_seconds=settings.REQUEST_LOCK_TTL_SECONDS):
            raise LockContention(key)
        return token

    async def _release(self, request_id: str, token: str) -> None:
        # An expired lock may already belong to someone else; only drop our own.
        if not await self.kv.delete_if_equals(f"{LOCK_PREFIX}{request_id}", token):
            logger.warning("Lock on request %s expired before release", request_id)

    async def set_status(
        self, caller: Identity, request_id: str, new_status: RequestStatus
    ) -> CertificateRequest:
        require_role(caller, Role.ADMIN)
        if new_status not in TERMINAL_STATES:
            raise ValidationError("Status must be 'approved' or 'rejected'", field="status")

        key = f"{REQUEST_PREFIX}{request_id}"
        if await self.kv.get(key) is None:
            raise NotFoundError("Request not found", {"request_id": request_id})

        token = await self._acquire(request_id)
        try:
            document = await self.kv.get(key)
            if document is None:
                raise NotFoundError("Request not found", {"request_id": request_id})
            request = CertificateRequest.model_validate(document)

            if request.status is new_status:
                return request
            if request.status in TERMINAL_STATES:
                raise ConflictError(
                    f"Request is already {request.status.value}",
                    {"request_id": request_id, "status": request.status.value},
                )

            now = self.clock()
            updates = {"status": new_status, "updated_at": now}
            if new_status is RequestStatus.APPROVED:
                updates["certificate_number"] = await self.sequence.allocate(now)
                updates["approved_date"] = now
            updated = request.model_copy(update=updates)

            await self.kv.set(key, updated.to_document())
        finally:
            await self._release(request_id, token)

        logger.info(
            "Request %s %s → %s by %s (certificate %s)",
            request_id, request.status.value, new_status.value, caller.id,
            updated.certificate_number or "-",
        )
        return updated
