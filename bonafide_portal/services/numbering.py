"""
Bonafide Portal — Certificate numbering sequence
"""
from datetime import datetime

from bonafide_portal.core.config import get_settings
from bonafide_portal.services.kv_store import KVStore

settings = get_settings()

COUNTER_KEY = "cert_counter"


def format_certificate_number(counter: int, year: int, prefix: str | None = None) -> str:
    """GAT/GEN/BC/2025-2026/007 — width 3 is a minimum, never a truncation."""
    return f"{prefix or settings.CERTIFICATE_NUMBER_PREFIX}/{year}-{year + 1}/{counter:03d}"


class CertificateNumberSequence:
    def __init__(self, kv: KVStore, key: str = COUNTER_KEY):
        self.kv = kv
        self.key = key

    async def next(self) -> int:
        # INCR is atomic on the server, so concurrent approvals never share a value.
        return await self.kv.incr(self.key)

    async def current(self) -> int:
        value = await self.kv.get(self.key)
        return int(value) if value is not None else 0

    async def allocate(self, now: datetime) -> str:
        return format_certificate_number(await self.next(), now.year)
