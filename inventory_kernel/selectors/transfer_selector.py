"""
Module: inventory_kernel.selectors.transfer_selector
Responsibility: Read-only transfer lookups and the filtered, paginated
    transfer list (newest first).
Architecture position: Kernel > Selectors.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select

from inventory_kernel.domain.dtos import TransferRecordDTO
from inventory_kernel.models.transfer import TransferRecord, TransferStatus
from inventory_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class TransferFilter:
    """Optional filters for list_transfers; None means "any"."""

    source_location_id: UUID | None = None
    dest_location_id: UUID | None = None
    status: TransferStatus | None = None
    variant_id: UUID | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None


@dataclass(frozen=True)
class TransferPage:
    items: tuple[TransferRecordDTO, ...]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total


class TransferSelector(BaseSelector[TransferRecord]):
    """Transfer queries."""

    def get(self, transfer_id: UUID) -> TransferRecordDTO | None:
        record = self.session.get(TransferRecord, transfer_id)
        return TransferRecordDTO.from_model(record) if record is not None else None

    def _where(self, stmt, f: TransferFilter):
        if f.source_location_id is not None:
            stmt = stmt.where(TransferRecord.source_location_id == f.source_location_id)
        if f.dest_location_id is not None:
            stmt = stmt.where(TransferRecord.dest_location_id == f.dest_location_id)
        if f.status is not None:
            stmt = stmt.where(TransferRecord.status == f.status.value)
        if f.variant_id is not None:
            stmt = stmt.where(TransferRecord.variant_id == f.variant_id)
        if f.created_from is not None:
            stmt = stmt.where(TransferRecord.created_at >= f.created_from)
        if f.created_to is not None:
            stmt = stmt.where(TransferRecord.created_at <= f.created_to)
        return stmt

    def list(self, f: TransferFilter, limit: int, offset: int = 0) -> TransferPage:
        total = self.session.execute(
            self._where(select(func.count(TransferRecord.id)), f)
        ).scalar_one()
        rows = self.session.execute(
            self._where(select(TransferRecord), f)
            .order_by(TransferRecord.created_at.desc(), TransferRecord.id.desc())
            .limit(limit)
            .offset(offset)
        ).scalars()
        return TransferPage(
            items=tuple(TransferRecordDTO.from_model(r) for r in rows),
            total=int(total),
            limit=limit,
            offset=offset,
        )
