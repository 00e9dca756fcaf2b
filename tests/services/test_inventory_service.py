"""
Tests for the InventoryService facade.

Covers:
- Transaction boundary: commit on success, rollback on failure
- Committed compensation trail on TransferFailedError
- Reference checks
- adjust_stock actions, record_sale, reorder thresholds
- Read operations: transfers, stock, low stock, history, consistency
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import text

from inventory_config import InventoryConfig
from inventory_kernel.domain.dtos import ReceivingLine
from inventory_kernel.exceptions import (
    CompensationFailedError,
    InsufficientStockError,
    InvalidQuantityError,
    LocationNotFoundError,
    TransferFailedError,
    TransferNotFoundError,
    ValidationError,
    VariantNotFoundError,
)
from inventory_kernel.models.ledger_entry import LedgerEntryType
from inventory_kernel.models.transfer import TransferStatus
from inventory_services.inventory_service import AdjustmentAction, InventoryService
from inventory_services.references import StaticReferenceDirectory


class TestAdjustStock:
    def test_add_reduce_set(self, inventory, variant_id, warehouse_id, test_actor_id):
        added = inventory.adjust_stock(variant_id, warehouse_id, "add", 10, test_actor_id)
        reduced = inventory.adjust_stock(
            variant_id, warehouse_id, AdjustmentAction.REDUCE, 3, test_actor_id
        )
        counted = inventory.adjust_stock(variant_id, warehouse_id, "set", 4, test_actor_id)

        assert added.ledger_entry.entry_type is LedgerEntryType.ADJUSTMENT_ADD
        assert reduced.ledger_entry.entry_type is LedgerEntryType.ADJUSTMENT_REDUCE
        assert reduced.stock_record.quantity == 7
        assert counted.ledger_entry.delta == -3
        assert inventory.get_stock(variant_id, warehouse_id).quantity == 4

    def test_unknown_action(self, inventory, variant_id, warehouse_id, test_actor_id):
        with pytest.raises(ValidationError) as exc_info:
            inventory.adjust_stock(variant_id, warehouse_id, "double", 1, test_actor_id)
        assert exc_info.value.field == "action"

    def test_over_reduce_rolls_back(self, inventory, stocked, variant_id, warehouse_id, test_actor_id):
        stocked(2)

        with pytest.raises(InsufficientStockError):
            inventory.adjust_stock(variant_id, warehouse_id, "reduce", 3, test_actor_id)

        assert inventory.get_stock(variant_id, warehouse_id).quantity == 2
        assert len(inventory.stock_history(variant_id, warehouse_id)) == 1

    @pytest.mark.parametrize("quantity", [0, -5])
    def test_invalid_quantity_changes_nothing(
        self, inventory, variant_id, warehouse_id, test_actor_id, quantity
    ):
        with pytest.raises(InvalidQuantityError):
            inventory.adjust_stock(variant_id, warehouse_id, "add", quantity, test_actor_id)

        assert inventory.get_stock(variant_id, warehouse_id) is None

    def test_record_sale(self, inventory, stocked, variant_id, warehouse_id, test_actor_id):
        stocked(5)

        sale = inventory.record_sale(variant_id, warehouse_id, 2, test_actor_id, note="POS 4411")

        assert sale.ledger_entry.entry_type is LedgerEntryType.SALE
        assert sale.stock_record.quantity == 3


class TestReferences:
    def test_unknown_variant(self, session, deterministic_clock, warehouse_id, test_actor_id):
        inventory = InventoryService(
            session,
            clock=deterministic_clock,
            references=StaticReferenceDirectory(variants=[], locations=[warehouse_id]),
        )

        with pytest.raises(VariantNotFoundError):
            inventory.adjust_stock(uuid4(), warehouse_id, "add", 1, test_actor_id)

    def test_unknown_destination(
        self, session, deterministic_clock, variant_id, warehouse_id, test_actor_id
    ):
        inventory = InventoryService(
            session,
            clock=deterministic_clock,
            references=StaticReferenceDirectory(variants=[variant_id], locations=[warehouse_id]),
        )
        inventory.adjust_stock(variant_id, warehouse_id, "add", 5, test_actor_id)
        missing = uuid4()

        with pytest.raises(LocationNotFoundError) as exc_info:
            inventory.create_transfer(warehouse_id, missing, variant_id, 1, test_actor_id)

        assert exc_info.value.location_id == str(missing)
        assert inventory.list_transfers().total == 0

    def test_unknown_variant_on_receipt_line(
        self, session, deterministic_clock, variant_id, warehouse_id, test_actor_id
    ):
        inventory = InventoryService(
            session,
            clock=deterministic_clock,
            references=StaticReferenceDirectory(variants=[variant_id], locations=[warehouse_id]),
        )

        with pytest.raises(VariantNotFoundError):
            inventory.receive_purchase(
                warehouse_id,
                [
                    ReceivingLine(variant_id=variant_id, quantity=1, unit_cost=Decimal("1")),
                    ReceivingLine(variant_id=uuid4(), quantity=1, unit_cost=Decimal("1")),
                ],
                Decimal("0"),
                test_actor_id,
            )

        assert inventory.get_stock(variant_id, warehouse_id) is None


class TestTransfers:
    def test_default_status_from_config(
        self, session, deterministic_clock, variant_id, warehouse_id, store_id, test_actor_id
    ):
        inventory = InventoryService(
            session,
            clock=deterministic_clock,
            config=InventoryConfig(default_transfer_status="pending"),
        )
        inventory.adjust_stock(variant_id, warehouse_id, "add", 5, test_actor_id)

        transfer = inventory.create_transfer(warehouse_id, store_id, variant_id, 5, test_actor_id)

        assert transfer.status is TransferStatus.PENDING

    def test_get_transfer(self, inventory, stocked, variant_id, warehouse_id, store_id, test_actor_id):
        stocked()
        created = inventory.create_transfer(
            warehouse_id, store_id, variant_id, 2, test_actor_id, notes="weekly"
        )

        fetched = inventory.get_transfer(created.id)
        assert fetched == created

    def test_get_unknown_transfer(self, inventory):
        with pytest.raises(TransferNotFoundError):
            inventory.get_transfer(uuid4())
        with pytest.raises(TransferNotFoundError):
            inventory.transfer_ledger(uuid4())

    def test_failed_transfer_keeps_compensated_trail(
        self, inventory, stocked, monkeypatch, variant_id, warehouse_id, store_id, test_actor_id
    ):
        stocked(10)
        transfer = inventory.create_transfer(
            warehouse_id, store_id, variant_id, 4, test_actor_id, initial_status="pending"
        )
        original_credit = inventory._adjustments.credit

        def failing_credit(variant, location, quantity, actor, entry_type, **kwargs):
            if LedgerEntryType(entry_type) is LedgerEntryType.TRANSFER_IN:
                raise RuntimeError("destination offline")
            return original_credit(variant, location, quantity, actor, entry_type, **kwargs)

        monkeypatch.setattr(inventory._adjustments, "credit", failing_credit)

        with pytest.raises(TransferFailedError):
            inventory.update_transfer_status(transfer.id, "completed", test_actor_id)

        assert inventory.get_transfer(transfer.id).status is TransferStatus.PENDING
        effect = inventory.transfer_ledger(transfer.id)
        assert effect.entry_count == 2
        assert effect.net_total == 0
        assert inventory.get_stock(variant_id, warehouse_id).quantity == 10

    def test_failed_create_leaves_no_transfer(
        self, inventory, stocked, monkeypatch, variant_id, warehouse_id, store_id, test_actor_id
    ):
        stocked(10)
        before = [e.id for e in inventory.stock_history(variant_id, warehouse_id)]
        original_credit = inventory._adjustments.credit

        def failing_credit(variant, location, quantity, actor, entry_type, **kwargs):
            if LedgerEntryType(entry_type) is LedgerEntryType.TRANSFER_IN:
                raise RuntimeError("destination offline")
            return original_credit(variant, location, quantity, actor, entry_type, **kwargs)

        monkeypatch.setattr(inventory._adjustments, "credit", failing_credit)

        with pytest.raises(TransferFailedError):
            inventory.create_transfer(warehouse_id, store_id, variant_id, 4, test_actor_id)

        assert inventory.list_transfers().total == 0
        assert inventory.get_stock(variant_id, warehouse_id).quantity == 10
        assert [e.id for e in inventory.stock_history(variant_id, warehouse_id)] == before

    def test_compensation_failure_rolls_back_everything(
        self, inventory, stocked, monkeypatch, variant_id, warehouse_id, store_id, test_actor_id
    ):
        stocked(10)
        transfer = inventory.create_transfer(
            warehouse_id, store_id, variant_id, 4, test_actor_id, initial_status="pending"
        )

        def broken_credit(*args, **kwargs):
            raise RuntimeError("all credits failing")

        monkeypatch.setattr(inventory._adjustments, "credit", broken_credit)

        with pytest.raises(CompensationFailedError):
            inventory.update_transfer_status(transfer.id, "completed", test_actor_id)

        assert inventory.transfer_ledger(transfer.id).entry_count == 0
        assert inventory.get_stock(variant_id, warehouse_id).quantity == 10
        assert inventory.get_transfer(transfer.id).status is TransferStatus.PENDING


class TestListTransfers:
    @pytest.fixture
    def three_transfers(
        self, inventory, stocked, deterministic_clock, variant_id, warehouse_id, store_id,
        test_actor_id,
    ):
        stocked(30)
        created = []
        for status in ("pending", "in_transit", "completed"):
            deterministic_clock.advance(60)
            created.append(
                inventory.create_transfer(
                    warehouse_id, store_id, variant_id, 1, test_actor_id, initial_status=status
                )
            )
        return created

    def test_newest_first(self, inventory, three_transfers):
        page = inventory.list_transfers()

        assert [t.id for t in page.items] == [t.id for t in reversed(three_transfers)]
        assert page.total == 3
        assert not page.has_more

    def test_filter_by_status(self, inventory, three_transfers):
        page = inventory.list_transfers(status="in_transit")

        assert [t.id for t in page.items] == [three_transfers[1].id]

    def test_filter_by_location(self, inventory, three_transfers, store_id, warehouse_id):
        assert inventory.list_transfers(dest_location_id=store_id).total == 3
        assert inventory.list_transfers(dest_location_id=warehouse_id).total == 0

    def test_pagination(self, inventory, three_transfers):
        page = inventory.list_transfers(limit=2, offset=0)
        rest = inventory.list_transfers(limit=2, offset=2)

        assert len(page.items) == 2
        assert page.has_more
        assert [t.id for t in rest.items] == [three_transfers[0].id]

    def test_limit_capped(self, inventory, three_transfers):
        assert inventory.list_transfers(limit=10_000).limit == 500

    def test_configured_page_size(
        self, session, deterministic_clock, three_transfers
    ):
        inventory = InventoryService(
            session, clock=deterministic_clock, config=InventoryConfig(list_page_limit=1)
        )

        assert len(inventory.list_transfers().items) == 1

    def test_unknown_status_filter(self, inventory):
        with pytest.raises(ValidationError):
            inventory.list_transfers(status="shipped")


class TestStockReads:
    def test_low_stock(self, inventory, stocked, variant_id, warehouse_id, store_id, test_actor_id):
        stocked(3)
        stocked(50, location_id=store_id)

        low = inventory.list_low_stock()

        assert [(l.variant_id, l.location_id) for l in low] == [(variant_id, warehouse_id)]
        assert inventory.list_low_stock(location_id=store_id) == []

    def test_reorder_threshold(self, inventory, stocked, variant_id, warehouse_id, test_actor_id):
        stocked(3)

        level = inventory.set_reorder_threshold(variant_id, warehouse_id, 2, test_actor_id)

        assert level.reorder_threshold == 2
        assert inventory.list_low_stock() == []

    def test_stock_history_limit(self, inventory, stocked, variant_id, warehouse_id):
        for _ in range(4):
            stocked(1)

        history = inventory.stock_history(variant_id, warehouse_id, limit=2)

        assert [e.sequence for e in history] == [1, 2]


class TestLedgerConsistency:
    def test_consistent_after_operations(
        self, inventory, stocked, variant_id, warehouse_id, store_id, test_actor_id
    ):
        inventory.receive_purchase(
            warehouse_id,
            [ReceivingLine(variant_id=variant_id, quantity=7, unit_cost=Decimal("3.10"))],
            Decimal("1.00"),
            test_actor_id,
        )
        inventory.create_transfer(warehouse_id, store_id, variant_id, 2, test_actor_id)
        inventory.record_sale(variant_id, store_id, 1, test_actor_id)

        assert inventory.verify_ledger_consistency() == []

    def test_detects_tampered_quantity(
        self, session, inventory, stocked, variant_id, warehouse_id, captured_logs
    ):
        level = stocked(5).stock_record
        session.execute(
            text("UPDATE stock_records SET quantity = 99 WHERE id = :id"),
            {"id": str(level.id)},
        )
        session.expire_all()

        (discrepancy,) = inventory.verify_ledger_consistency()

        assert discrepancy.kind == "quantity"
        assert discrepancy.expected == Decimal(5)
        assert discrepancy.actual == Decimal(99)
        assert any(r["message"] == "ledger_inconsistency_detected" for r in captured_logs())
