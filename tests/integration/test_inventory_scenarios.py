"""
End-to-end inventory scenarios through InventoryService.

Covers:
- Receipts with and without freight and the running average cost
- A pending transfer dispatched, then an in-transit one cancelled
- Transfers beyond available stock, whatever the initial status
- Direct completion leaving the same net movement as dispatch + receive
"""

from decimal import Decimal

import pytest

from inventory_kernel.domain.dtos import ReceivingLine
from inventory_kernel.exceptions import InsufficientStockError
from inventory_kernel.models.ledger_entry import LedgerEntryType
from inventory_kernel.models.transfer import TransferStatus


@pytest.fixture
def received(inventory, variant_id, warehouse_id, test_actor_id):
    """10 units at 100 each with 50 freight."""
    return inventory.receive_purchase(
        warehouse_id,
        [ReceivingLine(variant_id=variant_id, quantity=10, unit_cost=Decimal("100"))],
        Decimal("50"),
        test_actor_id,
    )


def _types(entries):
    return [e.entry_type for e in entries]


class TestCostScenarios:
    def test_receipt_with_freight(self, inventory, received, variant_id, warehouse_id):
        level = inventory.get_stock(variant_id, warehouse_id)

        assert level.quantity == 10
        assert level.average_cost == Decimal("105")
        assert level.cumulative_received_qty == 10
        assert level.cumulative_cost_amount == Decimal("1050")

    def test_second_receipt_without_freight(
        self, inventory, received, variant_id, warehouse_id, test_actor_id
    ):
        inventory.receive_purchase(
            warehouse_id,
            [ReceivingLine(variant_id=variant_id, quantity=5, unit_cost=Decimal("110"))],
            Decimal("0"),
            test_actor_id,
        )

        level = inventory.get_stock(variant_id, warehouse_id)
        assert level.quantity == 15
        assert level.average_cost.quantize(Decimal("0.01")) == Decimal("106.67")
        assert inventory.verify_ledger_consistency() == []


class TestTransferScenarios:
    def test_dispatch_pending_transfer(
        self, inventory, received, variant_id, warehouse_id, store_id, test_actor_id
    ):
        transfer = inventory.create_transfer(
            warehouse_id, store_id, variant_id, 5, test_actor_id,
            initial_status=TransferStatus.PENDING,
        )

        updated = inventory.update_transfer_status(
            transfer.id, TransferStatus.IN_TRANSIT, test_actor_id
        )

        assert updated.status is TransferStatus.IN_TRANSIT
        assert inventory.get_stock(variant_id, warehouse_id).quantity == 5
        assert inventory.get_stock(variant_id, store_id) is None
        effect = inventory.transfer_ledger(transfer.id)
        assert effect.entry_count == 1
        assert effect.by_location == {warehouse_id: -5}
        assert _types(inventory.stock_history(variant_id, warehouse_id))[-1] is (
            LedgerEntryType.TRANSFER_OUT
        )

    def test_cancel_in_transit_transfer(
        self, inventory, received, variant_id, warehouse_id, store_id, test_actor_id
    ):
        transfer = inventory.create_transfer(
            warehouse_id, store_id, variant_id, 5, test_actor_id, initial_status="pending"
        )
        inventory.update_transfer_status(transfer.id, "in_transit", test_actor_id)

        cancelled = inventory.cancel_transfer(transfer.id, test_actor_id, "truck broke down")

        assert cancelled.status is TransferStatus.CANCELLED
        assert cancelled.notes == "Cancelled. Reason: truck broke down"
        assert inventory.get_stock(variant_id, warehouse_id).quantity == 10
        history = _types(inventory.stock_history(variant_id, warehouse_id))
        assert history.count(LedgerEntryType.TRANSFER_CANCEL) == 1
        assert history[-1] is LedgerEntryType.TRANSFER_CANCEL

    @pytest.mark.parametrize("initial_status", ["pending", "in_transit", "completed"])
    def test_transfer_beyond_stock_changes_nothing(
        self, inventory, received, variant_id, warehouse_id, store_id, test_actor_id,
        initial_status,
    ):
        before = [e.id for e in inventory.stock_history(variant_id, warehouse_id)]

        with pytest.raises(InsufficientStockError):
            inventory.create_transfer(
                warehouse_id, store_id, variant_id, 11, test_actor_id,
                initial_status=initial_status,
            )

        assert inventory.get_stock(variant_id, warehouse_id).quantity == 10
        assert inventory.get_stock(variant_id, store_id) is None
        assert [e.id for e in inventory.stock_history(variant_id, warehouse_id)] == before
        assert inventory.list_transfers().total == 0

    def test_completed_transfer_matches_dispatch_and_receive(
        self, inventory, received, variant_id, warehouse_id, store_id, test_actor_id
    ):
        direct = inventory.create_transfer(warehouse_id, store_id, variant_id, 3, test_actor_id)
        staged = inventory.create_transfer(
            warehouse_id, store_id, variant_id, 3, test_actor_id, initial_status="pending"
        )
        inventory.update_transfer_status(staged.id, "in_transit", test_actor_id)
        inventory.update_transfer_status(staged.id, "completed", test_actor_id)

        assert (
            inventory.transfer_ledger(direct.id).by_location
            == inventory.transfer_ledger(staged.id).by_location
            == {warehouse_id: -3, store_id: 3}
        )
        assert inventory.get_stock(variant_id, store_id).quantity == 6
        # Transfers move units, never cost
        assert inventory.get_stock(variant_id, store_id).average_cost == Decimal("0")
