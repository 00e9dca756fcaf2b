"""
Property-based tests (Hypothesis).

Properties:
- Freight allocation conserves the freight total exactly, for any line mix
  and either basis.
- quantity == sum(ledger deltas) and quantity >= 0 after any sequence of
  credits, debits and sets, whether or not individual debits were rejected.
- A debit followed by a credit of the same quantity restores the quantity
  and leaves the average cost unchanged.
"""

from decimal import Decimal
from uuid import uuid4

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from inventory_engines.landed_cost import AllocationBasis, LandedCostCalculator
from inventory_kernel.domain.dtos import ReceivingLine, StockMutationMeta
from inventory_kernel.exceptions import InsufficientStockError
from inventory_kernel.models.ledger_entry import LedgerEntryType
from inventory_kernel.selectors.ledger_selector import LedgerSelector
from inventory_kernel.selectors.stock_selector import StockSelector

amounts = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("100000"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)

receiving_lines = st.lists(
    st.builds(
        ReceivingLine,
        variant_id=st.uuids(),
        quantity=st.integers(min_value=1, max_value=10_000),
        unit_cost=amounts,
    ),
    min_size=1,
    max_size=20,
)

operations = st.lists(
    st.tuples(
        st.sampled_from(["credit", "debit", "set"]),
        st.integers(min_value=0, max_value=50),
    ),
    min_size=1,
    max_size=25,
)

_db_settings = settings(
    max_examples=30,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)


class TestFreightConservation:
    @given(lines=receiving_lines, freight=amounts, basis=st.sampled_from(list(AllocationBasis)))
    @settings(max_examples=200, deadline=None)
    def test_allocated_freight_sums_to_total(self, lines, freight, basis):
        result = LandedCostCalculator(basis=basis).calculate(lines=lines, total_freight=freight)

        assert sum(l.allocated_freight for l in result.lines) == freight
        assert result.total_landed_cost == sum(
            (l.unit_cost * l.quantity for l in lines), Decimal("0")
        ) + freight

    @given(lines=receiving_lines, freight=amounts)
    @settings(max_examples=100, deadline=None)
    def test_only_last_line_carries_residual(self, lines, freight):
        result = LandedCostCalculator().calculate(lines=lines, total_freight=freight)
        total_qty = sum(l.quantity for l in lines)

        for line in result.lines[:-1]:
            expected = (freight * line.quantity / total_qty).quantize(Decimal("0.01"))
            assert abs(line.allocated_freight - expected) <= Decimal("0.01")


class TestLedgerInvariants:
    @given(ops=operations)
    @_db_settings
    def test_quantity_matches_ledger(self, stock_adjustments, session, test_actor_id, ops):
        variant, location = uuid4(), uuid4()

        for action, quantity in ops:
            if action == "set":
                stock_adjustments.set_quantity(variant, location, quantity, test_actor_id)
            elif quantity == 0:
                continue
            elif action == "credit":
                stock_adjustments.credit(
                    variant, location, quantity, test_actor_id, LedgerEntryType.ADJUSTMENT_ADD
                )
            else:
                try:
                    stock_adjustments.debit(
                        variant, location, quantity, test_actor_id, LedgerEntryType.SALE
                    )
                except InsufficientStockError:
                    pass

        level = StockSelector(session).get(variant, location)
        if level is None:
            return
        assert level.quantity >= 0
        assert level.quantity == LedgerSelector(session).sum_deltas(level.id)

    @given(
        received=st.integers(min_value=1, max_value=500),
        unit_cost=amounts,
        moved=st.integers(min_value=1, max_value=500),
    )
    @_db_settings
    def test_debit_then_credit_restores_quantity_and_cost(
        self, stock_adjustments, test_actor_id, received, unit_cost, moved
    ):
        variant, location = uuid4(), uuid4()
        before = stock_adjustments.credit(
            variant,
            location,
            received + moved,
            test_actor_id,
            LedgerEntryType.RECEIPT,
            meta=StockMutationMeta(unit_cost=unit_cost),
        ).stock_record

        stock_adjustments.debit(
            variant, location, moved, test_actor_id, LedgerEntryType.TRANSFER_OUT
        )
        after = stock_adjustments.credit(
            variant, location, moved, test_actor_id, LedgerEntryType.TRANSFER_CANCEL
        ).stock_record

        assert after.quantity == before.quantity
        assert after.average_cost == before.average_cost
