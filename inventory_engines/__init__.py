"""
Pure calculation engines: freight allocation, landed cost and
weighted-average cost.  No I/O; every entry point is traced.
"""

from inventory_engines.allocation import (
    AllocationEngine,
    AllocationLine,
    AllocationResult,
    AllocationTarget,
)
from inventory_engines.landed_cost import (
    AllocationBasis,
    AverageCost,
    LandedCostCalculator,
    LandedCostLine,
    LandedCostResult,
    weighted_average_cost,
)
from inventory_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "AllocationEngine",
    "AllocationLine",
    "AllocationResult",
    "AllocationTarget",
    "AllocationBasis",
    "AverageCost",
    "LandedCostCalculator",
    "LandedCostLine",
    "LandedCostResult",
    "weighted_average_cost",
    "compute_input_fingerprint",
    "traced_engine",
]
