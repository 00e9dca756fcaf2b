"""
Inventory Kernel

Per-location stock ledger with:
- Lazily created stock records keyed by (variant, location)
- Append-only, immutable ledger entries for every quantity change
- Weighted-average landed cost maintained on receipts
- Row-level locking for same-pair serialization
"""

__version__ = "0.1.0"
