"""
Configuration Loader (``inventory_config.loader``).

Responsibility
--------------
Loads a YAML file and parses it into an ``InventoryConfig``.  Callers
normally go through ``inventory_config.get_active_config()``; the loader
is exposed for tooling and tests.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or invalid values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from inventory_config.schema import FreightAllocationBasis, InventoryConfig

_KNOWN_KEYS = frozenset(f.name for f in fields(InventoryConfig))


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def _parse_decimal(value: Any, key: str) -> Decimal:
    # YAML floats are converted through str so 0.000001 stays exact
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{key} must be a decimal number, got {value!r}") from None


def parse_config(data: dict[str, Any]) -> InventoryConfig:
    """
    Build an InventoryConfig from a plain mapping.

    Accepts either the settings at top level or nested under an
    ``inventory`` key.  Missing keys take their defaults.
    """
    if "inventory" in data and isinstance(data["inventory"], dict):
        data = data["inventory"]

    unknown = set(data) - _KNOWN_KEYS
    if unknown:
        raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")

    kwargs: dict[str, Any] = dict(data)
    if "freight_allocation_basis" in kwargs:
        try:
            kwargs["freight_allocation_basis"] = FreightAllocationBasis(
                kwargs["freight_allocation_basis"]
            )
        except ValueError:
            raise ValueError(
                "freight_allocation_basis must be 'quantity' or 'value', "
                f"got {kwargs['freight_allocation_basis']!r}"
            ) from None
    if "average_cost_tolerance" in kwargs:
        kwargs["average_cost_tolerance"] = _parse_decimal(
            kwargs["average_cost_tolerance"], "average_cost_tolerance"
        )
    return InventoryConfig(**kwargs)


def load_config(path: Path | str) -> InventoryConfig:
    """Load and validate an InventoryConfig from a YAML file."""
    return parse_config(load_yaml_file(Path(path)))


def compute_checksum(config: InventoryConfig | dict[str, Any]) -> str:
    """
    SHA-256 of the canonical JSON form of a config.

    Identical settings always produce identical checksums.
    """
    data = asdict(config) if isinstance(config, InventoryConfig) else config
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
