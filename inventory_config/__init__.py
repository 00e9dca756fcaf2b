"""
inventory_config -- single public entrypoint for inventory configuration.

Responsibility:
    ``get_active_config()`` returns the process-wide ``InventoryConfig``.
    When the ``INVENTORY_CONFIG`` environment variable names a YAML file it
    is loaded from there; otherwise the schema defaults apply.  The result
    is cached until ``reset_active_config()``.

Architecture position:
    Configuration.  Sits beside ``inventory_kernel`` and below
    ``inventory_services``.  The kernel never imports this package; the
    services layer passes the values it needs into kernel services.

Audit relevance:
    Every load emits an ``INVENTORY_CONFIG_TRACE`` record with the source
    and checksum, so logs tie stock movements to the settings in force.
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path

from inventory_config.loader import compute_checksum, load_config, parse_config
from inventory_config.schema import (
    MAX_LIST_PAGE_LIMIT,
    FreightAllocationBasis,
    InventoryConfig,
)

_logger = logging.getLogger("inventory_kernel.config")

CONFIG_ENV_VAR = "INVENTORY_CONFIG"

_active: InventoryConfig | None = None
_lock = threading.Lock()


def get_active_config() -> InventoryConfig:
    """Return the active configuration, loading it on first use."""
    global _active
    with _lock:
        if _active is None:
            path = os.environ.get(CONFIG_ENV_VAR)
            if path:
                _active = load_config(Path(path))
                source = path
            else:
                _active = InventoryConfig()
                source = "defaults"
            _logger.info(
                "INVENTORY_CONFIG_TRACE",
                extra={
                    "trace_type": "INVENTORY_CONFIG_TRACE",
                    "source": source,
                    "checksum": compute_checksum(_active),
                },
            )
        return _active


def set_active_config(config: InventoryConfig) -> None:
    """Install an explicit configuration (embedding applications, tests)."""
    global _active
    with _lock:
        _active = config


def reset_active_config() -> None:
    """Forget the cached configuration; the next get reloads it."""
    global _active
    with _lock:
        _active = None


__all__ = [
    "CONFIG_ENV_VAR",
    "MAX_LIST_PAGE_LIMIT",
    "FreightAllocationBasis",
    "InventoryConfig",
    "compute_checksum",
    "get_active_config",
    "load_config",
    "parse_config",
    "reset_active_config",
    "set_active_config",
]
