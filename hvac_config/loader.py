"""
Configuration Loader (``hvac_config.loader``).

Responsibility
--------------
Loads the workflow YAML file and parses it into the frozen
``hvac_config.schema`` dataclasses.  Runtime callers go through
``hvac_config.get_active_config()``, never through this module.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with a message naming
  the offending key; out-of-range values are rejected, not clamped.
* Money rates are parsed from strings into ``Decimal``, never via float.
* ``compute_checksum`` is a deterministic SHA-256 over the parsed data.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``config_id`` / ``version``  -> ``KeyError``.
* Negative rate, non-positive rounding unit or window, unknown timezone
  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from hvac_config.schema import (
    BillingConfig,
    DeliveryConfig,
    PrepurchaseConfig,
    WorkflowConfig,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return data


def parse_decimal(value: Any, key: str) -> Decimal:
    if isinstance(value, float):
        value = repr(value)
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{key}: not a decimal value: {value!r}") from None


def parse_timezone(value: Any) -> str:
    name = str(value)
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"timezone: unknown time zone {name!r}") from None
    return name


def parse_billing(data: dict[str, Any]) -> BillingConfig:
    defaults = BillingConfig()
    vat_rate = parse_decimal(data.get("vat_rate", defaults.vat_rate), "billing.vat_rate")
    uplift = parse_decimal(
        data.get("profit_uplift_rate", defaults.profit_uplift_rate),
        "billing.profit_uplift_rate",
    )
    rounding_unit = int(data.get("rounding_unit", defaults.rounding_unit))

    if vat_rate < 0:
        raise ValueError(f"billing.vat_rate must be >= 0, got {vat_rate}")
    if uplift < 0:
        raise ValueError(f"billing.profit_uplift_rate must be >= 0, got {uplift}")
    if rounding_unit <= 0:
        raise ValueError(f"billing.rounding_unit must be > 0, got {rounding_unit}")
    return BillingConfig(
        vat_rate=vat_rate,
        profit_uplift_rate=uplift,
        rounding_unit=rounding_unit,
    )


def parse_delivery(data: dict[str, Any]) -> DeliveryConfig:
    window = int(data.get("alert_window_days", DeliveryConfig().alert_window_days))
    if window < 1:
        raise ValueError(f"delivery.alert_window_days must be >= 1, got {window}")
    return DeliveryConfig(alert_window_days=window)


def parse_prepurchase(data: dict[str, Any]) -> PrepurchaseConfig:
    allow = data.get("allow_over_allocation", False)
    if not isinstance(allow, bool):
        raise ValueError(
            f"prepurchase.allow_over_allocation must be a boolean, got {allow!r}"
        )
    return PrepurchaseConfig(allow_over_allocation=allow)


def parse_workflow_config(data: dict[str, Any]) -> WorkflowConfig:
    """Parse a full workflow document.  ``checksum`` is filled in here."""
    return WorkflowConfig(
        config_id=str(data["config_id"]),
        version=int(data["version"]),
        timezone=parse_timezone(data.get("timezone", "Asia/Seoul")),
        billing=parse_billing(data.get("billing") or {}),
        delivery=parse_delivery(data.get("delivery") or {}),
        prepurchase=parse_prepurchase(data.get("prepurchase") or {}),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
