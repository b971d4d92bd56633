"""
Tests for workflow configuration loading and the config -> kernel bridges.

Covers:
- Packaged defaults
- Out-of-range and malformed values rejected at load time
- Deterministic checksum and the HVAC_CONFIG_TRACE entry
- Bridges: billing rates, clock, prepurchase ledger, selector
"""

from decimal import Decimal

import pytest
import yaml

from hvac_config import get_active_config
from hvac_config.bridges import (
    build_billing_rates,
    build_clock,
    build_ledger_options,
    build_prepurchase_ledger,
    build_work_order_selector,
)
from hvac_config.loader import compute_checksum, parse_workflow_config
from hvac_engines.billing import BillingRates
from hvac_kernel.domain.clock import SystemClock

BASE_DOCUMENT = {
    "config_id": "test-workflow",
    "version": 3,
    "timezone": "UTC",
    "billing": {"vat_rate": "0.10", "profit_uplift_rate": "0.03", "rounding_unit": 1000},
    "delivery": {"alert_window_days": 10},
    "prepurchase": {"allow_over_allocation": True},
}


def _write(tmp_path, document):
    path = tmp_path / "workflow.yaml"
    path.write_text(yaml.safe_dump(document))
    return path


def _with(section, **values):
    document = {k: (dict(v) if isinstance(v, dict) else v) for k, v in BASE_DOCUMENT.items()}
    if section is None:
        document.update(values)
    else:
        document[section].update(values)
    return document


class TestDefaults:
    def test_packaged_defaults(self):
        config = get_active_config()

        assert config.config_id == "hvac-workflow"
        assert config.version == 1
        assert config.timezone == "Asia/Seoul"
        assert config.billing.vat_rate == Decimal("0.10")
        assert config.billing.profit_uplift_rate == Decimal("0.03")
        assert config.billing.rounding_unit == 1000
        assert config.delivery.alert_window_days == 7
        assert config.prepurchase.allow_over_allocation is False
        assert len(config.checksum) == 64

    def test_missing_sections_take_defaults(self):
        config = parse_workflow_config({"config_id": "bare", "version": 1})
        assert config.billing.rounding_unit == 1000
        assert config.delivery.alert_window_days == 7


class TestLoading:
    def test_load_from_path(self, tmp_path):
        config = get_active_config(_write(tmp_path, BASE_DOCUMENT))

        assert config.config_id == "test-workflow"
        assert config.version == 3
        assert config.delivery.alert_window_days == 10
        assert config.prepurchase.allow_over_allocation is True

    def test_float_rate_parsed_exactly(self):
        config = parse_workflow_config(_with("billing", vat_rate=0.1))
        assert config.billing.vat_rate == Decimal("0.1")

    @pytest.mark.parametrize(
        "section, values",
        [
            ("billing", {"vat_rate": "-0.1"}),
            ("billing", {"profit_uplift_rate": "-0.03"}),
            ("billing", {"rounding_unit": 0}),
            ("billing", {"vat_rate": "ten percent"}),
            ("delivery", {"alert_window_days": 0}),
            ("prepurchase", {"allow_over_allocation": "yes please"}),
            (None, {"timezone": "Mars/Olympus_Mons"}),
        ],
    )
    def test_bad_values_rejected(self, section, values):
        with pytest.raises(ValueError):
            parse_workflow_config(_with(section, **values))

    @pytest.mark.parametrize("key", ["config_id", "version"])
    def test_identity_required(self, key):
        document = dict(BASE_DOCUMENT)
        del document[key]
        with pytest.raises(KeyError):
            parse_workflow_config(document)

    def test_non_mapping_document(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ValueError):
            get_active_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")


class TestChecksumAndTrace:
    def test_checksum_ignores_key_order(self):
        reordered = dict(reversed(list(BASE_DOCUMENT.items())))
        assert compute_checksum(reordered) == compute_checksum(BASE_DOCUMENT)

    def test_checksum_changes_with_values(self):
        assert compute_checksum(_with("billing", vat_rate="0.11")) != compute_checksum(
            BASE_DOCUMENT
        )

    def test_config_trace_logged(self, tmp_path, captured_logs):
        path = _write(tmp_path, BASE_DOCUMENT)
        config = get_active_config(path)

        traces = [r for r in captured_logs() if r["message"] == "HVAC_CONFIG_TRACE"]
        assert len(traces) == 1
        assert traces[0]["config_id"] == "test-workflow"
        assert traces[0]["config_version"] == 3
        assert traces[0]["checksum"] == config.checksum
        assert traces[0]["source_path"] == str(path)


class TestBridges:
    def test_billing_rates(self):
        config = parse_workflow_config(_with("billing", vat_rate="0.05", rounding_unit=100))
        assert build_billing_rates(config) == BillingRates(
            vat_rate=Decimal("0.05"),
            profit_uplift_rate=Decimal("0.03"),
            rounding_unit=100,
        )

    def test_clock_uses_configured_timezone(self):
        clock = build_clock(parse_workflow_config(BASE_DOCUMENT))
        assert isinstance(clock, SystemClock)
        assert str(clock.tz) == "UTC"

    def test_ledger_options(self):
        options = build_ledger_options(parse_workflow_config(BASE_DOCUMENT))
        assert options.allow_over_allocation is True

    def test_prepurchase_ledger_honours_over_allocation(self, session, deterministic_clock):
        config = parse_workflow_config(BASE_DOCUMENT)
        ledger = build_prepurchase_ledger(config, session, clock=deterministic_clock)
        unit = ledger.create_unit(model_name="AP-100", quantity=1)

        outcome = ledger.add_usage(unit.id, "Site A", 2)

        assert outcome.over_allocated_quantity == 1

    def test_selector_alert_window(self, session, deterministic_clock):
        config = parse_workflow_config(BASE_DOCUMENT)
        selector = build_work_order_selector(config, session, clock=deterministic_clock)
        assert selector.alert_window_days == 10
        assert selector.clock is deterministic_clock
