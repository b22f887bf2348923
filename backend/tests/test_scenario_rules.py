from __future__ import annotations

from dataclasses import FrozenInstanceError
from decimal import Decimal

import pytest

from fbr_invoicing.modules.mapping import scenario_rules
from fbr_invoicing.modules.mapping.scenario_rules import (
    SCENARIO_RULES,
    SERVICES_HS_CODE,
    TaxTreatment,
    get_rule,
    is_buyer_type_allowed,
    requires_fed_payable,
    requires_fixed_notified_value,
)


def test_catalogue_covers_sn001_to_sn028():
    expected = {f"SN{n:03d}" for n in range(1, 29)}
    assert set(SCENARIO_RULES) == expected
    assert [r.scenario_id for r in scenario_rules.list_rules()] == sorted(expected)


def test_rules_are_immutable():
    rule = get_rule("SN001")
    with pytest.raises(FrozenInstanceError):
        rule.default_rate = Decimal("0")  # type: ignore[misc]
    with pytest.raises(TypeError):
        SCENARIO_RULES["SN999"] = rule  # type: ignore[index]


def test_lookup_is_case_and_whitespace_insensitive():
    assert get_rule(" sn018 ").scenario_id == "SN018"


def test_buyer_type_gating():
    assert is_buyer_type_allowed("SN001", "Registered") is True
    assert is_buyer_type_allowed("SN001", "Unregistered") is False
    assert is_buyer_type_allowed("SN001", "registered") is True
    for code in ("SN002", "SN026", "SN027", "SN028"):
        assert is_buyer_type_allowed(code, "Unregistered") is True
        assert is_buyer_type_allowed(code, "Registered") is False
    assert is_buyer_type_allowed("SN003", "Registered") is True
    assert is_buyer_type_allowed("SN003", "Unregistered") is True
    assert is_buyer_type_allowed("SN003", "Corporate") is False


def test_unknown_scenarios_pass_through():
    assert get_rule("SN099") is None
    assert is_buyer_type_allowed("SN099", "Unregistered") is True
    assert requires_fixed_notified_value("SN099") is False
    assert requires_fed_payable("SN099") is False
    assert scenario_rules.default_sale_type("SN099") == scenario_rules.DEFAULT_SALE_TYPE


def test_fixed_notified_value_and_fed_requirements():
    assert {c for c in SCENARIO_RULES if requires_fixed_notified_value(c)} == {"SN008", "SN027"}
    assert {c for c in SCENARIO_RULES if requires_fed_payable(c)} == {"SN017", "SN018"}


def test_sro_requirements():
    assert {c for c in SCENARIO_RULES if scenario_rules.requires_sro(c)} == {
        "SN005", "SN006", "SN007", "SN024", "SN025", "SN028"
    }


def test_exempt_and_zero_rated():
    assert get_rule("SN006").tax_treatment == TaxTreatment.EXEMPT
    assert get_rule("SN007").tax_treatment == TaxTreatment.ZERO_RATED
    assert scenario_rules.is_exempt_or_zero_rated("SN006") is True
    assert scenario_rules.is_exempt_or_zero_rated("SN001") is False
    assert scenario_rules.default_rate_label("SN006") == "Exempt"
    assert scenario_rules.default_rate_label("SN007") == "0%"


def test_services_carry_default_hs_code():
    for code in ("SN018", "SN019"):
        rule = get_rule(code)
        assert rule.default_hs_code == SERVICES_HS_CODE
        assert rule.requires_hs_code is False


@pytest.mark.parametrize(
    "code, label",
    [("SN001", "18%"), ("SN005", "1%"), ("SN010", "17%"), ("SN012", "1.43%"), ("SN017", "8%"), ("SN024", "25%")],
)
def test_default_rate_labels(code, label):
    assert scenario_rules.default_rate_label(code) == label
