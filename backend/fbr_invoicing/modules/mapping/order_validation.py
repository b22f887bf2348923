"""
Pre-flight checks on a commerce order before it is mapped and sent to FBR.

validate_order_for_fbr never raises: every problem found is collected so the
caller can show them all at once. Nothing here touches the network.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import List, Optional

from fbr_invoicing.models.order import Order, OrderItem, OrderValidationResult
from fbr_invoicing.modules.mapping import scenario_rules
from fbr_invoicing.modules.mapping.numeric import format_invoice_date, normalize_hs_code
from fbr_invoicing.modules.mapping.scenario_rules import BuyerRegistrationType

logger = logging.getLogger(__name__)

DEBIT_NOTE = "debit note"


def _positive(value: Optional[Decimal]) -> bool:
    return value is not None and value > 0


def _has_pricing_basis(item: OrderItem) -> bool:
    if _positive(item.price_excluding_tax) or _positive(item.price_including_tax):
        return True
    return _positive(item.unit_price)


def _check_item(item: OrderItem, index: int, scenario_id: str, errors: List[str]) -> None:
    label = f"Item {index + 1}"
    rule = scenario_rules.get_rule(scenario_id)

    if not (item.product_name or item.product_description):
        errors.append(f"{label}: Product name or description is required")

    if not _positive(item.quantity):
        errors.append(f"{label}: Quantity must be greater than 0")

    if not _has_pricing_basis(item):
        errors.append(f"{label}: A price (excluding tax, including tax or unit price) is required")

    hs_code = normalize_hs_code(item.hs_code)
    if not hs_code:
        has_default = bool(rule and rule.default_hs_code)
        if not has_default:
            errors.append(f"{label}: HS code is required")

    if scenario_rules.requires_sro(scenario_id) and not (item.sro_schedule_number or "").strip():
        errors.append(f"{label}: SRO schedule number is required for scenario {scenario_id}")


def validate_order_for_fbr(order: Order) -> OrderValidationResult:
    errors: List[str] = []
    warnings: List[str] = []

    scenario_id = (order.scenario_id or "").strip().upper()
    items = order.items or []

    if not scenario_id:
        errors.append("Order must have a scenarioId")

    if not items:
        errors.append("Order must have at least one item")

    if not order.invoice_date:
        errors.append("Invoice date is required")
    else:
        try:
            format_invoice_date(order.invoice_date)
        except ValueError:
            errors.append(f"Invoice date is not a valid date: {order.invoice_date}")

    # Buyer
    buyer_type = BuyerRegistrationType.parse(order.buyer_registration_type)
    if buyer_type is None:
        errors.append("Buyer registration type must be Registered or Unregistered")
    elif scenario_id and not scenario_rules.is_buyer_type_allowed(scenario_id, buyer_type.value):
        errors.append(f"Scenario {scenario_id} is not allowed for {buyer_type.value} buyers")

    if buyer_type == BuyerRegistrationType.REGISTERED and not (order.buyer_ntncnic or "").strip():
        errors.append("Registered buyer must have NTN/CNIC")

    if (order.invoice_type or "").strip().lower() == DEBIT_NOTE and not (order.invoice_ref_no or "").strip():
        errors.append("Debit Note must have an invoice reference number")

    # Seller
    if not (order.seller_ntncnic or "").strip():
        errors.append("Seller NTN/CNIC is required")
    if not (order.seller_business_name or "").strip():
        errors.append("Seller business name is required")

    for index, item in enumerate(items):
        _check_item(item, index, scenario_id, errors)

    # Scenario-wide requirements
    if items and scenario_rules.requires_fixed_notified_value(scenario_id):
        if not any(_positive(item.fixed_notified_value_or_retail_price) for item in items):
            errors.append(
                f"Scenario {scenario_id} requires a fixed notified value or retail price on at least one item"
            )

    if items and scenario_rules.requires_fed_payable(scenario_id):
        if not any(_positive(item.fed_payable_tax) for item in items):
            errors.append(f"Scenario {scenario_id} requires FED payable on at least one item")

    if items and scenario_rules.requires_withholding(scenario_id):
        withheld = any(
            _positive(item.sales_tax_withheld_at_source) or _positive(item.extra_tax) for item in items
        )
        if not withheld:
            warnings.append(f"Scenario {scenario_id} typically requires withholding tax at item level")
            logger.warning(f"⚠️ Scenario {scenario_id} without item-level withholding tax")

    return OrderValidationResult(is_valid=not errors, errors=errors, warnings=warnings)
