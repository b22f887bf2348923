"""
Order -> FBR invoice mapping.

map_order_to_fbr_invoice is deterministic: the same order always yields the
same invoice. It never reads the clock and never multiplies a line total by
quantity; the only per-unit input is the legacy `unit_price`.
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional, Union

from fbr_invoicing.core.exceptions import MappingError
from fbr_invoicing.models.fbr_invoice import FbrInvoice, FbrInvoiceItem
from fbr_invoicing.models.order import Order, OrderItem
from fbr_invoicing.models.tenant import SellerInfo
from fbr_invoicing.modules.mapping.numeric import (
    ZERO,
    format_invoice_date,
    format_rate,
    normalize_hs_code,
    percent_of,
    round_currency,
)
from fbr_invoicing.modules.mapping.scenario_rules import (
    DEFAULT_SALE_TYPE,
    BuyerRegistrationType,
    ScenarioRule,
    get_rule,
)

logger = logging.getLogger(__name__)

RECONCILE_TOLERANCE = Decimal("0.01")
REDACTED = "***"
_SENSITIVE_KEYS = {"token", "authorization", "password", "secret", "apikey", "api_key"}


# ---------------------------------------------------------------------------
# Line amounts
# ---------------------------------------------------------------------------

def _amount(value: Optional[Decimal]) -> Decimal:
    return round_currency(value) if value is not None else ZERO


def _effective_rate(item: OrderItem, rule: Optional[ScenarioRule]) -> Optional[Decimal]:
    if item.tax_percentage is not None:
        return item.tax_percentage
    if rule is not None and rule.default_rate is not None:
        return rule.default_rate
    return None


def _derive_amounts(item: OrderItem, index: int, rule: Optional[ScenarioRule]):
    """Returns (excluding, tax, including) for one line, all rounded to 2 decimals."""
    # Zero or negative prices count as not provided
    excl = item.price_excluding_tax if item.price_excluding_tax is not None and item.price_excluding_tax > 0 else None
    incl = item.price_including_tax if item.price_including_tax is not None and item.price_including_tax > 0 else None
    tax = item.tax_amount

    if excl is None and incl is None and item.unit_price is not None:
        if item.quantity is None:
            raise MappingError("Quantity is required to price a line from its unit price", "quantity", index)
        excl = item.unit_price * item.quantity

    if excl is None and incl is None:
        raise MappingError("No price information to compute the line value", "valueSalesExcludingST", index)

    if rule is not None and rule.is_exempt_or_zero_rated:
        base = round_currency(excl if excl is not None else incl)
        return base, ZERO, base

    pct = _effective_rate(item, rule)

    if excl is not None and incl is not None:
        excl, incl = round_currency(excl), round_currency(incl)
        derived_tax = incl - excl
        if tax is not None and abs(round_currency(tax) - derived_tax) > RECONCILE_TOLERANCE:
            raise MappingError(
                f"Price including tax {incl} does not equal price excluding tax {excl} plus tax {round_currency(tax)}",
                "salesTaxApplicable",
                index,
            )
        return excl, derived_tax, incl

    if excl is not None:
        excl = round_currency(excl)
        if tax is not None:
            tax = round_currency(tax)
        elif pct is not None:
            tax = percent_of(excl, pct)
        else:
            raise MappingError("Sales tax cannot be derived: no tax amount or rate", "salesTaxApplicable", index)
        return excl, tax, excl + tax

    incl = round_currency(incl)
    if tax is not None:
        tax = round_currency(tax)
        return incl - tax, tax, incl
    if pct is None:
        raise MappingError("Sales tax cannot be derived: no tax amount or rate", "salesTaxApplicable", index)
    excl = round_currency(incl / (Decimal(1) + pct / Decimal(100)))
    return excl, incl - excl, incl


def _rate_label(item: OrderItem, rule: Optional[ScenarioRule], excl: Decimal, tax: Decimal) -> str:
    # Exempt and zero-rated scenarios always report their own label
    if rule is not None and rule.is_exempt_or_zero_rated:
        return rule.default_rate_label
    if item.tax_percentage is not None:
        return format_rate(item.tax_percentage)
    if rule is not None:
        return rule.default_rate_label
    if excl > 0:
        return format_rate(round_currency(tax * Decimal(100) / excl))
    return format_rate(ZERO)


def _map_item(item: OrderItem, index: int, scenario_id: str, rule: Optional[ScenarioRule]) -> FbrInvoiceItem:
    if item.quantity is None or item.quantity <= 0:
        raise MappingError("Quantity must be greater than 0", "quantity", index)

    excl, tax, incl = _derive_amounts(item, index, rule)

    hs_code = normalize_hs_code(item.hs_code)
    if not hs_code and rule is not None:
        hs_code = rule.default_hs_code
    if not hs_code and (rule is None or rule.requires_hs_code):
        raise MappingError("HS code is required", "hsCode", index)

    fixed_value = item.fixed_notified_value_or_retail_price
    if rule is not None and rule.requires_fixed_notified_value and not (fixed_value and fixed_value > 0):
        raise MappingError(
            f"Fixed notified value or retail price is mandatory for scenario {scenario_id}",
            "fixedNotifiedValueOrRetailPrice",
            index,
        )

    fed = _amount(item.fed_payable_tax)
    further = _amount(item.further_tax)
    extra = _amount(item.extra_tax)
    discount = _amount(item.discount)

    sale_type = (item.sale_type or "").strip()
    if not sale_type:
        sale_type = rule.sale_type if rule is not None else DEFAULT_SALE_TYPE

    fields: Dict[str, Any] = {
        "hs_code": hs_code,
        "product_description": item.display_name,
        "rate": _rate_label(item, rule, excl, tax),
        "uom": item.uom or (rule.default_uom if rule is not None else "") or "",
        "quantity": item.quantity,
        "total_values": incl + fed + further + extra - discount,
        "value_sales_excluding_st": excl,
        "fixed_notified_value_or_retail_price": fixed_value,
        "sales_tax_applicable": tax,
        "sales_tax_withheld_at_source": item.sales_tax_withheld_at_source,
        "extra_tax": extra,
        "further_tax": further,
        "fed_payable": fed,
        "discount": discount,
        "sale_type": sale_type,
    }
    if rule is not None and rule.requires_sro:
        fields["sro_schedule_no"] = (item.sro_schedule_number or "").strip()
        fields["sro_item_serial_no"] = (item.sro_item_serial_number or "").strip()

    return FbrInvoiceItem(**fields)


# ---------------------------------------------------------------------------
# Invoice
# ---------------------------------------------------------------------------

def _join(*parts: Optional[str]) -> str:
    return ", ".join(p.strip() for p in parts if p and p.strip())


def _buyer_address(order: Order) -> str:
    if order.buyer_address:
        return order.buyer_address
    return (
        _join(order.shipping_address1, order.shipping_city)
        or _join(order.billing_address1, order.billing_city)
    )


def _registration_type(order: Order) -> str:
    parsed = BuyerRegistrationType.parse(order.buyer_registration_type)
    return parsed.value if parsed else (order.buyer_registration_type or "")


def map_order_to_fbr_invoice(order: Order, seller: Optional[SellerInfo] = None) -> FbrInvoice:
    """
    Build the FBR invoice for an order.

    Seller fields come from the order when it carries them, otherwise from
    `seller`. Raises MappingError when a business rule cannot be satisfied.
    """
    if seller is not None:
        order = order.with_seller_defaults(seller)

    scenario_id = order.scenario_id or ""
    rule = get_rule(scenario_id)
    items = order.items or []
    if not items:
        raise MappingError("Order must have at least one item", "items")

    try:
        invoice_date = format_invoice_date(order.invoice_date)
    except ValueError as e:
        raise MappingError(str(e), "invoiceDate") from e
    if not invoice_date:
        raise MappingError("Invoice date is required", "invoiceDate")

    fbr_items = [_map_item(item, index, scenario_id, rule) for index, item in enumerate(items)]

    if rule is not None and rule.requires_fed_payable:
        if not any(Decimal(i.fed_payable) > 0 for i in fbr_items):
            raise MappingError(f"FED payable is required for scenario {scenario_id}", "fedPayable")

    invoice = FbrInvoice(
        invoice_type=order.invoice_type or "Sale Invoice",
        invoice_date=invoice_date,
        seller_ntncnic=order.seller_ntncnic or "",
        seller_business_name=order.seller_business_name or "",
        seller_province=order.seller_province or "",
        seller_address=order.seller_address or "",
        buyer_ntncnic=order.buyer_ntncnic or "",
        buyer_business_name=order.buyer_business_name or order.email or "",
        buyer_province=order.buyer_province or order.shipping_state or order.billing_state or "",
        buyer_address=_buyer_address(order),
        buyer_registration_type=_registration_type(order),
        invoice_ref_no=order.invoice_ref_no or "",
        scenario_id=scenario_id,
        items=fbr_items,
    )
    logger.debug(f"🧾 Order {order.id or '-'} mapped to FBR invoice ({scenario_id}, {len(fbr_items)} items)")
    return invoice


# ---------------------------------------------------------------------------
# Redaction
# ---------------------------------------------------------------------------

def _is_sensitive_key(key: Any) -> bool:
    name = str(key).lower()
    if name in _SENSITIVE_KEYS:
        return True
    return name.endswith("token") or "password" in name or "secret" in name


def _scrub(value: Any, is_preview: bool) -> Any:
    if isinstance(value, dict):
        cleaned = {}
        for key, inner in value.items():
            if _is_sensitive_key(key):
                if is_preview:
                    cleaned[key] = REDACTED
                continue
            cleaned[key] = _scrub(inner, is_preview)
        return cleaned
    if isinstance(value, list):
        return [_scrub(v, is_preview) for v in value]
    return value


def sanitize(invoice: Union[FbrInvoice, Dict[str, Any]], is_preview: bool) -> Dict[str, Any]:
    """
    Wire dict safe to show or store.

    Credential-like keys are masked as "***" for previews and dropped from
    audit copies. The input is not modified.
    """
    payload = invoice.to_payload() if isinstance(invoice, FbrInvoice) else invoice
    return _scrub(payload, is_preview)


# ---------------------------------------------------------------------------
# Samples
# ---------------------------------------------------------------------------

def create_test_fbr_invoice(
    scenario_id: str = "SN026",
    seller: Optional[SellerInfo] = None,
    invoice_date: Optional[date] = None,
) -> FbrInvoice:
    """Sample invoice that satisfies the rules of `scenario_id`, for integration checks."""
    rule = get_rule(scenario_id)

    buyer_type = BuyerRegistrationType.UNREGISTERED
    if rule is not None and BuyerRegistrationType.UNREGISTERED not in rule.allowed_buyer_types:
        buyer_type = BuyerRegistrationType.REGISTERED

    rate = Decimal("18")
    if rule is not None:
        rate = rule.default_rate if rule.default_rate is not None else ZERO

    item: Dict[str, Any] = {
        "product_name": "Test Product",
        "product_description": "Test product for FBR integration",
        "hs_code": "" if rule is not None and not rule.requires_hs_code else "1234567890",
        "uom": (rule.default_uom if rule is not None and rule.default_uom else "Numbers, pieces, units"),
        "quantity": Decimal("1"),
        "price_excluding_tax": Decimal("1000"),
        "tax_percentage": rate,
    }
    if rule is not None and rule.requires_fixed_notified_value:
        item["fixed_notified_value_or_retail_price"] = Decimal("1000")
    if rule is not None and rule.requires_fed_payable:
        item["fed_payable_tax"] = Decimal("50")
    if rule is not None and rule.requires_withholding:
        item["sales_tax_withheld_at_source"] = percent_of(Decimal("1000"), rate)
    if rule is not None and rule.requires_sro:
        item["sro_schedule_number"] = "SRO 297(I)/2023"
        item["sro_item_serial_number"] = "1"

    order = Order(
        id=f"TEST-{scenario_id}",
        email="test@example.com",
        scenario_id=scenario_id,
        invoice_type="Sale Invoice",
        invoice_date=invoice_date or date.today(),
        buyer_registration_type=buyer_type.value,
        buyer_ntncnic="1234567" if buyer_type == BuyerRegistrationType.REGISTERED else "",
        buyer_business_name="Test Buyer",
        buyer_province="Punjab",
        buyer_address="Test Address, Lahore",
        items=[OrderItem(**item)],
    )
    return map_order_to_fbr_invoice(order, seller)
