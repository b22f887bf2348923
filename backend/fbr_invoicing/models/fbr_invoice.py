# fbr_invoicing/models/fbr_invoice.py
#
# Invoice in the shape the FBR Digital Invoicing API expects. Field aliases are
# the authority's wire names; python attributes are snake_case.

from __future__ import annotations
from typing import Any, Dict, List, Optional
from decimal import Decimal
from pydantic import BaseModel, Field, ConfigDict, field_validator, field_serializer

from fbr_invoicing.modules.mapping.numeric import format_currency, round_quantity, to_decimal


_CURRENCY_FIELDS = (
    "total_values",
    "value_sales_excluding_st",
    "fixed_notified_value_or_retail_price",
    "sales_tax_applicable",
    "sales_tax_withheld_at_source",
    "extra_tax",
    "further_tax",
    "fed_payable",
    "discount",
)


class FbrInvoiceItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    hs_code: str = Field("", alias="hsCode")
    product_description: str = Field("", alias="productDescription")
    rate: str = ""
    uom: str = Field("", alias="uoM")
    quantity: Decimal = Decimal("0")

    # Currency amounts travel as fixed 2-decimal strings
    total_values: str = Field("0.00", alias="totalValues")
    value_sales_excluding_st: str = Field("0.00", alias="valueSalesExcludingST")
    fixed_notified_value_or_retail_price: str = Field("0.00", alias="fixedNotifiedValueOrRetailPrice")
    sales_tax_applicable: str = Field("0.00", alias="salesTaxApplicable")
    sales_tax_withheld_at_source: str = Field("0.00", alias="salesTaxWithheldAtSource")
    extra_tax: str = Field("0.00", alias="extraTax")
    further_tax: str = Field("0.00", alias="furtherTax")
    fed_payable: str = Field("0.00", alias="fedPayable")
    discount: str = "0.00"

    sro_schedule_no: Optional[str] = Field(None, alias="sroScheduleNo")
    sale_type: str = Field("", alias="saleType")
    sro_item_serial_no: Optional[str] = Field(None, alias="sroItemSerialNo")

    @field_validator(*_CURRENCY_FIELDS, mode="before")
    @classmethod
    def _as_currency_string(cls, value):
        d = to_decimal(value)
        return format_currency(d) if d is not None else "0.00"

    @field_validator("quantity", mode="before")
    @classmethod
    def _as_quantity(cls, value):
        d = to_decimal(value)
        return round_quantity(d) if d is not None else Decimal("0")

    @field_serializer("quantity")
    def _quantity_as_number(self, value: Decimal):
        # FBR accepts up to 4 decimals; whole quantities go out as integers
        return int(value) if value == value.to_integral_value() else float(value)


class FbrInvoice(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    invoice_type: str = Field("Sale Invoice", alias="invoiceType")
    invoice_date: str = Field("", alias="invoiceDate")

    seller_ntncnic: str = Field("", alias="sellerNTNCNIC")
    seller_business_name: str = Field("", alias="sellerBusinessName")
    seller_province: str = Field("", alias="sellerProvince")
    seller_address: str = Field("", alias="sellerAddress")

    buyer_ntncnic: str = Field("", alias="buyerNTNCNIC")
    buyer_business_name: str = Field("", alias="buyerBusinessName")
    buyer_province: str = Field("", alias="buyerProvince")
    buyer_address: str = Field("", alias="buyerAddress")
    buyer_registration_type: str = Field("", alias="buyerRegistrationType")

    invoice_ref_no: str = Field("", alias="invoiceRefNo")
    scenario_id: str = Field("", alias="scenarioId")

    items: List[FbrInvoiceItem] = Field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        """Wire dict for the FBR API (alias names, unset optional fields omitted)."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")
