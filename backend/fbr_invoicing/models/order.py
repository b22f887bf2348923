# fbr_invoicing/models/order.py
#
# Commerce order as handed over by the order layer. Read-only to the FBR core.
# Every monetary field on OrderItem is a LINE TOTAL (already multiplied by
# quantity); only `unit_price` is per unit.

from __future__ import annotations
from typing import Optional, List, Union
from datetime import date, datetime
from decimal import Decimal
from pydantic import BaseModel, Field, ConfigDict, SecretStr, field_validator

from fbr_invoicing.modules.mapping.numeric import to_decimal


_DECIMAL_FIELDS = (
    "quantity",
    "tax_amount",
    "tax_percentage",
    "price_including_tax",
    "price_excluding_tax",
    "extra_tax",
    "further_tax",
    "fed_payable_tax",
    "discount",
    "sales_tax_withheld_at_source",
    "fixed_notified_value_or_retail_price",
    "unit_price",
)


class OrderItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Product
    product_name: Optional[str] = Field("", alias="productName")
    product_description: Optional[str] = Field("", alias="productDescription")
    sku: Optional[str] = ""
    hs_code: Optional[Union[str, int, float]] = Field("", alias="hsCode")
    quantity: Optional[Decimal] = None
    uom: Optional[str] = ""

    # Line totals
    tax_amount: Optional[Decimal] = Field(None, alias="taxAmount")
    tax_percentage: Optional[Decimal] = Field(None, alias="taxPercentage")
    price_including_tax: Optional[Decimal] = Field(None, alias="priceIncludingTax")
    price_excluding_tax: Optional[Decimal] = Field(None, alias="priceExcludingTax")
    extra_tax: Optional[Decimal] = Field(None, alias="extraTax")
    further_tax: Optional[Decimal] = Field(None, alias="furtherTax")
    fed_payable_tax: Optional[Decimal] = Field(None, alias="fedPayableTax")
    discount: Optional[Decimal] = None
    sales_tax_withheld_at_source: Optional[Decimal] = Field(None, alias="salesTaxWithheldAtSource")
    fixed_notified_value_or_retail_price: Optional[Decimal] = Field(None, alias="fixedNotifiedValueOrRetailPrice")

    # Legacy per-unit price (older orders only carry this)
    unit_price: Optional[Decimal] = Field(None, alias="price")

    sale_type: Optional[str] = Field("", alias="saleType")
    sro_schedule_number: Optional[str] = Field("", alias="sroScheduleNumber")
    sro_item_serial_number: Optional[str] = Field("", alias="itemSerialNumber")

    @field_validator(*_DECIMAL_FIELDS, mode="before")
    @classmethod
    def _lenient_decimal(cls, value):
        return to_decimal(value)

    @property
    def display_name(self) -> str:
        return self.product_description or self.product_name or self.sku or ""


class Order(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    email: Optional[str] = ""
    currency: Optional[str] = "PKR"

    # Buyer
    buyer_ntncnic: Optional[str] = Field("", alias="buyerNTNCNIC")
    buyer_business_name: Optional[str] = Field("", alias="buyerBusinessName")
    buyer_province: Optional[str] = Field("", alias="buyerProvince")
    buyer_address: Optional[str] = Field("", alias="buyerAddress")
    buyer_registration_type: Optional[str] = Field("", alias="buyerRegistrationType")

    # Buyer fallbacks from the shipping/billing blocks
    shipping_address1: Optional[str] = Field("", alias="shippingAddress1")
    shipping_city: Optional[str] = Field("", alias="shippingCity")
    shipping_state: Optional[str] = Field("", alias="shippingState")
    billing_address1: Optional[str] = Field("", alias="billingAddress1")
    billing_city: Optional[str] = Field("", alias="billingCity")
    billing_state: Optional[str] = Field("", alias="billingState")

    # Seller
    seller_ntncnic: Optional[str] = Field("", alias="sellerNTNCNIC")
    seller_business_name: Optional[str] = Field("", alias="sellerBusinessName")
    seller_province: Optional[str] = Field("", alias="sellerProvince")
    seller_address: Optional[str] = Field("", alias="sellerAddress")

    # Invoice classification
    invoice_type: Optional[str] = Field("Sale Invoice", alias="invoiceType")
    invoice_ref_no: Optional[str] = Field("", alias="invoiceRefNo")
    scenario_id: Optional[str] = Field("", alias="scenarioId")
    invoice_date: Optional[Union[datetime, date, str]] = Field(None, alias="invoiceDate")

    items: List[OrderItem] = Field(default_factory=list)

    # Environment / credential overrides
    fbr_sandbox_token: Optional[SecretStr] = Field(None, alias="fbrSandboxToken")
    fbr_production_token: Optional[SecretStr] = Field(None, alias="productionToken")
    fbr_base_url: Optional[str] = Field(None, alias="fbrBaseUrl")
    is_production_submission: bool = Field(False, alias="isProductionSubmission")

    @field_validator("fbr_sandbox_token", "fbr_production_token", mode="before")
    @classmethod
    def _blank_token_is_none(cls, value):
        if value is None:
            return None
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def token_for(self, is_production: bool) -> Optional[str]:
        """Token supplied on the order for the given environment, never the other one."""
        secret = self.fbr_production_token if is_production else self.fbr_sandbox_token
        return secret.get_secret_value() if secret else None

    def with_seller_defaults(self, seller) -> "Order":
        """Copy of the order with empty seller fields filled from a SellerInfo."""
        if seller is None:
            return self
        updates = {}
        if not (self.seller_ntncnic or self.seller_business_name):
            updates = {
                "seller_ntncnic": seller.ntncnic or "",
                "seller_business_name": seller.business_name or "",
                "seller_province": self.seller_province or seller.province or "",
                "seller_address": self.seller_address or seller.address or "",
            }
        return self.model_copy(update=updates) if updates else self


class OrderValidationResult(BaseModel):
    is_valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
