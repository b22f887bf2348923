from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import FrozenSet, List, Mapping, Optional

from fbr_invoicing.modules.mapping.numeric import format_rate


class BuyerRegistrationType(str, Enum):
    REGISTERED = "Registered"
    UNREGISTERED = "Unregistered"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["BuyerRegistrationType"]:
        text = (value or "").strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return None


class TaxTreatment(str, Enum):
    STANDARD = "standard"
    REDUCED = "reduced"
    EXEMPT = "exempt"
    ZERO_RATED = "zero_rated"


ANY_BUYER: FrozenSet[BuyerRegistrationType] = frozenset(BuyerRegistrationType)
REGISTERED_ONLY = frozenset({BuyerRegistrationType.REGISTERED})
UNREGISTERED_ONLY = frozenset({BuyerRegistrationType.UNREGISTERED})

SERVICES_HS_CODE = "9805.9200"
DEFAULT_SALE_TYPE = "Goods at standard rate (default)"


@dataclass(frozen=True)
class ScenarioRule:
    scenario_id: str
    description: str
    sale_type: str
    default_rate: Optional[Decimal]  # percentage; None means exempt
    tax_treatment: TaxTreatment = TaxTreatment.STANDARD
    allowed_buyer_types: FrozenSet[BuyerRegistrationType] = ANY_BUYER
    requires_fixed_notified_value: bool = False
    requires_fed_payable: bool = False
    requires_further_tax: bool = False
    requires_withholding: bool = False
    requires_sro: bool = False
    requires_hs_code: bool = True
    default_hs_code: str = ""
    default_uom: str = ""
    tooltip: str = ""

    @property
    def is_exempt_or_zero_rated(self) -> bool:
        return self.tax_treatment in (TaxTreatment.EXEMPT, TaxTreatment.ZERO_RATED)

    @property
    def default_rate_label(self) -> str:
        if self.tax_treatment == TaxTreatment.EXEMPT or self.default_rate is None:
            return "Exempt"
        return format_rate(self.default_rate)


def _rate(value: str) -> Decimal:
    return Decimal(value)


# Scenario catalogue of the FBR Digital Invoicing system (SN001..SN028).
# Codes outside this table are accepted as authority-assigned custom scenarios.
SCENARIO_RULES_TABLE: List[ScenarioRule] = [
    ScenarioRule("SN001", "Goods at standard rate to registered buyers", DEFAULT_SALE_TYPE, _rate("18"),
                 allowed_buyer_types=REGISTERED_ONLY,
                 tooltip="Not valid for unregistered buyers"),
    ScenarioRule("SN002", "Goods at standard rate to unregistered buyers", DEFAULT_SALE_TYPE, _rate("18"),
                 allowed_buyer_types=UNREGISTERED_ONLY, requires_withholding=True,
                 tooltip="Requires withholding tax at item level"),
    ScenarioRule("SN003", "Sale of Steel (Melted and Re-Rolled)", "Steel melting and re-rolling", _rate("18")),
    ScenarioRule("SN004", "Sale by Ship Breakers", "Ship breaking", _rate("18")),
    ScenarioRule("SN005", "Reduced rate sale", "Goods at Reduced Rate", _rate("1"),
                 tax_treatment=TaxTreatment.REDUCED, requires_sro=True,
                 tooltip="Uses 1% tax rate; SRO schedule reference required"),
    ScenarioRule("SN006", "Exempt goods sale", "Exempt goods", None,
                 tax_treatment=TaxTreatment.EXEMPT, requires_sro=True,
                 tooltip="Tax-exempt goods (0% tax); 6th Schedule reference required"),
    ScenarioRule("SN007", "Zero rated sale", "Goods at zero-rate", _rate("0"),
                 tax_treatment=TaxTreatment.ZERO_RATED, requires_sro=True,
                 tooltip="Zero-rate goods (0% tax); SRO number required"),
    ScenarioRule("SN008", "Sale of 3rd schedule goods", "3rd Schedule Goods", _rate("18"),
                 requires_fixed_notified_value=True,
                 tooltip="Requires fixed notified value or retail price"),
    ScenarioRule("SN009", "Cotton spinners purchase from cotton ginners", "Cotton ginners", _rate("18")),
    ScenarioRule("SN010", "Mobile operators and satellite TV operators sale", "Telecommunication services",
                 _rate("17")),
    ScenarioRule("SN011", "Toll manufacturing sale by steel sector", "Toll Manufacturing", _rate("18")),
    ScenarioRule("SN012", "Sale of petroleum products", "Petroleum Products", _rate("1.43"),
                 tax_treatment=TaxTreatment.REDUCED),
    ScenarioRule("SN013", "Electricity supply to retailers", "Electricity Supply to Retailers", _rate("5"),
                 tax_treatment=TaxTreatment.REDUCED),
    ScenarioRule("SN014", "Sale of gas to CNG stations", "Gas to CNG stations", _rate("18")),
    ScenarioRule("SN015", "Sale of mobile phones", "Mobile Phones", _rate("18")),
    ScenarioRule("SN016", "Processing / conversion of goods", "Processing/Conversion of Goods", _rate("5"),
                 tax_treatment=TaxTreatment.REDUCED),
    ScenarioRule("SN017", "Sale of goods where FED is charged in ST mode", "Goods (FED in ST Mode)", _rate("8"),
                 requires_fed_payable=True,
                 tooltip="Requires FED payable amount"),
    ScenarioRule("SN018", "Sale of services where FED is charged in ST mode", "Services (FED in ST Mode)",
                 _rate("8"), requires_fed_payable=True, requires_hs_code=False,
                 default_hs_code=SERVICES_HS_CODE, default_uom="Numbers, pieces, units",
                 tooltip="Services with FED in ST mode"),
    ScenarioRule("SN019", "Sale of services", "Services", _rate("5"),
                 tax_treatment=TaxTreatment.REDUCED, requires_hs_code=False,
                 default_hs_code=SERVICES_HS_CODE, default_uom="Numbers, pieces, units"),
    ScenarioRule("SN020", "Sale of electric vehicles", "Electric Vehicle", _rate("1"),
                 tax_treatment=TaxTreatment.REDUCED),
    ScenarioRule("SN021", "Sale of cement / concrete block", "Cement /Concrete Block", _rate("18")),
    ScenarioRule("SN022", "Sale of potassium chlorate", "Potassium Chlorate", _rate("18")),
    ScenarioRule("SN023", "Sale of CNG", "CNG Sales", _rate("18")),
    ScenarioRule("SN024", "Goods listed in SRO 297(I)/2023", "Goods as per SRO.297(|)/2023", _rate("25"),
                 requires_sro=True,
                 tooltip="SRO schedule and item serial number required"),
    ScenarioRule("SN025", "Drugs sold at fixed ST rate (Eighth Schedule, serial 81)", "Non-Adjustable Supplies",
                 _rate("1"), tax_treatment=TaxTreatment.REDUCED, requires_sro=True),
    ScenarioRule("SN026", "Sale to end consumer by retailers (standard rate)", DEFAULT_SALE_TYPE, _rate("18"),
                 allowed_buyer_types=UNREGISTERED_ONLY,
                 tooltip="Retail sale to unregistered end consumers"),
    ScenarioRule("SN027", "Sale to end consumer by retailers (3rd schedule)", "3rd Schedule Goods", _rate("18"),
                 allowed_buyer_types=UNREGISTERED_ONLY, requires_fixed_notified_value=True,
                 tooltip="Retail supplies at invoice level"),
    ScenarioRule("SN028", "Sale to end consumer by retailers (reduced rate)", "Goods at Reduced Rate", _rate("1"),
                 tax_treatment=TaxTreatment.REDUCED, allowed_buyer_types=UNREGISTERED_ONLY, requires_sro=True,
                 tooltip="Retail supplies at item level"),
]

SCENARIO_RULES: Mapping[str, ScenarioRule] = MappingProxyType(
    {rule.scenario_id: rule for rule in SCENARIO_RULES_TABLE}
)


def _key(scenario_id: Optional[str]) -> str:
    return (scenario_id or "").strip().upper()


def get_rule(scenario_id: Optional[str]) -> Optional[ScenarioRule]:
    """Rule for a scenario code, or None for unknown/custom codes."""
    return SCENARIO_RULES.get(_key(scenario_id))


def list_rules() -> List[ScenarioRule]:
    return list(SCENARIO_RULES_TABLE)


def is_buyer_type_allowed(scenario_id: Optional[str], registration_type: Optional[str]) -> bool:
    """
    Unknown scenarios allow any buyer type; unrecognized buyer types are never
    allowed by a known scenario.
    """
    rule = get_rule(scenario_id)
    if rule is None:
        return True
    buyer_type = BuyerRegistrationType.parse(registration_type)
    return buyer_type is not None and buyer_type in rule.allowed_buyer_types


def requires_fixed_notified_value(scenario_id: Optional[str]) -> bool:
    rule = get_rule(scenario_id)
    return bool(rule and rule.requires_fixed_notified_value)


def requires_fed_payable(scenario_id: Optional[str]) -> bool:
    rule = get_rule(scenario_id)
    return bool(rule and rule.requires_fed_payable)


def requires_withholding(scenario_id: Optional[str]) -> bool:
    rule = get_rule(scenario_id)
    return bool(rule and rule.requires_withholding)


def requires_sro(scenario_id: Optional[str]) -> bool:
    rule = get_rule(scenario_id)
    return bool(rule and rule.requires_sro)


def is_exempt_or_zero_rated(scenario_id: Optional[str]) -> bool:
    rule = get_rule(scenario_id)
    return bool(rule and rule.is_exempt_or_zero_rated)


def default_sale_type(scenario_id: Optional[str]) -> str:
    rule = get_rule(scenario_id)
    return rule.sale_type if rule else DEFAULT_SALE_TYPE


def default_rate_label(scenario_id: Optional[str]) -> str:
    rule = get_rule(scenario_id)
    return rule.default_rate_label if rule else ""
