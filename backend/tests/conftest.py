from __future__ import annotations

import copy
from typing import Any, Dict

import pytest

BASE_ORDER: Dict[str, Any] = {
    "id": "ORD-1001",
    "email": "buyer@example.com",
    "scenarioId": "SN026",
    "invoiceType": "Sale Invoice",
    "invoiceDate": "2025-06-15",
    "buyerRegistrationType": "Unregistered",
    "buyerBusinessName": "Walk-in Customer",
    "buyerProvince": "Punjab",
    "buyerAddress": "Mall Road, Lahore",
    "sellerNTNCNIC": "8885801",
    "sellerBusinessName": "Acme Traders",
    "sellerProvince": "Sindh",
    "sellerAddress": "Shahrah-e-Faisal, Karachi",
    "items": [
        {
            "productName": "Widget",
            "productDescription": "Steel widget",
            "hsCode": "0101.2100",
            "uom": "Numbers, pieces, units",
            "quantity": 2,
            "priceExcludingTax": 100,
            "taxPercentage": 17,
        }
    ],
}


@pytest.fixture
def order_payload():
    """Factory returning a fresh camelCase order body; keyword args override top-level keys."""
    def _make(**overrides: Any) -> Dict[str, Any]:
        body = copy.deepcopy(BASE_ORDER)
        body.update(overrides)
        return body
    return _make
