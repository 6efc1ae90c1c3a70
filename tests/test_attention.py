import os
import sys
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from kitchen_inventory.services.attention import (
    AttentionThresholds,
    attention_reasons,
)


TODAY = date(2024, 5, 10)


def _item(quantity, expiry=None):
    return SimpleNamespace(quantity=Decimal(quantity), expiry_date=expiry)


def test_low_stock_is_strictly_below_threshold():
    assert attention_reasons(_item("4.999"), today=TODAY) == ["Low stock"]
    assert attention_reasons(_item("5"), today=TODAY) == []


def test_expiry_reasons():
    assert attention_reasons(_item("10", date(2024, 5, 9)), today=TODAY) == ["Expired"]
    assert attention_reasons(_item("10", date(2024, 5, 17)), today=TODAY) == ["Expiring soon"]
    assert attention_reasons(_item("10", date(2024, 5, 18)), today=TODAY) == []


def test_custom_thresholds_and_combined_reasons():
    thresholds = AttentionThresholds(low_stock_threshold=Decimal("1"), expiring_soon_days=0)

    assert attention_reasons(_item("0.5", TODAY), thresholds, TODAY) == [
        "Low stock",
        "Expiring soon",
    ]
    assert attention_reasons(_item("2", date(2024, 5, 11)), thresholds, TODAY) == []
