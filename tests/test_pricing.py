"""
Tests para la calculadora de precios
"""
import pytest
from datetime import datetime

from rentspace.errors import InvalidRangeError, NoPricingAvailableError
from rentspace.schemas.booking import DurationUnit, PriceType
from rentspace.services.pricing import (
    billable_days,
    calculate_price,
    quote_extension,
    select_price_type,
    service_fee_for,
)

def listing(**rates):
    return {"pricing": {**rates, "currency": "PKR"}, "policies": {"deposit": {"amount": 5000}}}

def test_daily_three_days():
    """1000/día del 1 al 4 de enero: 3000 + 150 de comisión"""
    price = calculate_price(listing(daily=1000), datetime(2024, 1, 1), datetime(2024, 1, 4))
    assert price.price_type == PriceType.daily
    assert price.duration_value == 3 and price.duration_unit == DurationUnit.days
    assert price.subtotal == 3000
    assert price.service_fee == 150
    assert price.total_amount == 3150

def test_weekly_fallback_rounds_up_to_one_week():
    price = calculate_price(listing(weekly=7000), datetime(2024, 1, 1), datetime(2024, 1, 4))
    assert price.price_type == PriceType.weekly
    assert price.duration_value == 1 and price.duration_unit == DurationUnit.weeks
    assert price.subtotal == 7000
    assert price.total_amount == 7350

def test_requested_price_type_used_when_rate_exists():
    rates = listing(daily=1000, weekly=6000)
    price = calculate_price(rates, datetime(2024, 1, 1), datetime(2024, 1, 15), PriceType.weekly)
    assert price.price_type == PriceType.weekly
    assert price.duration_value == 2
    assert price.subtotal == 12000

def test_requested_price_type_without_rate_falls_back():
    price = calculate_price(listing(daily=1000), datetime(2024, 1, 1), datetime(2024, 1, 2), PriceType.monthly)
    assert price.price_type == PriceType.daily

def test_fallback_order():
    assert select_price_type({"hourly": 100, "monthly": 20000}) == PriceType.monthly
    assert select_price_type({"hourly": 100, "weekly": 0}) == PriceType.hourly
    assert select_price_type({"daily": 0, "weekly": 5000, "monthly": 15000}) == PriceType.weekly

def test_hourly_counts_whole_days():
    price = calculate_price(listing(hourly=200), datetime(2024, 1, 1, 9), datetime(2024, 1, 1, 12))
    assert price.duration_unit == DurationUnit.hours
    assert price.duration_value == 24
    assert price.subtotal == 4800

def test_monthly_conversion():
    price = calculate_price(listing(monthly=30000), datetime(2024, 1, 1), datetime(2024, 3, 1))
    # 60 días -> 2 meses
    assert price.duration_value == 2
    assert price.subtotal == 60000

def test_partial_day_rounds_up():
    assert billable_days(datetime(2024, 1, 1), datetime(2024, 1, 2, 1)) == 2
    assert billable_days(datetime(2024, 1, 1, 10), datetime(2024, 1, 1, 11)) == 1

def test_zero_length_range_is_one_day():
    assert billable_days(datetime(2024, 1, 1), datetime(2024, 1, 1)) == 1

def test_no_pricing_available():
    with pytest.raises(NoPricingAvailableError):
        calculate_price(listing(daily=0, weekly=None), datetime(2024, 1, 1), datetime(2024, 1, 2))

def test_service_fee_rounds_half_up():
    assert service_fee_for(10) == 1      # 0.5 -> 1
    assert service_fee_for(29) == 1      # 1.45 -> 1
    assert service_fee_for(30) == 2      # 1.5 -> 2
    assert service_fee_for(0) == 0

def test_deposit_copied_not_added():
    price = calculate_price(listing(daily=1000), datetime(2024, 1, 1), datetime(2024, 1, 2))
    assert price.deposit == 5000
    assert price.total_amount == price.subtotal + price.service_fee

def test_deterministic_and_total_invariant():
    rates = listing(daily=1234, weekly=7000)
    for end_day in range(2, 28):
        a = calculate_price(rates, datetime(2024, 1, 1), datetime(2024, 1, end_day))
        b = calculate_price(rates, datetime(2024, 1, 1), datetime(2024, 1, end_day))
        assert a == b
        assert a.subtotal + a.service_fee == a.total_amount

def test_pricing_doc_shape():
    doc = calculate_price(listing(daily=1000), datetime(2024, 1, 1), datetime(2024, 1, 4)).pricing_doc()
    assert doc == {
        "price_type": "daily",
        "unit_price": 1000,
        "subtotal": 3000,
        "service_fee": 150,
        "additional_fees": [],
        "deposit": 5000,
        "total_amount": 3150,
        "currency": "PKR",
    }

def test_quote_extension_uses_frozen_rate():
    pricing = {"price_type": "daily", "unit_price": 1000}
    assert quote_extension(pricing, datetime(2024, 1, 4), datetime(2024, 1, 6)) == 2100

def test_quote_extension_requires_later_end():
    with pytest.raises(InvalidRangeError):
        quote_extension({"price_type": "daily", "unit_price": 1000}, datetime(2024, 1, 4), datetime(2024, 1, 4))
