from datetime import datetime, timedelta, timezone

import pytest

from domain.billing.service import (
    FlatBillingPolicy,
    MeteredBillingPolicy,
    TariffRuleStore,
    build_billing_policy,
    compute_fee,
    elapsed_minutes,
)
from domain.billing.tariff import BillingMode, TariffRule
from domain.common.exceptions import DomainValidationException

TEST_TARIFF = TariffRule(
    free_minutes=15,
    first_period_minutes=60,
    first_period_price=300,
    unit_minutes=30,
    unit_price=100,
    cap_price=2000,
    deposit_price=1500,
)

START = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)


def _rent(minutes=0, seconds=0, rule=TEST_TARIFF):
    return compute_fee(START, START + timedelta(minutes=minutes, seconds=seconds), rule).rent


def test_elapsed_minutes_rounds_partial_minute_up():
    assert elapsed_minutes(START, START) == 0
    assert elapsed_minutes(START, START + timedelta(seconds=1)) == 1
    assert elapsed_minutes(START, START + timedelta(seconds=60)) == 1
    assert elapsed_minutes(START, START + timedelta(seconds=61)) == 2


def test_end_before_start_is_free():
    assert elapsed_minutes(START, START - timedelta(hours=1)) == 0
    assert compute_fee(START, START - timedelta(hours=1), TEST_TARIFF).rent == 0


@pytest.mark.parametrize(
    "minutes,seconds,expected",
    [
        (0, 0, 0),
        (15, 0, 0),        # free window inclusive
        (15, 1, 300),      # first period starts
        (75, 0, 300),      # free + first period inclusive
        (76, 0, 400),      # one renewal unit
        (105, 0, 400),
        (106, 0, 500),
    ],
)
def test_metered_boundaries(minutes, seconds, expected):
    assert _rent(minutes, seconds) == expected


def test_cap_limits_rent():
    assert _rent(minutes=3 * 24 * 60) == 2000


def test_zero_cap_means_uncapped():
    rule = TariffRule(first_period_minutes=60, first_period_price=300, unit_minutes=30, unit_price=100)
    assert _rent(minutes=60 + 30 * 100, rule=rule) == 300 + 100 * 100


def test_deposit_comes_from_rule():
    fee = compute_fee(START, START + timedelta(minutes=76), TEST_TARIFF)
    assert fee.deposit == 1500
    assert fee.total == 1900


def test_compute_fee_is_deterministic():
    end = START + timedelta(minutes=200, seconds=7)
    assert compute_fee(START, end, TEST_TARIFF) == compute_fee(START, end, TEST_TARIFF)


def test_tariff_rule_rejects_negative_and_zero_unit():
    with pytest.raises(DomainValidationException):
        TariffRule(unit_price=-1)
    with pytest.raises(DomainValidationException):
        TariffRule(unit_minutes=0)


def test_metered_policy_reads_latest_rule():
    store = TariffRuleStore(TEST_TARIFF)
    policy = MeteredBillingPolicy(store.get)
    assert policy.prepay() == 1500
    assert policy.initial_rent() == 0

    store.update(TariffRule(deposit_price=800, first_period_minutes=10, first_period_price=50))
    assert policy.deposit() == 800
    assert policy.quote(START, START + timedelta(minutes=5)).rent == 50


def test_flat_policy_ignores_duration():
    policy = FlatBillingPolicy(rent=0, deposit=15)
    assert policy.prepay() == 15
    assert policy.quote(START, START + timedelta(days=3)).rent == 0


def test_build_billing_policy_switch():
    store = TariffRuleStore(TEST_TARIFF)
    assert build_billing_policy("flat", tariff_store=store, flat_deposit=15).mode is BillingMode.FLAT
    assert build_billing_policy("metered", tariff_store=store).mode is BillingMode.METERED
    with pytest.raises(ValueError):
        build_billing_policy("hourly", tariff_store=store)
