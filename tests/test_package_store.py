# tests/test_package_store.py
from decimal import Decimal

import pytest

from mortgage_calc.constants import NEW_HOME_LOAN, REFINANCING_HOME_LOAN
from mortgage_calc.data_models import RatePackage
from mortgage_calc.packages import numeric_rate, reference_rate_table

from conftest import make_package_row


def test_add_and_list_packages(store):
    package_id = store.add_package(make_package_row(id=None, cash_rebate=True, minimum_loan_size="800000"))
    (row,) = store.list_packages()
    assert row["id"] == package_id
    assert row["bank_name"] == "DBS"
    assert row["year2_operator"] == "+"
    assert row["year2_value"] == Decimal("0.5")
    assert row["year3_rate_type"] is None
    assert row["minimum_loan_size"] == Decimal("800000")
    assert row["cash_rebate"] is True
    assert row["legal_fee_subsidy"] is False


def test_listed_rows_feed_the_evaluator(seeded_store):
    rates = reference_rate_table(seeded_store.list_reference_rates())
    packages = [RatePackage.from_row(row) for row in seeded_store.list_packages(NEW_HOME_LOAN)]
    assert [p.package_name for p in packages] == ["Fixed 2Y", "SORA Floating"]
    assert numeric_rate(packages[1], 1, rates) == Decimal("3.2")
    assert numeric_rate(packages[0], 4, rates) == Decimal("3.5")


def test_zero_spread_is_kept(store):
    store.add_package(make_package_row(id=None, year2_value="0"))
    (row,) = store.list_packages()
    assert row["year2_value"] == Decimal("0")


def test_filter_by_loan_type(seeded_store):
    rows = seeded_store.list_packages(REFINANCING_HOME_LOAN)
    assert [row["bank_name"] for row in rows] == ["UOB"]


def test_reference_rates_upsert(store):
    store.set_reference_rate("SORA", Decimal("3.0"))
    store.set_reference_rate("SORA", Decimal("2.85"))
    store.set_reference_rate("SIBOR", Decimal("3.7"))
    assert store.list_reference_rates() == [
        {"rate_type": "SIBOR", "rate_value": Decimal("3.7")},
        {"rate_type": "SORA", "rate_value": Decimal("2.85")},
    ]


def test_remove_package(seeded_store):
    first = seeded_store.list_packages()[0]
    seeded_store.remove_package(first["id"])
    seeded_store.remove_package(9999)
    assert first["id"] not in [row["id"] for row in seeded_store.list_packages()]


def test_add_package_requires_identity(store):
    with pytest.raises(ValueError):
        store.add_package({"bank_name": "DBS"})
