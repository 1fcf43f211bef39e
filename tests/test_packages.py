# tests/test_packages.py
import logging
from decimal import Decimal

import pytest

from mortgage_calc.constants import NEW_HOME_LOAN, REFINANCING_HOME_LOAN
from mortgage_calc.data_models import PackageSearch, RatePackage
from mortgage_calc.packages import (
    average_first_2_years,
    display_rate,
    format_rate_display,
    monthly_installment,
    numeric_rate,
    parse_lock_in_period,
    reference_rate_table,
    search_packages,
    total_savings,
)


def test_from_row_maps_year_terms(package_factory):
    pkg = package_factory(cash_rebate=True, legal_fee_subsidy="false")
    assert pkg.term(1).rate_type == "FIXED"
    assert pkg.term(2).operator == "+"
    assert pkg.term(2).value == Decimal("0.5")
    assert not pkg.term(3).is_complete
    assert pkg.features["cash_rebate"] is True
    assert pkg.features["legal_fee_subsidy"] is False


def test_fixed_and_floating_rates(package_factory, reference_rates):
    pkg = package_factory()
    assert numeric_rate(pkg, 1, reference_rates) == Decimal("3.0")
    assert numeric_rate(pkg, 2, reference_rates) == Decimal("3.5")


def test_missing_year_falls_back_to_thereafter(package_factory, reference_rates):
    pkg = package_factory()
    assert numeric_rate(pkg, 3, reference_rates) == Decimal("3.5")
    assert display_rate(pkg, 5, reference_rates) == Decimal("3.5")


def test_missing_year_without_thereafter_is_zero(package_factory, reference_rates):
    pkg = package_factory(thereafter_rate_type=None, thereafter_value=None)
    assert numeric_rate(pkg, 3, reference_rates) == 0
    assert format_rate_display(pkg, 3, reference_rates) == "-"


def test_subtraction_floors_only_for_display(package_factory, reference_rates):
    pkg = package_factory(year2_operator="-", year2_value="4")
    assert numeric_rate(pkg, 2, reference_rates) == Decimal("-1.0")
    assert display_rate(pkg, 2, reference_rates) == 0


def test_unknown_operator(package_factory, reference_rates):
    pkg = package_factory(year2_operator="*")
    assert numeric_rate(pkg, 2, reference_rates) == Decimal("2.5")
    assert display_rate(pkg, 2, reference_rates) == Decimal("3.0")


def test_unknown_reference_rate_logs_warning(package_factory, reference_rates, caplog):
    pkg = package_factory(year2_rate_type="LIBOR")
    with caplog.at_level(logging.WARNING, logger="mortgage_calc.packages"):
        assert numeric_rate(pkg, 2, reference_rates) == 0
    assert "LIBOR" in caplog.text


def test_average_first_two_years(package_factory, reference_rates):
    assert average_first_2_years(package_factory(), reference_rates) == Decimal("3.25")
    assert average_first_2_years(package_factory(year1_value="0"), reference_rates) == Decimal("3.5")
    assert average_first_2_years(package_factory(year2_rate_type="LIBOR"), reference_rates) == Decimal("3.0")


def test_format_rate_display(package_factory, reference_rates):
    pkg = package_factory()
    assert format_rate_display(pkg, 1, reference_rates) == "3.00% Fixed"
    assert format_rate_display(pkg, 2, reference_rates) == "SORA + 0.50%"


def test_reference_rate_table():
    table = reference_rate_table([{"rate_type": "SORA", "rate_value": 3.1}, {"rate_type": "BOARD", "rate_value": None}])
    assert table == {"SORA": Decimal("3.1"), "BOARD": Decimal("0")}


def test_monthly_installment_and_savings_helpers():
    assert monthly_installment(Decimal("500000"), 25, Decimal("0")) == 0
    assert monthly_installment(Decimal("0"), 25, Decimal("3")) == 0
    assert float(monthly_installment(Decimal("500000"), 25, Decimal("4"))) == pytest.approx(2639.18, abs=0.01)
    assert parse_lock_in_period("3 Years") == 3
    assert parse_lock_in_period("No lock-in") == 0
    assert parse_lock_in_period(None) == 0
    assert total_savings(Decimal("100"), "2 Years") == Decimal("2400")
    assert total_savings(Decimal("100"), None) == 0


def _catalogue(package_factory):
    return [
        package_factory(id=1, bank_name="DBS", package_name="Fixed 2Y"),
        package_factory(
            id=2,
            bank_name="OCBC",
            package_name="SORA Floating",
            rate_type_category="Floating",
            lock_period=None,
            year1_rate_type="SORA",
            year1_operator="+",
            year1_value="0.2",
            partial_repayment=True,
        ),
        package_factory(id=3, bank_name="UOB", package_name="Jumbo", minimum_loan_size="1000000"),
        package_factory(id=4, bank_name="HSBC", package_name="Refi", loan_type=REFINANCING_HOME_LOAN),
    ]


def test_search_sorts_by_average_rate(package_factory, reference_rates):
    quotes = search_packages(_catalogue(package_factory), PackageSearch(loan_type=NEW_HOME_LOAN), reference_rates)
    assert [q.package.id for q in quotes] == [1, 3, 2]
    assert quotes[0].avg_first_2_years == Decimal("3.25")
    assert quotes[-1].avg_first_2_years == Decimal("3.35")
    assert quotes[0].monthly_installment == monthly_installment(Decimal("500000"), 25, Decimal("3.25"))


def test_search_filters(package_factory, reference_rates):
    packages = _catalogue(package_factory)

    def ids(**criteria):
        search = PackageSearch(loan_type=criteria.pop("loan_type", NEW_HOME_LOAN), **criteria)
        return [q.package.id for q in search_packages(packages, search, reference_rates)]

    assert ids(loan_amount=Decimal("600000")) == [1, 2]
    assert ids(rate_type="Floating") == [2]
    assert ids(lock_period="0 Year") == [2]
    assert ids(banks=("DBS", "UOB")) == [1, 3]
    assert ids(features=("partial_repayment",)) == [2]
    assert ids(property_type="hdb") == []
    assert ids(loan_type=REFINANCING_HOME_LOAN) == [4]
    assert ids(loan_type=REFINANCING_HOME_LOAN, existing_bank="HSBC") == []


def test_refinancing_search_reports_savings(package_factory, reference_rates):
    search = PackageSearch(
        loan_type=REFINANCING_HOME_LOAN,
        loan_amount=Decimal("400000"),
        loan_tenure=20,
        existing_interest_rate=Decimal("4.2"),
    )
    (quote,) = search_packages(_catalogue(package_factory), search, reference_rates)
    expected = monthly_installment(Decimal("400000"), 20, Decimal("4.2")) - monthly_installment(
        Decimal("400000"), 20, Decimal("3.25")
    )
    assert quote.monthly_savings == expected
    assert quote.total_savings == expected * 2 * 12


def test_package_without_rows_is_skipped_gracefully(reference_rates):
    pkg = RatePackage.from_row({"loan_type": NEW_HOME_LOAN, "bank_name": "SCB", "package_name": "Empty"})
    (quote,) = search_packages([pkg], PackageSearch(loan_type=NEW_HOME_LOAN), reference_rates)
    assert quote.avg_first_2_years == 0
    assert quote.monthly_installment == 0


def test_non_finite_values_read_as_missing(package_factory, reference_rates):
    pkg = package_factory(year1_value="NaN", year2_value="Infinity", minimum_loan_size="inf")
    assert pkg.term(1).value is None
    assert pkg.term(2).value is None
    assert pkg.minimum_loan_size is None
    assert numeric_rate(pkg, 1, reference_rates) == Decimal("3.5")
    assert average_first_2_years(pkg, reference_rates) == Decimal("3.5")


def test_blank_value_reads_as_zero(package_factory, reference_rates):
    pkg = package_factory(year2_value="")
    assert pkg.term(2).value == Decimal("0")
    assert pkg.term(2).is_complete
    assert numeric_rate(pkg, 2, reference_rates) == Decimal("3.0")
