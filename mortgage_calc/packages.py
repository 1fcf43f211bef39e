"""Rate package evaluation and ranking.

A package quotes each loan year either as a ``FIXED`` rate or as a reference
rate (SORA and friends) plus or minus a spread. Two resolvers exist because
the comparison and display paths disagree on subtraction: the comparison
path used for ranking does not floor ``reference - spread`` at zero, the
display path does.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal, getcontext
from typing import Dict, Iterable, List, Mapping, Optional

from .constants import (
    DEFAULT_LOCK_PERIOD,
    DEFAULT_QUOTE_LOAN_AMOUNT,
    DEFAULT_QUOTE_TENURE,
    REFINANCING_HOME_LOAN,
    THEREAFTER,
)
from .data_models import PackageQuote, PackageSearch, RatePackage, RateTerm, Year
from .engine import calculate_annuity_payment

getcontext().prec = 28

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
FIXED = "FIXED"


def reference_rate_table(rows: Iterable[Mapping[str, object]]) -> Dict[str, Decimal]:
    """Map ``{rate_type, rate_value}`` rows to ``{rate_type: Decimal}``."""
    table: Dict[str, Decimal] = {}
    for row in rows:
        value = row.get("rate_value")
        table[str(row["rate_type"])] = Decimal(str(value)) if value not in (None, "") else ZERO
    return table


def _term_for(pkg: RatePackage, year: Year) -> Optional[RateTerm]:
    """Return the term to evaluate, falling back to ``thereafter``; None if neither is usable."""
    term = pkg.term(year)
    if term.is_complete:
        return term
    thereafter = pkg.term(THEREAFTER)
    if thereafter.is_complete:
        return thereafter
    return None


def _reference_value(rate_type: str, reference_rates: Mapping[str, Decimal]) -> Optional[Decimal]:
    value = reference_rates.get(rate_type)
    if value is None:
        logger.warning("Reference rate type not found: %s", rate_type)
    return value


def numeric_rate(pkg: RatePackage, year: Year, reference_rates: Mapping[str, Decimal]) -> Decimal:
    """Effective annual rate used when comparing and ranking packages."""
    term = _term_for(pkg, year)
    if term is None:
        return ZERO
    if term.rate_type == FIXED:
        return term.value
    reference = _reference_value(term.rate_type, reference_rates)
    if reference is None:
        return ZERO
    if term.operator == "+":
        return reference + term.value
    return reference - term.value


def display_rate(pkg: RatePackage, year: Year, reference_rates: Mapping[str, Decimal]) -> Decimal:
    """Effective annual rate shown in rate schedules; never negative."""
    term = _term_for(pkg, year)
    if term is None:
        return ZERO
    if term.rate_type == FIXED:
        return term.value
    reference = _reference_value(term.rate_type, reference_rates)
    if reference is None:
        return ZERO
    if term.operator == "+":
        return reference + term.value
    if term.operator == "-":
        return max(ZERO, reference - term.value)
    return reference


def format_rate_display(pkg: RatePackage, year: Year, reference_rates: Mapping[str, Decimal]) -> str:
    """Render a year's rate as ``"3.50% Fixed"``, ``"SORA + 0.30%"`` or ``"-"``."""
    term = _term_for(pkg, year)
    if term is None:
        return "-"
    if term.rate_type == FIXED:
        return f"{display_rate(pkg, year, reference_rates):.2f}% Fixed"
    operator = "+" if term.operator == "+" else "-"
    return f"{term.rate_type} {operator} {term.value:.2f}%"


def average_first_2_years(pkg: RatePackage, reference_rates: Mapping[str, Decimal]) -> Decimal:
    """Average of the year 1 and year 2 rates; a zero rate counts as missing."""
    year1 = numeric_rate(pkg, 1, reference_rates)
    year2 = numeric_rate(pkg, 2, reference_rates)
    if year1 == 0:
        return year2
    if year2 == 0:
        return year1
    return (year1 + year2) / 2


def monthly_installment(principal: Decimal, tenure_years: int, annual_rate: Decimal) -> Decimal:
    if not principal or not tenure_years or not annual_rate:
        return ZERO
    return calculate_annuity_payment(principal, annual_rate, tenure_years * 12)


def monthly_savings(loan_amount: Decimal, tenure_years: int, current_rate: Decimal, new_rate: Decimal) -> Decimal:
    return monthly_installment(loan_amount, tenure_years, current_rate) - monthly_installment(
        loan_amount, tenure_years, new_rate
    )


def parse_lock_in_period(lock_period: Optional[str]) -> int:
    """Years of lock-in from strings like ``"2 Years"``; 0 when absent."""
    if not lock_period:
        return 0
    match = re.search(r"(\d+)", lock_period)
    return int(match.group(1)) if match else 0


def total_savings(savings_per_month: Decimal, lock_period: Optional[str]) -> Decimal:
    if not savings_per_month or not lock_period:
        return ZERO
    return savings_per_month * parse_lock_in_period(lock_period) * 12


def _matches(pkg: RatePackage, search: PackageSearch, loan_amount: Decimal) -> bool:
    if pkg.loan_type != search.loan_type:
        return False
    if search.property_type and pkg.property_type != search.property_type:
        return False
    if search.property_status and pkg.property_status != search.property_status:
        return False
    if search.buy_under and pkg.buy_under != search.buy_under:
        return False
    if loan_amount > 0 and pkg.minimum_loan_size and loan_amount < pkg.minimum_loan_size:
        logger.info(
            "Excluding package %s - %s: min loan %s > requested %s",
            pkg.bank_name, pkg.package_name, pkg.minimum_loan_size, loan_amount,
        )
        return False
    if search.rate_type and pkg.rate_type_category != search.rate_type:
        return False
    if search.lock_period and (pkg.lock_period or DEFAULT_LOCK_PERIOD) != search.lock_period:
        return False
    if search.loan_type == REFINANCING_HOME_LOAN and search.existing_bank and pkg.bank_name == search.existing_bank:
        return False
    if search.banks and pkg.bank_name not in search.banks:
        return False
    if search.features and not any(pkg.features.get(feature) for feature in search.features):
        return False
    return True


def search_packages(
    packages: Iterable[RatePackage], search: PackageSearch, reference_rates: Mapping[str, Decimal]
) -> List[PackageQuote]:
    """Filter packages and rank them by their average first-two-year rate.

    Packages are quoted on the requested loan amount and tenure, or on the
    defaults (500,000 over 25 years) when those are not given. Refinancing
    searches with an existing rate also report monthly and lock-in savings.
    """
    requested = search.loan_amount or ZERO
    quote_amount = search.loan_amount or DEFAULT_QUOTE_LOAN_AMOUNT
    quote_tenure = search.loan_tenure or DEFAULT_QUOTE_TENURE

    quotes: List[PackageQuote] = []
    for pkg in packages:
        if not _matches(pkg, search, requested):
            continue
        average = average_first_2_years(pkg, reference_rates)
        quote = PackageQuote(
            package=pkg,
            avg_first_2_years=average,
            monthly_installment=monthly_installment(quote_amount, quote_tenure, average),
        )
        existing = search.existing_interest_rate or ZERO
        if search.loan_type == REFINANCING_HOME_LOAN and existing > 0:
            quote.monthly_savings = monthly_savings(quote_amount, quote_tenure, existing, average)
            quote.total_savings = total_savings(quote.monthly_savings, pkg.lock_period)
        quotes.append(quote)

    quotes.sort(key=lambda q: q.avg_first_2_years)
    logger.info("Found %d matching packages", len(quotes))
    return quotes
