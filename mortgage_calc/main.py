"""Command-line interface for the mortgage calculators.

This module uses the ``click`` library to implement a multi-command
interface. Users can compute repayment schedules, compare a refinancing
package against their current loan, build a progressive payment schedule for
a building-under-construction purchase, rank bank packages and run a TDSR/MSR
affordability check. Results can be printed to the terminal or exported to
JSON/CSV files.
"""

from __future__ import annotations

import csv
import json
import logging
import os
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import click

from .affordability import assess_affordability, average_age, max_loan_tenor, property_type_text
from .constants import NEW_HOME_LOAN, PROPERTY_TYPES, REFINANCING_HOME_LOAN, THEREAFTER
from .data_models import (
    AffordabilityInputs,
    AffordabilityResult,
    AmortizationResult,
    FlatRate,
    PackageQuote,
    PackageSearch,
    ProgressiveConfig,
    ProgressiveResult,
    RatePackage,
    RateSchedule,
    RefinancingResult,
    ScheduledRates,
    YearRate,
)
from .engine import compute_refinancing, compute_schedule
from .formatter import (
    print_affordability,
    print_milestones,
    print_monthly_schedule,
    print_package_table,
    print_progressive_schedule,
    print_progressive_summary,
    print_refinancing,
    print_repayment_summary,
    print_yearly_schedule,
)
from .packages import format_rate_display, reference_rate_table, search_packages
from .progressive import compute_progressive_schedule
from .utils import decimal_from_str, money, parse_optional_date

logger = logging.getLogger(__name__)


def parse_amount(value: str) -> Decimal:
    """Parse a numeric string with optional suffixes.

    Accepts plain numbers ("500000", "500,000") and shorthand with ``k``/``m``
    suffixes (e.g., "500k" meaning 500_000).
    """
    value = str(value).strip().lower()
    value = value.replace(",", "")
    factor = Decimal(1)
    if value.endswith("k"):
        factor = Decimal(1_000)
        value = value[:-1]
    elif value.endswith("m"):
        factor = Decimal(1_000_000)
        value = value[:-1]
    try:
        return decimal_from_str(value) * factor
    except ValueError:
        raise click.BadParameter(f"Invalid amount: {value}")


def parse_rate(value: str) -> Decimal:
    """Parse an annual rate in percent ("2.6" or "2.6%")."""
    value = str(value).strip()
    if value.endswith("%"):
        value = value[:-1]
    try:
        rate = decimal_from_str(value)
    except ValueError:
        raise click.BadParameter(f"Invalid rate: {value}")
    if rate < 0:
        raise click.BadParameter(f"Rate cannot be negative: {value}")
    return rate


def parse_year_rate_strings(values: Sequence[str]) -> List[YearRate]:
    """Parse ``YEAR:RATE`` entries such as ``2:2.9`` or ``thereafter:3.3``.

    A blank rate (``3:``) is kept as an entry without a rate.
    """
    entries: List[YearRate] = []
    seen = set()
    for item in values:
        parts = item.split(":")
        if len(parts) != 2:
            raise click.BadParameter(f"Year rate must be in YEAR:RATE format; got {item}")
        year_str, rate_str = parts[0].strip().lower(), parts[1].strip()
        if year_str == THEREAFTER:
            year: Any = THEREAFTER
        else:
            try:
                year = int(year_str)
            except ValueError:
                raise click.BadParameter(f"Year must be a number or 'thereafter'; got {year_str}")
            if year < 1:
                raise click.BadParameter(f"Year must be 1 or later; got {year}")
        if year in seen:
            raise click.BadParameter(f"Duplicate rate for year {year}")
        seen.add(year)
        entries.append(YearRate(year=year, rate=parse_rate(rate_str) if rate_str else None))
    return entries


def build_rate_schedule(rate: str, year_rates: Sequence[str]) -> RateSchedule:
    """Return a flat rate, or a year-indexed schedule led by ``rate`` for year 1."""
    base = parse_rate(rate)
    if not year_rates:
        return FlatRate(base)
    entries = [YearRate(year=1, rate=base)]
    entries += [entry for entry in parse_year_rate_strings(year_rates) if entry.year != 1]
    return ScheduledRates(entries=tuple(entries))


def _validate_tenor(years: int, months: int) -> None:
    if years < 0 or months < 0:
        raise click.BadParameter("Tenor cannot be negative")
    if years * 12 + months <= 0:
        raise click.BadParameter("Tenor must be at least one month")


def build_repayment_from_options(principal: str, rate: str, year_rate: Sequence[str], years: int, months: int):
    amount = parse_amount(principal)
    if amount <= 0:
        raise click.BadParameter("Loan amount must be positive")
    _validate_tenor(years, months)
    return amount, build_rate_schedule(rate, year_rate)


def build_progressive_config_from_options(
    purchase_price: str,
    loan_percentage: str,
    loan_amount: Optional[str],
    tenure: int,
    rate: str,
    year_rate: Sequence[str],
    otp_date: Optional[str],
    top_date: Optional[str],
) -> ProgressiveConfig:
    price = parse_amount(purchase_price)
    if price <= 0:
        raise click.BadParameter("Purchase price must be positive")
    if loan_amount:
        loan = parse_amount(loan_amount)
    else:
        loan = price * parse_rate(loan_percentage) / Decimal(100)
    if loan <= 0:
        raise click.BadParameter("Loan amount must be positive")
    if tenure <= 0:
        raise click.BadParameter("Loan tenure must be positive")
    try:
        otp = parse_optional_date(otp_date)
        top = parse_optional_date(top_date)
    except ValueError as exc:
        raise click.BadParameter(str(exc))
    if otp and top and top <= otp:
        raise click.BadParameter("TOP date must be after OTP date")
    return ProgressiveConfig(
        purchase_price=price,
        loan_amount=loan,
        tenure_years=tenure,
        rates=build_rate_schedule(rate, year_rate),
        otp_date=otp,
        top_date=top,
    )


def build_affordability_inputs(
    property_type: str,
    purchase_price: str,
    loan_percentage: str,
    loan_amount: Optional[str],
    tenor: Optional[int],
    incomes: Sequence[str],
    debts: Sequence[str],
    stress_rate: Optional[str],
    ages: Sequence[str],
) -> AffordabilityInputs:
    if property_type not in PROPERTY_TYPES:
        raise click.BadParameter(f"Unknown property type: {property_type}")
    price = parse_amount(purchase_price)
    percentage = parse_rate(loan_percentage)
    if tenor is None:
        parsed_ages = [parse_amount(age) for age in ages[:2]]
        parsed_ages += [Decimal("0")] * (2 - len(parsed_ages))
        tenor = int(max_loan_tenor(average_age(*parsed_ages), percentage, property_type))
    return AffordabilityInputs(
        property_type=property_type,
        purchase_price=price,
        loan_tenor=tenor,
        monthly_income=sum((parse_amount(i) for i in incomes), Decimal("0")),
        loan_percentage=percentage,
        custom_loan_amount=parse_amount(loan_amount) if loan_amount else None,
        stress_test_rate=parse_rate(stress_rate) if stress_rate else None,
        monthly_debts=sum((parse_amount(d) for d in debts), Decimal("0")),
    )


def load_json_rows(path: Path, key: str) -> List[Dict[str, Any]]:
    """Read a JSON list of rows, or an object holding the list under ``key``."""
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get(key, [])
    if not isinstance(data, list):
        raise click.BadParameter(f"{path} must contain a list of {key}")
    return data


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def serialize_amortization(result: AmortizationResult) -> Dict[str, Any]:
    return {
        "summary": {
            "monthly_payment": money(result.first_month_payment),
            "total_interest": money(result.total_interest),
            "total_principal": money(result.total_principal),
            "total_payable": money(result.total_payable),
            "payments": len(result.months),
        },
        "yearly": [
            {
                "year": y.year,
                "rate": float(y.rate),
                "beginning_principal": money(y.beginning_principal),
                "monthly_instalment": money(y.monthly_instalment),
                "interest_paid": money(y.interest_paid),
                "principal_paid": money(y.principal_paid),
                "ending_principal": money(y.ending_principal),
            }
            for y in result.years
        ],
        "monthly": [
            {
                "month": m.month,
                "year": m.year,
                "rate": float(m.rate),
                "beginning_balance": money(m.beginning_balance),
                "payment": money(m.payment),
                "interest": money(m.interest),
                "principal": money(m.principal),
                "ending_balance": money(m.ending_balance),
            }
            for m in result.months
        ],
    }


def serialize_refinancing(result: RefinancingResult) -> Dict[str, Any]:
    return {
        "current": serialize_amortization(result.current),
        "new": serialize_amortization(result.new),
        "monthly_savings": money(result.monthly_savings),
        "first_year_savings": money(result.first_year_savings),
        "total_interest_savings": money(result.total_interest_savings),
    }


def serialize_progressive(result: ProgressiveResult) -> Dict[str, Any]:
    return {
        "summary": {
            "purchase_price": money(result.purchase_price),
            "loan_amount": money(result.loan_amount),
            "total_bank_loan": money(result.total_bank_loan),
            "total_cash_cpf": money(result.total_cash_cpf),
            "total_interest": money(result.total_interest),
            "total_principal": money(result.total_principal),
            "total_payable": money(result.total_payable),
            "loan_to_value": float(result.loan_to_value),
            "first_drawdown_month": result.first_drawdown_month,
            "construction_months": result.construction_months,
            "timeline_calculated": result.timeline_calculated,
        },
        "stages": [
            {
                "stage": a.milestone.label,
                "percentage": float(a.milestone.percent),
                "project_month": a.milestone.month_offset,
                "estimated_date": a.estimated_date.isoformat() if a.estimated_date else None,
                "stage_amount": money(a.milestone.stage_amount),
                "bank_loan_amount": money(a.bank_loan_amount),
                "cash_cpf_amount": money(a.cash_cpf_amount),
                "bank_loan_month": a.bank_loan_month,
                "payment_mode": a.payment_mode,
            }
            for a in result.allocations
        ],
        "drawdowns": [
            {
                "stage": d.milestone_label,
                "bank_loan_month": d.bank_loan_month,
                "bank_loan_amount": money(d.bank_loan_amount),
                "project_month": d.project_month,
            }
            for d in result.drawdowns
        ],
        "monthly": [
            {
                "month": m.month,
                "year": m.year,
                "rate": float(m.rate),
                "opening_balance": money(m.opening_balance),
                "drawdown": money(m.drawdown),
                "payment": money(m.payment),
                "interest": money(m.interest),
                "principal": money(m.principal),
                "ending_balance": money(m.ending_balance),
                "stage": m.milestone_label,
            }
            for m in result.monthly
        ],
    }


def serialize_quotes(quotes: List[PackageQuote], reference_rates: Dict[str, Decimal]) -> List[Dict[str, Any]]:
    serialized = []
    for quote in quotes:
        pkg = quote.package
        serialized.append(
            {
                "id": pkg.id,
                "bank_name": pkg.bank_name,
                "package_name": pkg.package_name,
                "lock_period": pkg.lock_period,
                "avg_first_2_years": float(quote.avg_first_2_years),
                "monthly_installment": money(quote.monthly_installment),
                "monthly_savings": money(quote.monthly_savings),
                "total_savings": money(quote.total_savings),
                "rates": {str(year): format_rate_display(pkg, year, reference_rates) for year in pkg.terms},
                "features": [key for key, enabled in pkg.features.items() if enabled],
            }
        )
    return serialized


def serialize_affordability(result: AffordabilityResult) -> Dict[str, Any]:
    return {
        "loan_amount": money(result.loan_amount),
        "loan_percentage": float(result.loan_percentage),
        "stress_test_rate": float(result.stress_test_rate),
        "monthly_installment": money(result.monthly_installment),
        "total_monthly_income": money(result.total_monthly_income),
        "total_debt_obligations": money(result.total_debt_obligations),
        "tdsr": float(result.tdsr),
        "tdsr_limit": float(result.tdsr_limit),
        "tdsr_status": result.tdsr_status,
        "msr": float(result.msr) if result.msr is not None else None,
        "msr_status": result.msr_status,
        "msr_applicable": result.msr_applicable,
        "overall_status": result.overall_status,
    }


def export_to_json(path: Path, data: Any) -> None:
    """Export a serialized result to a JSON file."""
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def export_to_csv(path: Path, rows: List[Dict[str, Any]]) -> None:
    """Export a list of serialized rows to a CSV file."""
    header = list(rows[0].keys()) if rows else []
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for row in rows:
            writer.writerow([row[key] for key in header])


def _export(output: str, data: Dict[str, Any], csv_rows: List[Dict[str, Any]]) -> None:
    path = Path(output)
    if path.suffix.lower() == ".json":
        export_to_json(path, data)
    elif path.suffix.lower() == ".csv":
        export_to_csv(path, csv_rows)
    else:
        raise click.BadParameter("Unsupported output format; use .json or .csv")
    click.echo(f"Schedule exported to {path}")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """A command-line mortgage advisory toolkit."""
    level = logging.DEBUG if verbose else os.environ.get("LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


@cli.command()
@click.option("--principal", "-p", "principal", required=True, help="Loan amount")
@click.option("--rate", "-r", "rate", required=True, help="Annual interest rate for year 1 (percent)")
@click.option("--year-rate", "year_rate", multiple=True, help="Rate for a later year in YEAR:RATE format, e.g. 2:2.9 or thereafter:3.3")
@click.option("--years", "-y", "years", type=int, default=25, show_default=True, help="Loan tenor in years")
@click.option("--months", "-m", "months", type=int, default=0, show_default=True, help="Additional tenor months")
@click.option("--monthly", "monthly", is_flag=True, help="Print the monthly breakdown as well")
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
def repayment(
    principal: str,
    rate: str,
    year_rate: Tuple[str, ...],
    years: int,
    months: int,
    monthly: bool,
    output: Optional[str],
) -> None:
    """Compute the monthly repayment schedule for a new loan."""
    amount, rates = build_repayment_from_options(principal, rate, year_rate, years, months)
    result = compute_schedule(amount, rates, years, months)
    if output:
        data = serialize_amortization(result)
        _export(output, data, data["monthly"])
        return
    print_repayment_summary(result)
    print_yearly_schedule(result.years)
    if monthly:
        print_monthly_schedule(result.months)


@cli.command()
@click.option("--outstanding", "-p", "outstanding", required=True, help="Outstanding loan amount")
@click.option("--current-rate", "current_rate", required=True, help="Current annual rate (percent)")
@click.option("--remaining-years", "remaining_years", type=int, default=10, show_default=True)
@click.option("--remaining-months", "remaining_months", type=int, default=0, show_default=True)
@click.option("--new-rate", "new_rate", required=True, help="New package rate for year 1 (percent)")
@click.option("--new-year-rate", "new_year_rate", multiple=True, help="New package rate in YEAR:RATE format")
@click.option("--new-years", "new_years", type=int, default=10, show_default=True)
@click.option("--new-months", "new_months", type=int, default=0, show_default=True)
@click.option("--output", "output", type=str, help="Output file path (.json)")
def refinance(
    outstanding: str,
    current_rate: str,
    remaining_years: int,
    remaining_months: int,
    new_rate: str,
    new_year_rate: Tuple[str, ...],
    new_years: int,
    new_months: int,
    output: Optional[str],
) -> None:
    """Compare the current loan against a refinancing package."""
    amount, new_rates = build_repayment_from_options(outstanding, new_rate, new_year_rate, new_years, new_months)
    _validate_tenor(remaining_years, remaining_months)
    result = compute_refinancing(
        amount, parse_rate(current_rate), remaining_years, remaining_months, new_rates, new_years, new_months
    )
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Refinancing export must use .json extension")
        export_to_json(path, serialize_refinancing(result))
        click.echo(f"Comparison exported to {path}")
        return
    print_refinancing(result)


@cli.command()
@click.option("--price", "purchase_price", required=True, help="Purchase price")
@click.option("--loan-percentage", "loan_percentage", default="75", show_default=True, help="Loan as percent of price")
@click.option("--loan-amount", "loan_amount", help="Custom loan amount (overrides --loan-percentage)")
@click.option("--tenure", "-t", "tenure", type=int, default=20, show_default=True, help="Loan tenure in years")
@click.option("--rate", "-r", "rate", required=True, help="Annual interest rate for year 1 (percent)")
@click.option("--year-rate", "year_rate", multiple=True, help="Rate for a later year in YEAR:RATE format")
@click.option("--otp-date", "otp_date", help="Option to Purchase date (YYYY-MM-DD)")
@click.option("--top-date", "top_date", help="Expected TOP date (YYYY-MM-DD)")
@click.option("--monthly", "monthly", is_flag=True, help="Print the monthly servicing schedule")
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
def progressive(
    purchase_price: str,
    loan_percentage: str,
    loan_amount: Optional[str],
    tenure: int,
    rate: str,
    year_rate: Tuple[str, ...],
    otp_date: Optional[str],
    top_date: Optional[str],
    monthly: bool,
    output: Optional[str],
) -> None:
    """Compute the progressive payment schedule of a BUC purchase."""
    config = build_progressive_config_from_options(
        purchase_price, loan_percentage, loan_amount, tenure, rate, year_rate, otp_date, top_date
    )
    try:
        result = compute_progressive_schedule(config)
    except ValueError as exc:
        raise click.BadParameter(str(exc))
    if output:
        data = serialize_progressive(result)
        _export(output, data, data["monthly"])
        return
    print_progressive_summary(result)
    print_milestones(result)
    if monthly:
        print_progressive_schedule(result.monthly)


@cli.command()
@click.option("--packages-file", "packages_file", required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--rates-file", "rates_file", required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path), help="Reference rates as a JSON list of {rate_type, rate_value}")
@click.option("--loan-type", "loan_type", type=click.Choice([NEW_HOME_LOAN, REFINANCING_HOME_LOAN]), default=NEW_HOME_LOAN, show_default=True)
@click.option("--property-type", "property_type")
@click.option("--property-status", "property_status")
@click.option("--buy-under", "buy_under")
@click.option("--loan-amount", "loan_amount")
@click.option("--tenure", "tenure", type=int)
@click.option("--existing-rate", "existing_rate", help="Existing interest rate (refinancing)")
@click.option("--existing-bank", "existing_bank", help="Existing bank to exclude (refinancing)")
@click.option("--rate-type", "rate_type", help="Rate type category, e.g. Fixed or Floating")
@click.option("--lock-period", "lock_period", help="Lock-in period, e.g. '2 Years'")
@click.option("--bank", "banks", multiple=True)
@click.option("--feature", "features", multiple=True)
@click.option("--hide-bank-names", "hide_bank_names", is_flag=True)
@click.option("--output", "output", type=str, help="Output file path (.json)")
def packages(
    packages_file: Path,
    rates_file: Path,
    loan_type: str,
    property_type: Optional[str],
    property_status: Optional[str],
    buy_under: Optional[str],
    loan_amount: Optional[str],
    tenure: Optional[int],
    existing_rate: Optional[str],
    existing_bank: Optional[str],
    rate_type: Optional[str],
    lock_period: Optional[str],
    banks: Tuple[str, ...],
    features: Tuple[str, ...],
    hide_bank_names: bool,
    output: Optional[str],
) -> None:
    """Rank rate packages by their average first-two-year rate."""
    rows = load_json_rows(packages_file, "packages")
    reference_rates = reference_rate_table(load_json_rows(rates_file, "rate_types"))
    search = PackageSearch(
        loan_type=loan_type,
        property_type=property_type,
        property_status=property_status,
        buy_under=buy_under,
        loan_amount=parse_amount(loan_amount) if loan_amount else None,
        loan_tenure=tenure,
        existing_interest_rate=parse_rate(existing_rate) if existing_rate else None,
        existing_bank=existing_bank,
        rate_type=rate_type,
        lock_period=lock_period,
        banks=banks,
        features=features,
    )
    quotes = search_packages([RatePackage.from_row(row) for row in rows], search, reference_rates)
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Package export must use .json extension")
        export_to_json(path, {"packages": serialize_quotes(quotes, reference_rates)})
        click.echo(f"Packages exported to {path}")
        return
    print_package_table(quotes, reference_rates, hide_bank_names=hide_bank_names)


@cli.command()
@click.option("--property-type", "property_type", type=click.Choice(list(PROPERTY_TYPES)), default="private", show_default=True)
@click.option("--price", "purchase_price", required=True, help="Purchase price")
@click.option("--loan-percentage", "loan_percentage", default="75", show_default=True)
@click.option("--loan-amount", "loan_amount", help="Custom loan amount (overrides --loan-percentage)")
@click.option("--tenor", "tenor", type=int, help="Loan tenor in years (defaults to the maximum for the applicants' age)")
@click.option("--income", "incomes", multiple=True, required=True, help="Monthly income of an applicant")
@click.option("--debt", "debts", multiple=True, help="Other monthly debt obligation")
@click.option("--stress-rate", "stress_rate", help="Stress test rate (percent)")
@click.option("--age", "ages", multiple=True, help="Applicant age (up to two)")
@click.option("--output", "output", type=str, help="Output file path (.json)")
def affordability(
    property_type: str,
    purchase_price: str,
    loan_percentage: str,
    loan_amount: Optional[str],
    tenor: Optional[int],
    incomes: Tuple[str, ...],
    debts: Tuple[str, ...],
    stress_rate: Optional[str],
    ages: Tuple[str, ...],
    output: Optional[str],
) -> None:
    """Check TDSR (and MSR for HDB/EC) against the regulatory limits."""
    inputs = build_affordability_inputs(
        property_type, purchase_price, loan_percentage, loan_amount, tenor, incomes, debts, stress_rate, ages
    )
    try:
        result = assess_affordability(inputs)
    except ValueError as exc:
        raise click.BadParameter(str(exc))
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Affordability export must use .json extension")
        export_to_json(path, serialize_affordability(result))
        click.echo(f"Assessment exported to {path}")
        return
    click.echo(f"{property_type_text(property_type)}, {inputs.loan_tenor} year tenor")
    print_affordability(result)


if __name__ == "__main__":
    cli()
