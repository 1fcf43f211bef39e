"""Output helpers for the mortgage calculators.

This module provides simple functions to render repayment schedules,
progressive drawdown tables, package rankings and affordability results in a
tabular text format using built-in printing and string formatting.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, List, Mapping

from .constants import FEATURE_OPTIONS, MSR_LIMIT, PACKAGE_YEARS
from .data_models import (
    AffordabilityResult,
    AmortizationMonth,
    AmortizationResult,
    AmortizationYear,
    PackageQuote,
    ProgressiveMonth,
    ProgressiveResult,
    RefinancingResult,
)
from .packages import format_rate_display


def format_currency(amount: Decimal) -> str:
    return f"SGD {amount:,.2f}"


def print_repayment_summary(result: AmortizationResult) -> None:
    """Print the headline figures of a repayment schedule."""
    print("Summary")
    print("-" * 72)
    print(f"Monthly instalment : {format_currency(result.first_month_payment)}")
    print(f"Total principal    : {format_currency(result.total_principal)}")
    print(f"Total interest     : {format_currency(result.total_interest)}")
    print(f"Total payable      : {format_currency(result.total_payable)}")
    print(f"Payments           : {len(result.months)}")
    print("-" * 72)


def print_yearly_schedule(years: Iterable[AmortizationYear]) -> None:
    headers = ["Year", "Rate", "BeginPrin", "Instalment", "Interest", "Principal", "EndPrin"]
    print("\t".join(headers))
    for year in years:
        row = [
            f"Year {year.year}",
            f"{year.rate:.2f}%",
            f"{year.beginning_principal:.2f}",
            f"{year.monthly_instalment:.2f}",
            f"{year.interest_paid:.2f}",
            f"{year.principal_paid:.2f}",
            f"{year.ending_principal:.2f}",
        ]
        print("\t".join(row))


def print_monthly_schedule(months: Iterable[AmortizationMonth]) -> None:
    headers = ["Month", "Year", "Rate", "StartBal", "Payment", "Interest", "Principal", "EndBal"]
    print("\t".join(headers))
    for month in months:
        row = [
            str(month.month),
            str(month.year),
            f"{month.rate:.2f}%",
            f"{month.beginning_balance:.2f}",
            f"{month.payment:.2f}",
            f"{month.interest:.2f}",
            f"{month.principal:.2f}",
            f"{month.ending_balance:.2f}",
        ]
        print("\t".join(row))


def print_refinancing(result: RefinancingResult) -> None:
    """Print the current loan against the new package side by side."""
    print("Refinancing comparison")
    print("=" * 72)
    print(f"{'Metric':20s} {'Current':>15s} {'New':>15s} {'Difference':>15s}")
    rows = [
        ("Monthly instalment", result.current.first_month_payment, result.new.first_month_payment),
        ("Total interest", result.current.total_interest, result.new.total_interest),
        ("Total payable", result.current.total_payable, result.new.total_payable),
    ]
    for label, current, new in rows:
        print(f"{label:20s} {current:15.2f} {new:15.2f} {current - new:15.2f}")
    print("=" * 72)
    print(f"Monthly savings    : {format_currency(result.monthly_savings)}")
    print(f"First year savings : {format_currency(result.first_year_savings)}")
    print(f"Interest savings   : {format_currency(result.total_interest_savings)}")


def print_progressive_summary(result: ProgressiveResult) -> None:
    print("Progressive payment summary")
    print("-" * 72)
    print(f"Purchase price     : {format_currency(result.purchase_price)}")
    print(f"Bank loan          : {format_currency(result.loan_amount)} ({result.loan_to_value:.1f}%)")
    print(f"Cash/CPF required  : {format_currency(result.total_cash_cpf)}")
    print(f"Total interest     : {format_currency(result.total_interest)}")
    print(f"Total payable      : {format_currency(result.total_payable)}")
    source = "Date-based" if result.timeline_calculated else "Estimated"
    print(f"Construction       : {result.construction_months} months ({source})")
    if result.first_drawdown_month is not None:
        print(f"Loan servicing     : from loan month {result.first_drawdown_month}")
    print("-" * 72)


def print_milestones(result: ProgressiveResult) -> None:
    headers = ["Month", "Date", "Stage", "%", "Amount", "CashCPF", "BankLoan", "LoanMonth", "Mode"]
    print("\t".join(headers))
    for allocation in result.allocations:
        milestone = allocation.milestone
        row = [
            str(milestone.month_offset),
            allocation.estimated_date.isoformat() if allocation.estimated_date else "Est.",
            milestone.label,
            f"{milestone.percent:.1f}",
            f"{milestone.stage_amount:.2f}",
            f"{allocation.cash_cpf_amount:.2f}",
            f"{allocation.bank_loan_amount:.2f}",
            str(allocation.bank_loan_month) if allocation.bank_loan_month is not None else "-",
            allocation.payment_mode,
        ]
        print("\t".join(row))


def print_progressive_schedule(months: Iterable[ProgressiveMonth]) -> None:
    headers = ["Month", "Rate", "Opening", "Drawdown", "Payment", "Interest", "Principal", "Ending", "Stage"]
    print("\t".join(headers))
    for month in months:
        row = [
            str(month.month),
            f"{month.rate:.2f}%",
            f"{month.opening_balance:.2f}",
            f"{month.drawdown:.2f}",
            f"{month.payment:.2f}",
            f"{month.interest:.2f}",
            f"{month.principal:.2f}",
            f"{month.ending_balance:.2f}",
            month.milestone_label or "",
        ]
        print("\t".join(row))


def print_package_table(
    quotes: List[PackageQuote], reference_rates: Mapping[str, Decimal], hide_bank_names: bool = False
) -> None:
    """Print ranked packages with their per-year rate schedule."""
    if not quotes:
        print("No matching packages.")
        return
    year_headers = [f"Y{y}" if y != "thereafter" else "After" for y in PACKAGE_YEARS]
    headers = ["#", "Bank", "Package", "Avg Y1-2", "Instalment", "Savings"] + year_headers + ["Features"]
    print("\t".join(headers))
    for index, quote in enumerate(quotes, start=1):
        pkg = quote.package
        bank = f"Bank {index}" if hide_bank_names else pkg.bank_name
        features = ", ".join(label for key, label in FEATURE_OPTIONS.items() if pkg.features.get(key))
        row = [
            str(index),
            bank,
            pkg.package_name,
            f"{quote.avg_first_2_years:.2f}%",
            f"{quote.monthly_installment:.2f}",
            f"{quote.total_savings:.2f}",
        ]
        row += [format_rate_display(pkg, year, reference_rates) for year in PACKAGE_YEARS]
        row.append(features or "-")
        print("\t".join(row))


def print_affordability(result: AffordabilityResult) -> None:
    print("Affordability")
    print("-" * 72)
    print(f"Loan amount        : {format_currency(result.loan_amount)} ({result.loan_percentage:.1f}%)")
    print(f"Stress test rate   : {result.stress_test_rate:.2f}%")
    print(f"Monthly instalment : {format_currency(result.monthly_installment)}")
    print(f"TDSR               : {result.tdsr:.2f}% (limit {result.tdsr_limit}%) {result.tdsr_status}")
    if result.msr_applicable:
        print(f"MSR                : {result.msr:.2f}% (limit {MSR_LIMIT}%) {result.msr_status}")
    print(f"Overall            : {result.overall_status}")
    print("-" * 72)
