# tests/test_affordability.py
from decimal import Decimal

import pytest

from mortgage_calc.affordability import (
    assess_affordability,
    average_age,
    default_stress_test_rate,
    max_loan_tenor,
    property_type_text,
)
from mortgage_calc.data_models import AffordabilityInputs
from mortgage_calc.engine import calculate_annuity_payment


def _inputs(**overrides):
    values = dict(
        property_type="private",
        purchase_price=Decimal("1000000"),
        loan_tenor=30,
        monthly_income=Decimal("12000"),
    )
    values.update(overrides)
    return AffordabilityInputs(**values)


def test_private_property_passes_tdsr():
    result = assess_affordability(_inputs())
    assert result.loan_amount == Decimal("750000")
    assert result.stress_test_rate == Decimal("4")
    assert result.monthly_installment == calculate_annuity_payment(Decimal("750000"), Decimal("4"), 360)
    assert float(result.tdsr) == pytest.approx(float(result.monthly_installment) / 12000 * 100)
    assert result.tdsr_limit == Decimal("55")
    assert result.tdsr_status == "Pass"
    assert result.msr_applicable is False
    assert result.msr is None
    assert result.overall_status == "APPROVED"


def test_other_debts_count_towards_tdsr():
    result = assess_affordability(_inputs(monthly_debts=Decimal("3500")))
    assert result.tdsr_status == "Fail"
    assert result.overall_status == "REJECTED"


def test_hdb_checks_msr():
    result = assess_affordability(_inputs(property_type="hdb", monthly_income=Decimal("7000")))
    assert result.tdsr_limit == Decimal("60")
    assert result.tdsr_status == "Pass"
    assert result.msr_applicable is True
    assert result.msr_status == "Fail"
    assert result.overall_status == "REJECTED"


def test_custom_loan_amount_sets_percentage():
    result = assess_affordability(_inputs(custom_loan_amount=Decimal("400000")))
    assert result.loan_amount == Decimal("400000")
    assert result.loan_percentage == Decimal("40")


def test_commercial_uses_higher_stress_rate():
    result = assess_affordability(_inputs(property_type="commercial", loan_tenor=20))
    assert result.stress_test_rate == Decimal("5")
    assert default_stress_test_rate("ec") == Decimal("4")


def test_invalid_inputs_raise():
    with pytest.raises(ValueError):
        assess_affordability(_inputs(monthly_income=Decimal("0")))
    with pytest.raises(ValueError):
        assess_affordability(_inputs(loan_tenor=0))


def test_max_loan_tenor_rules():
    assert max_loan_tenor(Decimal("40"), Decimal("75"), "private") == 25
    assert max_loan_tenor(Decimal("28"), Decimal("75"), "private") == 35
    assert max_loan_tenor(Decimal("28"), Decimal("80"), "private") == 30
    assert max_loan_tenor(Decimal("28"), Decimal("90"), "private") == 25
    assert max_loan_tenor(Decimal("28"), Decimal("75"), "commercial") == 20
    assert max_loan_tenor(Decimal("63"), Decimal("75"), "private") == 5
    assert max_loan_tenor(Decimal("0"), Decimal("75"), "private") == 35


def test_average_age_and_labels():
    assert average_age(Decimal("30"), Decimal("40")) == Decimal("35")
    assert average_age(None, Decimal("40")) == Decimal("40")
    assert average_age(None, None) == 0
    assert property_type_text("ec") == "EC Property"
    assert property_type_text("unknown") == "Property"
