# tests/test_cli.py
import json

import click
import pytest
from click.testing import CliRunner

from mortgage_calc.data_models import FlatRate, ScheduledRates
from mortgage_calc.main import build_rate_schedule, cli, parse_amount, parse_year_rate_strings

from conftest import make_package_row


@pytest.fixture
def runner():
    return CliRunner()


def test_parse_amount_suffixes():
    assert parse_amount("500k") == 500_000
    assert parse_amount("1.2m") == 1_200_000
    assert parse_amount("750,000") == 750_000
    with pytest.raises(click.BadParameter):
        parse_amount("lots")


def test_rate_schedule_options():
    assert build_rate_schedule("2.6", ()) == FlatRate(parse_amount("2.6"))
    rates = build_rate_schedule("2.6", ("2:2.9", "thereafter:3.3"))
    assert isinstance(rates, ScheduledRates)
    assert [e.year for e in rates.entries] == [1, 2, "thereafter"]
    assert parse_year_rate_strings(["3:"])[0].rate is None
    with pytest.raises(click.BadParameter):
        parse_year_rate_strings(["2=2.9"])
    with pytest.raises(click.BadParameter):
        parse_year_rate_strings(["2:2.9", "2:3.1"])


def test_repayment_command(runner):
    result = runner.invoke(cli, ["repayment", "--principal", "500k", "--rate", "4", "--years", "25"])
    assert result.exit_code == 0, result.output
    assert "SGD 2,639.18" in result.output
    assert "Year 25" in result.output


def test_repayment_rejects_bad_amount(runner):
    result = runner.invoke(cli, ["repayment", "--principal", "abc", "--rate", "4"])
    assert result.exit_code != 0
    assert "Invalid amount" in result.output


def test_repayment_export_json_and_csv(runner, tmp_path):
    json_path = tmp_path / "schedule.json"
    result = runner.invoke(
        cli, ["repayment", "-p", "120000", "-r", "0", "-y", "10", "--output", str(json_path)]
    )
    assert result.exit_code == 0, result.output
    data = json.loads(json_path.read_text())
    assert data["summary"]["monthly_payment"] == 1000.0
    assert len(data["monthly"]) == 120

    csv_path = tmp_path / "schedule.csv"
    result = runner.invoke(cli, ["repayment", "-p", "120000", "-r", "0", "-y", "10", "--output", str(csv_path)])
    assert result.exit_code == 0, result.output
    lines = csv_path.read_text().splitlines()
    assert lines[0].startswith("month,year,rate")
    assert len(lines) == 121


def test_refinance_command(runner):
    result = runner.invoke(
        cli,
        ["refinance", "--outstanding", "400k", "--current-rate", "4", "--new-rate", "3", "--new-year-rate", "thereafter:3.5"],
    )
    assert result.exit_code == 0, result.output
    assert "Monthly savings" in result.output


def test_progressive_command(runner, tmp_path):
    result = runner.invoke(cli, ["progressive", "--price", "1m", "--rate", "3"])
    assert result.exit_code == 0, result.output
    assert "37 months (Estimated)" in result.output
    assert "Cash/CPF + Bank Loan" in result.output

    out = tmp_path / "buc.json"
    result = runner.invoke(
        cli,
        ["progressive", "--price", "1m", "--rate", "3", "--otp-date", "2024-01-15", "--top-date", "2027-01-15", "--output", str(out)],
    )
    assert result.exit_code == 0, result.output
    data = json.loads(out.read_text())
    assert data["summary"]["construction_months"] == 33
    assert data["summary"]["total_bank_loan"] == 750000.0
    assert data["stages"][0]["estimated_date"] == "2024-01-15"


def test_progressive_rejects_top_before_otp(runner):
    result = runner.invoke(
        cli, ["progressive", "--price", "1m", "--rate", "3", "--otp-date", "2025-01-01", "--top-date", "2024-01-01"]
    )
    assert result.exit_code != 0
    assert "TOP date must be after OTP date" in result.output


def test_packages_command(runner, tmp_path):
    packages_file = tmp_path / "packages.json"
    packages_file.write_text(
        json.dumps(
            {
                "packages": [
                    make_package_row(id=1, package_name="Cheap", year1_value="2.5"),
                    make_package_row(id=2, package_name="Dear", year1_value="3.9"),
                ]
            }
        )
    )
    rates_file = tmp_path / "rates.json"
    rates_file.write_text(json.dumps([{"rate_type": "SORA", "rate_value": 3.0}]))

    result = runner.invoke(
        cli, ["packages", "--packages-file", str(packages_file), "--rates-file", str(rates_file), "--hide-bank-names"]
    )
    assert result.exit_code == 0, result.output
    assert result.output.index("Cheap") < result.output.index("Dear")
    assert "Bank 1" in result.output
    assert "DBS" not in result.output

    out = tmp_path / "ranked.json"
    result = runner.invoke(
        cli, ["packages", "--packages-file", str(packages_file), "--rates-file", str(rates_file), "--output", str(out)]
    )
    assert result.exit_code == 0, result.output
    ranked = json.loads(out.read_text())["packages"]
    assert [p["package_name"] for p in ranked] == ["Cheap", "Dear"]
    assert ranked[0]["avg_first_2_years"] == pytest.approx(3.0)
    assert ranked[0]["rates"]["2"] == "SORA + 0.50%"


def test_affordability_command(runner):
    result = runner.invoke(cli, ["affordability", "--price", "1m", "--income", "8000", "--income", "4000", "--age", "35"])
    assert result.exit_code == 0, result.output
    assert "30 year tenor" in result.output
    assert "APPROVED" in result.output


def test_affordability_rejects_zero_income(runner):
    result = runner.invoke(cli, ["affordability", "--price", "1m", "--income", "0", "--tenor", "25"])
    assert result.exit_code != 0


def test_progressive_rejects_top_too_close_to_otp(runner):
    result = runner.invoke(
        cli, ["progressive", "--price", "1m", "--rate", "3", "--otp-date", "2024-01-01", "--top-date", "2024-03-15"]
    )
    assert result.exit_code == 2
    assert "more than three months after OTP date" in result.output
