import logging
import os

import click
from flask import Flask, jsonify, render_template, request

from mortgage_calc.affordability import assess_affordability
from mortgage_calc.constants import (
    BANK_OPTIONS,
    FEATURE_OPTIONS,
    NEW_HOME_LOAN,
    PACKAGE_YEARS,
    PROPERTY_TYPE_TEXT,
    REFINANCING_HOME_LOAN,
)
from mortgage_calc.data_models import PackageSearch, RatePackage
from mortgage_calc.engine import compute_refinancing, compute_schedule
from mortgage_calc.main import (
    build_affordability_inputs,
    build_progressive_config_from_options,
    build_repayment_from_options,
    parse_amount,
    parse_rate,
    serialize_affordability,
    serialize_amortization,
    serialize_progressive,
    serialize_quotes,
    serialize_refinancing,
)
from mortgage_calc.packages import reference_rate_table, search_packages
from mortgage_calc.progressive import compute_progressive_schedule
from mortgage_calc_web.package_store import create_store_from_env

logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config["ASSET_VERSION"] = os.environ.get("ASSET_VERSION", "1")
app.secret_key = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
package_store = create_store_from_env(os.environ.get("PACKAGE_DATABASE_URL"))

# Errors raised by option parsing and the engines that are shown to the user.
INPUT_ERRORS = (ValueError, click.ClickException)


def parse_form_list(value: str) -> list[str]:
    """Parse a comma or newline separated list of entries from a form field.

    Returns a list of trimmed strings, skipping any empty entries.
    """
    if not value:
        return []
    parts = [p.strip() for p in value.replace("\n", ",").split(",")]
    return [p for p in parts if p]


def _field(data, name: str, default: str = "") -> str:
    value = data.get(name, default)
    return default if value is None else str(value).strip()


def _int_field(data, name: str, default: int) -> int:
    value = _field(data, name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be a whole number")


def _list_field(data, name: str) -> list[str]:
    if hasattr(data, "getlist"):
        values = data.getlist(name)
        if len(values) == 1:
            return parse_form_list(values[0])
        return [str(v).strip() for v in values if str(v).strip()]
    value = data.get(name) or []
    if isinstance(value, str):
        return parse_form_list(value)
    return [str(v).strip() for v in value if str(v).strip()]


def _run_repayment(data):
    amount, rates = build_repayment_from_options(
        _field(data, "principal"),
        _field(data, "rate"),
        tuple(_list_field(data, "year_rates")),
        _int_field(data, "years", 25),
        _int_field(data, "months", 0),
    )
    return compute_schedule(amount, rates, _int_field(data, "years", 25), _int_field(data, "months", 0))


def _run_refinance(data):
    amount, new_rates = build_repayment_from_options(
        _field(data, "outstanding"),
        _field(data, "new_rate"),
        tuple(_list_field(data, "new_year_rates")),
        _int_field(data, "new_years", 10),
        _int_field(data, "new_months", 0),
    )
    return compute_refinancing(
        amount,
        parse_rate(_field(data, "current_rate")),
        _int_field(data, "remaining_years", 10),
        _int_field(data, "remaining_months", 0),
        new_rates,
        _int_field(data, "new_years", 10),
        _int_field(data, "new_months", 0),
    )


def _run_progressive(data):
    config = build_progressive_config_from_options(
        _field(data, "purchase_price"),
        _field(data, "loan_percentage", "75"),
        _field(data, "loan_amount") or None,
        _int_field(data, "tenure", 20),
        _field(data, "rate"),
        tuple(_list_field(data, "year_rates")),
        _field(data, "otp_date") or None,
        _field(data, "top_date") or None,
    )
    return compute_progressive_schedule(config)


def _run_package_search(data):
    loan_type = _field(data, "loan_type", NEW_HOME_LOAN) or NEW_HOME_LOAN
    loan_amount = _field(data, "loan_amount")
    existing_rate = _field(data, "existing_interest_rate")
    search = PackageSearch(
        loan_type=loan_type,
        property_type=_field(data, "property_type") or None,
        property_status=_field(data, "property_status") or None,
        buy_under=_field(data, "buy_under") or None,
        loan_amount=parse_amount(loan_amount) if loan_amount else None,
        loan_tenure=_int_field(data, "loan_tenure", 0) or None,
        existing_interest_rate=parse_rate(existing_rate) if existing_rate else None,
        existing_bank=_field(data, "existing_bank") or None,
        rate_type=_field(data, "rate_type") or None,
        lock_period=_field(data, "lock_period") or None,
        banks=tuple(_list_field(data, "banks")),
        features=tuple(_list_field(data, "features")),
    )
    reference_rates = reference_rate_table(package_store.list_reference_rates())
    packages = [RatePackage.from_row(row) for row in package_store.list_packages(loan_type)]
    return search_packages(packages, search, reference_rates), reference_rates


def _run_affordability(data):
    tenor = _field(data, "loan_tenor")
    inputs = build_affordability_inputs(
        _field(data, "property_type", "private") or "private",
        _field(data, "purchase_price"),
        _field(data, "loan_percentage", "75") or "75",
        _field(data, "custom_loan_amount") or None,
        int(tenor) if tenor.isdigit() else None,
        tuple(_list_field(data, "incomes")),
        tuple(_list_field(data, "debts")),
        _field(data, "stress_test_rate") or None,
        tuple(_list_field(data, "ages")),
    )
    return assess_affordability(inputs)


def _error_message(exc: Exception) -> str:
    if isinstance(exc, click.ClickException):
        return exc.format_message()
    return str(exc)


def _api_response(runner, serializer):
    data = request.get_json(silent=True) or {}
    try:
        result = runner(data)
    except INPUT_ERRORS as exc:
        logger.info("Rejected %s request: %s", request.path, _error_message(exc))
        return jsonify({"error": _error_message(exc)}), 400
    return jsonify(serializer(result))


@app.route("/", methods=["GET", "POST"])
def index():
    result = None
    refinancing = None
    error = None
    action = "repayment"

    if request.method == "POST":
        action = request.form.get("action", "repayment")
        try:
            if action == "refinance":
                refinancing = serialize_refinancing(_run_refinance(request.form))
            else:
                result = serialize_amortization(_run_repayment(request.form))
        except INPUT_ERRORS as exc:
            logger.info("Rejected repayment form: %s", _error_message(exc))
            error = _error_message(exc)

    return render_template(
        "index.html",
        result=result,
        refinancing=refinancing,
        error=error,
        form=request.form,
        last_action=action,
        asset_version=app.config["ASSET_VERSION"],
    )


@app.route("/progressive", methods=["GET", "POST"])
def progressive():
    result = None
    error = None
    if request.method == "POST":
        try:
            result = serialize_progressive(_run_progressive(request.form))
        except INPUT_ERRORS as exc:
            logger.info("Rejected progressive form: %s", _error_message(exc))
            error = _error_message(exc)

    return render_template(
        "progressive.html",
        result=result,
        error=error,
        form=request.form,
        asset_version=app.config["ASSET_VERSION"],
    )


@app.route("/packages", methods=["GET", "POST"])
def packages():
    quotes = None
    error = None
    hide_bank_names = request.form.get("hide_bank_names") == "1"
    if request.method == "POST":
        try:
            found, reference_rates = _run_package_search(request.form)
            quotes = serialize_quotes(found, reference_rates)
        except INPUT_ERRORS as exc:
            logger.info("Rejected package search: %s", _error_message(exc))
            error = _error_message(exc)

    return render_template(
        "packages.html",
        quotes=quotes,
        error=error,
        form=request.form,
        hide_bank_names=hide_bank_names,
        years=PACKAGE_YEARS,
        loan_types=[NEW_HOME_LOAN, REFINANCING_HOME_LOAN],
        bank_options=BANK_OPTIONS,
        feature_options=FEATURE_OPTIONS,
        property_types=PROPERTY_TYPE_TEXT,
        asset_version=app.config["ASSET_VERSION"],
    )


@app.post("/api/repayment")
def api_repayment():
    return _api_response(_run_repayment, serialize_amortization)


@app.post("/api/refinance")
def api_refinance():
    return _api_response(_run_refinance, serialize_refinancing)


@app.post("/api/progressive")
def api_progressive():
    return _api_response(_run_progressive, serialize_progressive)


@app.post("/api/packages")
def api_packages():
    def serializer(found):
        quotes, reference_rates = found
        return {
            "packages": serialize_quotes(quotes, reference_rates),
            "reference_rates": {key: float(value) for key, value in reference_rates.items()},
        }

    return _api_response(_run_package_search, serializer)


@app.post("/api/affordability")
def api_affordability():
    return _api_response(_run_affordability, serialize_affordability)


if __name__ == "__main__":
    print("Starting Mortgage Calculator web app...")
    app.run(host="0.0.0.0", port=8710, debug=True)
