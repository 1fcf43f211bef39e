# tests/conftest.py
from __future__ import annotations

import os
from decimal import Decimal
from pathlib import Path

import pytest

# The web app builds its store at import time; keep it off the working directory.
os.environ.setdefault("PACKAGE_DATABASE_URL", "sqlite://")

from mortgage_calc.constants import NEW_HOME_LOAN, REFINANCING_HOME_LOAN
from mortgage_calc.data_models import FlatRate, ProgressiveConfig, RatePackage
from mortgage_calc_web.package_store import PackageStore


def make_package_row(**overrides):
    """A flat package row as stored in the database (FIXED 3.0 then SORA + 0.5)."""
    row = {
        "id": 1,
        "bank_name": "DBS",
        "package_name": "Fixed 2Y",
        "loan_type": NEW_HOME_LOAN,
        "property_type": "private",
        "property_status": "completed",
        "buy_under": "individual",
        "lock_period": "2 Years",
        "minimum_loan_size": None,
        "rate_type_category": "Fixed",
        "year1_rate_type": "FIXED",
        "year1_operator": None,
        "year1_value": "3.0",
        "year2_rate_type": "SORA",
        "year2_operator": "+",
        "year2_value": "0.5",
        "thereafter_rate_type": "FIXED",
        "thereafter_operator": None,
        "thereafter_value": "3.5",
    }
    row.update(overrides)
    return row


# -------- Engine fixtures --------
@pytest.fixture
def reference_rates():
    return {"SORA": Decimal("3.0"), "SIBOR": Decimal("3.8")}


@pytest.fixture
def package_factory():
    """Factory for RatePackage objects built from overridable rows."""

    def _factory(**overrides):
        return RatePackage.from_row(make_package_row(**overrides))

    return _factory


@pytest.fixture
def progressive_config():
    """Factory for the 1,000,000 purchase / 750,000 loan BUC case."""

    def _factory(**overrides):
        values = dict(
            purchase_price=Decimal("1000000"),
            loan_amount=Decimal("750000"),
            tenure_years=20,
            rates=FlatRate(Decimal("3")),
        )
        values.update(overrides)
        return ProgressiveConfig(**values)

    return _factory


# -------- Store and web fixtures --------
@pytest.fixture
def store(tmp_path: Path) -> PackageStore:
    return PackageStore(f"sqlite:///{tmp_path / 'packages.sqlite3'}")


@pytest.fixture
def seeded_store(store):
    store.set_reference_rate("SORA", Decimal("3.0"))
    store.add_package(make_package_row(id=None))
    store.add_package(
        make_package_row(
            id=None,
            bank_name="OCBC",
            package_name="SORA Floating",
            rate_type_category="Floating",
            lock_period="3 Years",
            year1_rate_type="SORA",
            year1_operator="+",
            year1_value="0.2",
        )
    )
    store.add_package(make_package_row(id=None, bank_name="UOB", loan_type=REFINANCING_HOME_LOAN))
    return store


@pytest.fixture
def client(monkeypatch, seeded_store):
    from mortgage_calc_web import app as app_module

    monkeypatch.setattr(app_module, "package_store", seeded_store)
    app_module.app.config["TESTING"] = True
    with app_module.app.test_client() as test_client:
        yield test_client
