"""Persistence layer for bank rate packages and reference rates.

Packages and the reference rates they float on (SORA and friends) live in an
external database so advisers can update them without redeploying. It
defaults to SQLite for local development, but accepts any
SQLAlchemy-compatible URL (e.g. PostgreSQL/MySQL).

Rows come back as flat dictionaries using the ``year{N}_rate_type`` /
``year{N}_operator`` / ``year{N}_value`` and ``thereafter_*`` field names
that :meth:`mortgage_calc.data_models.RatePackage.from_row` understands.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String, Text, create_engine, select
from sqlalchemy.orm import declarative_base, sessionmaker

from mortgage_calc.constants import FEATURE_OPTIONS, PACKAGE_YEARS, THEREAFTER

logger = logging.getLogger(__name__)

Base = declarative_base()

RATE_FIELD_PREFIXES = [THEREAFTER if year == THEREAFTER else f"year{year}" for year in PACKAGE_YEARS]
RATE_FIELDS = [f"{prefix}_{suffix}" for prefix in RATE_FIELD_PREFIXES for suffix in ("rate_type", "operator", "value")]
INFO_FIELDS = [
    "bank_name",
    "package_name",
    "loan_type",
    "property_type",
    "property_status",
    "buy_under",
    "lock_period",
    "minimum_loan_size",
    "rate_type_category",
    "remarks",
]


class RatePackageModel(Base):
    __tablename__ = "rate_packages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    bank_name = Column(String(64), index=True, nullable=False)
    package_name = Column(String(255), nullable=False)
    loan_type = Column(String(64), index=True, nullable=False)
    property_type = Column(String(64))
    property_status = Column(String(64))
    buy_under = Column(String(64))
    lock_period = Column(String(32))
    minimum_loan_size = Column(Numeric(14, 2))
    rate_type_category = Column(String(32))
    remarks = Column(Text)

    year1_rate_type = Column(String(32))
    year1_operator = Column(String(4))
    year1_value = Column(Numeric(8, 4))
    year2_rate_type = Column(String(32))
    year2_operator = Column(String(4))
    year2_value = Column(Numeric(8, 4))
    year3_rate_type = Column(String(32))
    year3_operator = Column(String(4))
    year3_value = Column(Numeric(8, 4))
    year4_rate_type = Column(String(32))
    year4_operator = Column(String(4))
    year4_value = Column(Numeric(8, 4))
    year5_rate_type = Column(String(32))
    year5_operator = Column(String(4))
    year5_value = Column(Numeric(8, 4))
    thereafter_rate_type = Column(String(32))
    thereafter_operator = Column(String(4))
    thereafter_value = Column(Numeric(8, 4))

    legal_fee_subsidy = Column(Boolean, default=False, nullable=False)
    cash_rebate = Column(Boolean, default=False, nullable=False)
    free_package_conversion_12m = Column(Boolean, default=False, nullable=False)
    free_package_conversion_24m = Column(Boolean, default=False, nullable=False)
    valuation_subsidy = Column(Boolean, default=False, nullable=False)
    partial_repayment = Column(Boolean, default=False, nullable=False)
    waiver_due_to_sales = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class ReferenceRateModel(Base):
    __tablename__ = "rate_types"

    rate_type = Column(String(32), primary_key=True)
    rate_value = Column(Numeric(8, 4), nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class PackageStore:
    """Database-backed package catalogue."""

    def __init__(self, url: str) -> None:
        self._engine = create_engine(url, future=True)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)

    def list_packages(self, loan_type: Optional[str] = None) -> List[Dict[str, Any]]:
        with self._session_factory() as session:
            query = select(RatePackageModel).order_by(RatePackageModel.id.asc())
            if loan_type:
                query = query.where(RatePackageModel.loan_type == loan_type)
            rows: Iterable[RatePackageModel] = session.execute(query).scalars()
            return [self._package_to_dict(row) for row in rows]

    def list_reference_rates(self) -> List[Dict[str, Any]]:
        with self._session_factory() as session:
            rows = session.execute(select(ReferenceRateModel).order_by(ReferenceRateModel.rate_type)).scalars()
            return [{"rate_type": row.rate_type, "rate_value": Decimal(row.rate_value)} for row in rows]

    def add_package(self, row: Mapping[str, Any]) -> int:
        """Insert a package from a flat row and return its id."""
        if not row.get("bank_name") or not row.get("package_name") or not row.get("loan_type"):
            raise ValueError("Package needs a bank name, package name and loan type")
        fields = {key: None if row.get(key) in (None, "") else row.get(key) for key in INFO_FIELDS + RATE_FIELDS}
        for key in ("minimum_loan_size",) + tuple(f for f in RATE_FIELDS if f.endswith("_value")):
            if fields[key] is not None:
                fields[key] = Decimal(str(fields[key]))
        for key in FEATURE_OPTIONS:
            fields[key] = row.get(key) in (True, "true")
        payload = RatePackageModel(**fields)
        with self._session_factory() as session:
            session.add(payload)
            session.commit()
            logger.debug("Stored package %s - %s as id %s", payload.bank_name, payload.package_name, payload.id)
            return payload.id

    def set_reference_rate(self, rate_type: str, rate_value: Decimal) -> None:
        with self._session_factory() as session:
            row = session.get(ReferenceRateModel, rate_type)
            if row is None:
                session.add(ReferenceRateModel(rate_type=rate_type, rate_value=Decimal(str(rate_value))))
            else:
                row.rate_value = Decimal(str(rate_value))
            session.commit()

    def remove_package(self, package_id: int) -> None:
        with self._session_factory() as session:
            row = session.get(RatePackageModel, package_id)
            if row:
                session.delete(row)
                session.commit()

    @staticmethod
    def _package_to_dict(row: RatePackageModel) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": row.id}
        for key in INFO_FIELDS + RATE_FIELDS:
            data[key] = getattr(row, key)
        for key in FEATURE_OPTIONS:
            data[key] = bool(getattr(row, key))
        return data


def create_store_from_env(url: str | None) -> PackageStore:
    return PackageStore(url or "sqlite:///rate_packages.sqlite3")
