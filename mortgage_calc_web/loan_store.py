"""Persistence layer for computed loans.

The calculation engine builds both schedules in memory; this module writes a
finished ``LoanCalculation`` (the loan row plus every schedule row) in a single
transaction and reads it back for the API. It defaults to SQLite for local
development, but accepts any SQLAlchemy-compatible URL.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, create_engine, select
from sqlalchemy.orm import declarative_base, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

from mortgage_calc.data_models import LoanCalculation
from mortgage_calc.formatter import extra_schedule_records, loan_record, schedule_records

logger = logging.getLogger(__name__)

Base = declarative_base()


class LoanModel(Base):
    __tablename__ = "loans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    loan_amount = Column(Numeric(12, 2), nullable=False)
    annual_interest_rate = Column(Numeric(7, 4), nullable=False)
    loan_term_years = Column(Integer, nullable=False)
    monthly_extra_payment = Column(Numeric(10, 2), nullable=False, default=0)
    monthly_payment = Column(Numeric(10, 2), nullable=False)
    total_payments = Column(Numeric(14, 2))
    total_interest = Column(Numeric(14, 2))
    effective_interest_rate = Column(Numeric(9, 4))
    original_term_months = Column(Integer, nullable=False)
    actual_term_months = Column(Integer)
    time_saved_months = Column(Integer, nullable=False, default=0)
    interest_saved = Column(Numeric(14, 2), nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    schedule = relationship(
        "AmortizationScheduleModel",
        order_by="AmortizationScheduleModel.month_number",
        cascade="all, delete-orphan",
    )
    extra_schedule = relationship(
        "ExtraRepaymentScheduleModel",
        order_by="ExtraRepaymentScheduleModel.month_number",
        cascade="all, delete-orphan",
    )


class AmortizationScheduleModel(Base):
    __tablename__ = "loan_amortization_schedules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    loan_id = Column(Integer, ForeignKey("loans.id", ondelete="CASCADE"), index=True, nullable=False)
    month_number = Column(Integer, nullable=False)
    starting_balance = Column(Numeric(12, 2), nullable=False)
    monthly_payment = Column(Numeric(10, 2), nullable=False)
    principal_component = Column(Numeric(10, 2), nullable=False)
    interest_component = Column(Numeric(10, 2), nullable=False)
    ending_balance = Column(Numeric(12, 2), nullable=False)


class ExtraRepaymentScheduleModel(Base):
    __tablename__ = "extra_repayment_schedules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    loan_id = Column(Integer, ForeignKey("loans.id", ondelete="CASCADE"), index=True, nullable=False)
    month_number = Column(Integer, nullable=False)
    starting_balance = Column(Numeric(12, 2), nullable=False)
    monthly_payment = Column(Numeric(10, 2), nullable=False)
    principal_component = Column(Numeric(10, 2), nullable=False)
    interest_component = Column(Numeric(10, 2), nullable=False)
    extra_repayment = Column(Numeric(10, 2), nullable=False)
    ending_balance_after_extra = Column(Numeric(12, 2), nullable=False)
    remaining_term_months = Column(Integer, nullable=False)


_LOAN_FIELDS = [
    "loan_amount",
    "annual_interest_rate",
    "loan_term_years",
    "monthly_extra_payment",
    "monthly_payment",
    "total_payments",
    "total_interest",
    "effective_interest_rate",
    "original_term_months",
    "actual_term_months",
    "time_saved_months",
    "interest_saved",
]
_SCHEDULE_FIELDS = [
    "month_number",
    "starting_balance",
    "monthly_payment",
    "principal_component",
    "interest_component",
    "ending_balance",
]
_EXTRA_SCHEDULE_FIELDS = [
    "month_number",
    "starting_balance",
    "monthly_payment",
    "principal_component",
    "interest_component",
    "extra_repayment",
    "ending_balance_after_extra",
    "remaining_term_months",
]


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    return value


class LoanStore:
    """Database-backed store of computed loans and their schedules."""

    def __init__(self, url: str) -> None:
        engine_kwargs: Dict[str, Any] = {"future": True}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection so every session sees the same in-memory database.
            engine_kwargs.update(connect_args={"check_same_thread": False}, poolclass=StaticPool)
        self._engine = create_engine(url, **engine_kwargs)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)

    def save_calculation(self, calculation: LoanCalculation) -> int:
        """Persist the loan and both schedules; return the new loan id."""
        loan = LoanModel(**loan_record(calculation))
        loan.schedule = [AmortizationScheduleModel(**row) for row in schedule_records(calculation.schedule)]
        if calculation.extra_schedule is not None:
            loan.extra_schedule = [
                ExtraRepaymentScheduleModel(**row)
                for row in extra_schedule_records(calculation.extra_schedule)
            ]
        with self._session_factory() as session:
            session.add(loan)
            session.commit()
            loan_id = loan.id
        logger.info(
            "Stored loan %s with %d standard and %d extra schedule rows",
            loan_id,
            len(calculation.schedule),
            len(calculation.extra_schedule or ()),
        )
        return loan_id

    def get_loan(self, loan_id: int) -> Optional[Dict[str, Any]]:
        with self._session_factory() as session:
            row = session.get(LoanModel, loan_id)
            if row is None:
                return None
            return self._loan_to_dict(row)

    def get_schedule(self, loan_id: int) -> List[Dict[str, Any]]:
        with self._session_factory() as session:
            rows = session.execute(
                select(AmortizationScheduleModel)
                .where(AmortizationScheduleModel.loan_id == loan_id)
                .order_by(AmortizationScheduleModel.month_number.asc())
            ).scalars()
            return [self._row_to_dict(row, _SCHEDULE_FIELDS) for row in rows]

    def get_extra_schedule(self, loan_id: int) -> Optional[List[Dict[str, Any]]]:
        """Return the extra-payment rows, or ``None`` when the loan has none."""
        with self._session_factory() as session:
            rows = session.execute(
                select(ExtraRepaymentScheduleModel)
                .where(ExtraRepaymentScheduleModel.loan_id == loan_id)
                .order_by(ExtraRepaymentScheduleModel.month_number.asc())
            ).scalars().all()
            if not rows:
                return None
            return [self._row_to_dict(row, _EXTRA_SCHEDULE_FIELDS) for row in rows]

    @staticmethod
    def _loan_to_dict(row: LoanModel) -> Dict[str, Any]:
        data = {"loan_id": row.id}
        data.update({field: _plain(getattr(row, field)) for field in _LOAN_FIELDS})
        return data

    @staticmethod
    def _row_to_dict(row: Any, fields: List[str]) -> Dict[str, Any]:
        data = {"id": row.id, "loan_id": row.loan_id}
        data.update({field: _plain(getattr(row, field)) for field in fields})
        return data


def create_store_from_env(url: str | None) -> LoanStore:
    return LoanStore(url or "sqlite:///mortgage_data.sqlite3")
