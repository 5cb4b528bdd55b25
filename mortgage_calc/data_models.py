"""Data models for the mortgage calculator.

This module defines dataclasses representing the entities used by the
calculator: the validated loan parameters, the rows of the standard and
extra-payment amortization schedules, and the aggregate result. All of them are
frozen so a computed schedule cannot be altered after the engine hands it out.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Tuple


@dataclass(frozen=True)
class LoanParameters:
    """Inputs of a mortgage calculation.

    Attributes
    ----------
    principal: Decimal
        The amount borrowed.
    annual_rate: Decimal
        Annual nominal interest rate in percent (``Decimal("4.5")`` means 4.5 %).
    term_years: int
        Loan term in whole years.
    extra_payment: Decimal
        Additional principal paid every month on top of the scheduled payment.
    """

    principal: Decimal
    annual_rate: Decimal
    term_years: int
    extra_payment: Decimal = Decimal("0")

    @property
    def monthly_rate(self) -> Decimal:
        return (self.annual_rate / Decimal(12)) / Decimal(100)

    @property
    def term_months(self) -> int:
        return self.term_years * 12

    @property
    def has_extra_payment(self) -> bool:
        return self.extra_payment > 0


@dataclass(frozen=True)
class ScheduleEntry:
    """One month of the standard amortization schedule.

    Currency fields are stored rounded to cents. ``principal_payment`` and
    ``interest_payment`` add up to ``payment`` within a cent.
    """

    month: int
    starting_balance: Decimal
    payment: Decimal
    principal_payment: Decimal
    interest_payment: Decimal
    ending_balance: Decimal


@dataclass(frozen=True)
class ExtraScheduleEntry(ScheduleEntry):
    """One month of the schedule with extra principal payments.

    ``extra_payment`` is the extra amount actually applied this month (it never
    exceeds what is still owed) and ``remaining_months`` is a projection of how
    many more months the loan would take at this month's payment.
    """

    extra_payment: Decimal = Decimal("0")
    remaining_months: int = 0


@dataclass(frozen=True)
class LoanResult:
    """Aggregate metrics derived from the generated schedules."""

    monthly_payment: Decimal
    original_term_months: int
    total_payments: Decimal
    total_interest: Decimal
    actual_term_months: int
    months_saved: int
    interest_saved: Decimal
    effective_rate: Decimal  # annual, in percent


@dataclass(frozen=True)
class LoanCalculation:
    """Everything one calculation produces.

    ``extra_schedule`` is ``None`` when the loan has no extra payment, which
    is different from an empty schedule.
    """

    params: LoanParameters
    result: LoanResult
    schedule: Tuple[ScheduleEntry, ...]
    extra_schedule: Optional[Tuple[ExtraScheduleEntry, ...]] = None
