"""Output helpers for the mortgage calculator.

This module provides simple functions to render amortization schedules and
loan summaries in a tabular text format using built-in printing and string
formatting, and to flatten a calculation into row dictionaries keyed by the
column names used for JSON, CSV and database rows.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from .data_models import ExtraScheduleEntry, LoanCalculation, LoanResult, ScheduleEntry


def print_summary(result: LoanResult, extra_payment: Optional[Decimal] = None) -> None:
    """Print the loan metrics in a human-readable format."""
    print("Summary")
    print("-" * 72)
    print(f"Monthly payment    : {result.monthly_payment:.2f}")
    print(f"Original term      : {result.original_term_months} months")
    print(f"Total payments     : {result.total_payments:.2f}")
    print(f"Total interest     : {result.total_interest:.2f}")
    if extra_payment:
        print(f"Extra payment      : {extra_payment:.2f} per month")
        print(f"Actual term        : {result.actual_term_months} months")
        print(f"Time saved         : {result.months_saved} months")
        print(f"Interest saved     : {result.interest_saved:.2f}")
    print(f"Effective rate     : {result.effective_rate:.4f}%")
    print("-" * 72)


def print_schedule(schedule: Iterable[ScheduleEntry]) -> None:
    """Print the standard amortization schedule as a simple table."""
    headers = ["Month", "StartBal", "Payment", "Principal", "Interest", "EndBal"]
    print("\t".join(headers))
    for entry in schedule:
        row = [
            str(entry.month),
            f"{entry.starting_balance:.2f}",
            f"{entry.payment:.2f}",
            f"{entry.principal_payment:.2f}",
            f"{entry.interest_payment:.2f}",
            f"{entry.ending_balance:.2f}",
        ]
        print("\t".join(row))


def print_extra_schedule(schedule: Iterable[ExtraScheduleEntry]) -> None:
    """Print the extra-payment schedule.

    ``Remaining`` is the projected number of months left at that month's
    payment, not a count of the rows that follow.
    """
    headers = ["Month", "StartBal", "Payment", "Principal", "Interest", "Extra", "EndBal", "Remaining"]
    print("\t".join(headers))
    for entry in schedule:
        row = [
            str(entry.month),
            f"{entry.starting_balance:.2f}",
            f"{entry.payment:.2f}",
            f"{entry.principal_payment:.2f}",
            f"{entry.interest_payment:.2f}",
            f"{entry.extra_payment:.2f}",
            f"{entry.ending_balance:.2f}",
            str(entry.remaining_months),
        ]
        print("\t".join(row))


def loan_record(calculation: LoanCalculation) -> Dict[str, Any]:
    """Return the loan inputs and totals keyed by their stored column names."""
    params = calculation.params
    result = calculation.result
    return {
        "loan_amount": params.principal,
        "annual_interest_rate": params.annual_rate,
        "loan_term_years": params.term_years,
        "monthly_extra_payment": params.extra_payment,
        "monthly_payment": result.monthly_payment,
        "total_payments": result.total_payments,
        "total_interest": result.total_interest,
        "effective_interest_rate": result.effective_rate,
        "original_term_months": result.original_term_months,
        "actual_term_months": result.actual_term_months,
        "time_saved_months": result.months_saved,
        "interest_saved": result.interest_saved,
    }


def schedule_records(schedule: Iterable[ScheduleEntry]) -> List[Dict[str, Any]]:
    """Convert standard schedule entries into row dictionaries."""
    return [
        {
            "month_number": e.month,
            "starting_balance": e.starting_balance,
            "monthly_payment": e.payment,
            "principal_component": e.principal_payment,
            "interest_component": e.interest_payment,
            "ending_balance": e.ending_balance,
        }
        for e in schedule
    ]


def extra_schedule_records(schedule: Iterable[ExtraScheduleEntry]) -> List[Dict[str, Any]]:
    """Convert extra-payment schedule entries into row dictionaries."""
    return [
        {
            "month_number": e.month,
            "starting_balance": e.starting_balance,
            "monthly_payment": e.payment,
            "principal_component": e.principal_payment,
            "interest_component": e.interest_payment,
            "extra_repayment": e.extra_payment,
            "ending_balance_after_extra": e.ending_balance,
            "remaining_term_months": e.remaining_months,
        }
        for e in schedule
    ]
