"""Core calculation engine for the mortgage calculator.

This module implements the financial logic: the fixed monthly payment of an
annuity loan, the month-by-month amortization schedule, the accelerated
schedule produced by a constant extra principal payment, a closed-form
projection of the remaining term and a bisection search for the effective
annual rate. Every function is pure; schedules are returned as tuples of
frozen ``ScheduleEntry`` objects and nothing is written anywhere.
"""

from __future__ import annotations

import logging
import math
from decimal import ROUND_HALF_UP, Decimal, getcontext
from typing import List, Optional, Sequence, Tuple

from .data_models import (
    ExtraScheduleEntry,
    LoanCalculation,
    LoanParameters,
    LoanResult,
    ScheduleEntry,
)

getcontext().prec = 28  # increase precision for financial calculations

logger = logging.getLogger(__name__)

# A schedule may run at most this many times the original term before we give up.
MAX_TERM_MULTIPLIER = 2
# Returned by ``estimate_remaining_term`` when the payment never clears the balance.
NEVER_PAID_OFF = 999
MAX_BISECTION_ITERATIONS = 200

CENT = Decimal("0.01")
RATE_QUANTUM = Decimal("0.0001")
# Balances below half a cent are treated as paid off.
RESIDUAL_THRESHOLD = Decimal("0.005")

_BISECTION_LOW = Decimal("0.000001")
_BISECTION_HIGH = Decimal("1")
_BISECTION_TOLERANCE = Decimal("0.0000001")


class InvariantViolation(RuntimeError):
    """Raised when a schedule exhausts its iteration budget without paying off.

    Validated inputs never trigger this; it means a parameter combination that
    cannot amortize slipped past validation.
    """


def round_currency(value: Decimal) -> Decimal:
    """Round to cents, ties away from zero (0.125 -> 0.13)."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def round_rate(value: Decimal) -> Decimal:
    """Round a percentage rate to four decimal places, ties away from zero."""
    return value.quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)


def _annuity_payment(principal: Decimal, rate_per_month: Decimal, term: int) -> Decimal:
    """Return the unrounded annuity payment for a strictly positive rate.

    The formula is:

        payment = P * i / (1 - (1 + i)^-n)
    """
    return (principal * rate_per_month) / (1 - (1 + rate_per_month) ** -term)


def calculate_monthly_payment(principal: Decimal, annual_rate: Decimal, term_years: int) -> Decimal:
    """Return the fixed monthly payment for a loan.

    Parameters
    ----------
    principal: Decimal
        Amount borrowed; must be positive.
    annual_rate: Decimal
        Annual nominal rate in percent.
    term_years: int
        Term in years; must be positive.

    Returns
    -------
    Decimal
        ``principal / months`` (not rounded) when the rate is zero, otherwise
        the annuity payment rounded to cents.
    """
    rate_per_month = (annual_rate / Decimal(12)) / Decimal(100)
    months = term_years * 12
    if rate_per_month == 0:
        return principal / Decimal(months)
    return round_currency(_annuity_payment(principal, rate_per_month, months))


def estimate_remaining_term(balance: Decimal, rate_per_month: Decimal, payment: Decimal) -> int:
    """Project how many more months ``payment`` needs to clear ``balance``.

    Uses the closed-form annuity term

        n = ceil(ln(payment / (payment - i * balance)) / ln(1 + i))

    rounding up so the estimate is never shorter than reality. Returns
    ``NEVER_PAID_OFF`` when the rate is not positive or the payment does not
    cover the monthly interest.
    """
    if rate_per_month <= 0 or payment <= balance * rate_per_month:
        return NEVER_PAID_OFF
    numerator = (payment / (payment - rate_per_month * balance)).ln()
    denominator = (1 + rate_per_month).ln()
    return math.ceil(numerator / denominator)


def _settle(balance: Decimal) -> Decimal:
    if balance < RESIDUAL_THRESHOLD:
        return Decimal("0")
    return balance


def _max_months(term_months: int) -> int:
    return term_months * MAX_TERM_MULTIPLIER


def generate_amortization_schedule(
    principal: Decimal,
    rate_per_month: Decimal,
    monthly_payment: Decimal,
    term_months: int,
) -> Tuple[ScheduleEntry, ...]:
    """Build the standard month-by-month amortization schedule.

    The running balance keeps full precision; each entry stores its amounts
    rounded to cents. The schedule ends with the first month whose ending
    balance is zero.

    The final installment pays exactly the balance plus interest. When the
    rounded payment falls slightly short of the exact annuity, the residual
    left at the end of the term (less than one payment) is added to the
    installment of month ``term_months`` instead of opening another month.

    Raises
    ------
    InvariantViolation
        If the loan is not paid off within ``MAX_TERM_MULTIPLIER`` times the
        original term.
    """
    schedule: List[ScheduleEntry] = []
    balance = principal
    max_months = _max_months(term_months)
    month = 1
    while balance > 0 and month <= max_months:
        payment = monthly_payment
        interest_payment = balance * rate_per_month
        principal_payment = payment - interest_payment
        residual = balance - principal_payment
        if residual <= 0 or (month == term_months and residual < monthly_payment):
            principal_payment = balance
            payment = balance + interest_payment
        ending_balance = _settle(max(Decimal("0"), balance - principal_payment))
        schedule.append(
            ScheduleEntry(
                month=month,
                starting_balance=round_currency(balance),
                payment=round_currency(payment),
                principal_payment=round_currency(principal_payment),
                interest_payment=round_currency(interest_payment),
                ending_balance=round_currency(ending_balance),
            )
        )
        balance = ending_balance
        month += 1

    if balance > 0:
        raise InvariantViolation(
            f"Balance {round_currency(balance)} left after {max_months} months; "
            f"payment {monthly_payment} does not amortize the loan"
        )
    return tuple(schedule)


def generate_extra_payment_schedule(
    principal: Decimal,
    rate_per_month: Decimal,
    monthly_payment: Decimal,
    extra_payment: Decimal,
    term_months: int,
) -> Tuple[ExtraScheduleEntry, ...]:
    """Build the schedule where ``extra_payment`` goes to principal every month.

    When the balance drops below the regular payment, that month's payment is
    reduced to the balance plus interest. The extra amount applied is capped at
    what is still owed after the regular payment, so the balance never goes
    negative.

    Raises
    ------
    InvariantViolation
        If the loan is not paid off within ``MAX_TERM_MULTIPLIER`` times the
        original term.
    """
    schedule: List[ExtraScheduleEntry] = []
    balance = principal
    max_months = _max_months(term_months)
    month = 1
    while balance > 0 and month <= max_months:
        payment = monthly_payment
        interest_payment = balance * rate_per_month
        principal_payment = payment - interest_payment
        # Last regular installment: pay off exactly what is left.
        if balance < payment:
            principal_payment = balance
            payment = balance + interest_payment
        balance_after_regular = balance - principal_payment

        applied_extra = min(extra_payment, max(Decimal("0"), balance_after_regular))
        ending_balance = _settle(max(Decimal("0"), balance_after_regular - applied_extra))
        remaining = estimate_remaining_term(ending_balance, rate_per_month, payment)

        schedule.append(
            ExtraScheduleEntry(
                month=month,
                starting_balance=round_currency(balance),
                payment=round_currency(payment),
                principal_payment=round_currency(principal_payment),
                interest_payment=round_currency(interest_payment),
                ending_balance=round_currency(ending_balance),
                extra_payment=round_currency(applied_extra),
                remaining_months=remaining,
            )
        )
        balance = ending_balance
        month += 1

    if balance > 0:
        raise InvariantViolation(
            f"Balance {round_currency(balance)} left after {max_months} months "
            f"with extra payment {extra_payment}"
        )
    return tuple(schedule)


def solve_effective_rate(principal: Decimal, total_paid: Decimal, months: int) -> Decimal:
    """Find the annual rate (percent, 4 dp) at which ``principal`` repaid in
    ``months`` equal payments costs ``total_paid`` in total.

    Bisects the monthly rate on ``[0.000001, 1]``; the annuity payment grows
    strictly with the rate, so the bracket shrinks towards the single root.
    Degenerate inputs (non-positive principal, months or total) give zero.
    """
    if principal <= 0 or months <= 0 or total_paid <= 0:
        return Decimal("0")

    target_payment = total_paid / Decimal(months)
    low = _BISECTION_LOW
    high = _BISECTION_HIGH
    iterations = 0
    while high - low > _BISECTION_TOLERANCE and iterations < MAX_BISECTION_ITERATIONS:
        mid = (low + high) / 2
        if _annuity_payment(principal, mid, months) > target_payment:
            high = mid
        else:
            low = mid
        iterations += 1

    monthly_rate = (low + high) / 2
    return round_rate(monthly_rate * 12 * 100)


def calculate_loan_totals(
    params: LoanParameters,
    monthly_payment: Decimal,
    schedule: Sequence[ScheduleEntry],
    extra_schedule: Optional[Sequence[ExtraScheduleEntry]] = None,
) -> LoanResult:
    """Aggregate the schedules into a ``LoanResult``.

    With an extra schedule, the actual term is the number of months that end
    with a balance still owed plus one for the payoff month.
    """
    total_payments = sum((e.payment for e in schedule), Decimal("0"))
    total_interest = sum((e.interest_payment for e in schedule), Decimal("0"))

    actual_term_months = len(schedule)
    months_saved = 0
    interest_saved = Decimal("0")
    effective_rate = round_rate(params.annual_rate)

    if extra_schedule is not None:
        actual_term_months = sum(1 for e in extra_schedule if e.ending_balance > 0) + 1
        extra_interest = sum((e.interest_payment for e in extra_schedule), Decimal("0"))
        interest_saved = total_interest - extra_interest
        months_saved = params.term_months - actual_term_months

        total_extra = sum((e.extra_payment for e in extra_schedule), Decimal("0"))
        total_paid = extra_interest + params.principal + total_extra
        effective_rate = solve_effective_rate(params.principal, total_paid, actual_term_months)

    return LoanResult(
        monthly_payment=round_currency(monthly_payment),
        original_term_months=params.term_months,
        total_payments=total_payments,
        total_interest=total_interest,
        actual_term_months=actual_term_months,
        months_saved=months_saved,
        interest_saved=interest_saved,
        effective_rate=effective_rate,
    )


def calculate_loan(params: LoanParameters) -> LoanCalculation:
    """Run the complete calculation for a set of validated loan parameters.

    The standard schedule is always produced; the extra-payment schedule only
    when ``params.extra_payment`` is positive.
    """
    monthly_payment = calculate_monthly_payment(params.principal, params.annual_rate, params.term_years)
    rate_per_month = params.monthly_rate
    logger.debug(
        "Monthly payment %s for principal %s at %s%% over %d months",
        monthly_payment,
        params.principal,
        params.annual_rate,
        params.term_months,
    )

    schedule = generate_amortization_schedule(
        params.principal, rate_per_month, monthly_payment, params.term_months
    )
    extra_schedule = None
    if params.has_extra_payment:
        extra_schedule = generate_extra_payment_schedule(
            params.principal,
            rate_per_month,
            monthly_payment,
            params.extra_payment,
            params.term_months,
        )
        logger.debug("Extra payment schedule has %d months", len(extra_schedule))

    result = calculate_loan_totals(params, monthly_payment, schedule, extra_schedule)
    logger.debug("Loan totals: %s", result)
    return LoanCalculation(
        params=params,
        result=result,
        schedule=schedule,
        extra_schedule=extra_schedule,
    )
