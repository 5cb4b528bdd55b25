"""Utility functions for the mortgage calculator.

This module provides helpers for turning user input (CLI options, JSON
request bodies) into Python data types and for validating it against the
ranges the calculator accepts before a ``LoanParameters`` is built.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional

from .data_models import LoanParameters

MIN_PRINCIPAL = Decimal("1")
MAX_PRINCIPAL = Decimal("10000000")
MIN_RATE = Decimal("0.01")
MAX_RATE = Decimal("100")
RATE_QUANTUM = Decimal("0.0001")
MIN_TERM_YEARS = 1
MAX_TERM_YEARS = 50
MAX_EXTRA_PAYMENT = Decimal("100000")


class LoanValidationError(ValueError):
    """Raised when loan input fails validation.

    ``errors`` maps each failing field name to its list of messages.
    """

    def __init__(self, errors: Dict[str, List[str]]):
        self.errors = errors
        first = next(iter(errors.values()))[0]
        super().__init__(first)


def decimal_from_str(value: str) -> Decimal:
    """Convert a numeric string into a ``Decimal``.

    The function strips any commas and handles both integer and float-like
    strings. It raises ``ValueError`` if conversion fails.
    """
    try:
        cleaned = value.replace(",", "").strip()
        result = Decimal(cleaned)
    except (InvalidOperation, AttributeError) as exc:
        raise ValueError(f"Invalid numeric value: {value}") from exc
    if not result.is_finite():
        raise ValueError(f"Invalid numeric value: {value}")
    return result


def _to_decimal(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        value = str(value)
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, str):
        try:
            return decimal_from_str(value)
        except ValueError:
            return None
    return None


def _to_int(value: Any) -> Optional[int]:
    number = _to_decimal(value)
    if number is None or number != number.to_integral_value():
        return None
    return int(number)


def validate_loan_input(data: Mapping[str, Any]) -> LoanParameters:
    """Validate raw loan input and build ``LoanParameters``.

    Expected keys are ``loan_amount``, ``annual_interest_rate``,
    ``loan_term_years`` and the optional ``monthly_extra_payment`` (missing or
    ``None`` means no extra payment). All failing fields are collected before
    raising ``LoanValidationError``.
    """
    errors: Dict[str, List[str]] = {}

    principal = None
    if data.get("loan_amount") in (None, ""):
        errors["loan_amount"] = ["Loan amount is required."]
    else:
        principal = _to_decimal(data["loan_amount"])
        if principal is None:
            errors["loan_amount"] = ["Loan amount must be a valid number."]
        elif principal < MIN_PRINCIPAL:
            errors["loan_amount"] = ["Loan amount must be at least $1."]
        elif principal > MAX_PRINCIPAL:
            errors["loan_amount"] = ["Loan amount cannot exceed $10,000,000."]

    rate = None
    if data.get("annual_interest_rate") in (None, ""):
        errors["annual_interest_rate"] = ["Annual interest rate is required."]
    else:
        rate = _to_decimal(data["annual_interest_rate"])
        if rate is None:
            errors["annual_interest_rate"] = ["Interest rate must be a valid number."]
        elif rate < MIN_RATE:
            errors["annual_interest_rate"] = ["Interest rate must be at least 0.01%."]
        elif rate > MAX_RATE:
            errors["annual_interest_rate"] = ["Interest rate cannot exceed 100%."]
        elif rate != rate.quantize(RATE_QUANTUM):
            errors["annual_interest_rate"] = ["Interest rate may have at most 4 decimal places."]

    term_years = None
    if data.get("loan_term_years") in (None, ""):
        errors["loan_term_years"] = ["Loan term is required."]
    else:
        term_years = _to_int(data["loan_term_years"])
        if term_years is None:
            errors["loan_term_years"] = ["Loan term must be a whole number of years."]
        elif term_years < MIN_TERM_YEARS:
            errors["loan_term_years"] = ["Loan term must be at least 1 year."]
        elif term_years > MAX_TERM_YEARS:
            errors["loan_term_years"] = ["Loan term cannot exceed 50 years."]

    extra = Decimal("0")
    if data.get("monthly_extra_payment") not in (None, ""):
        extra = _to_decimal(data["monthly_extra_payment"])
        if extra is None:
            errors["monthly_extra_payment"] = ["Extra payment must be a valid number."]
        elif extra < 0:
            errors["monthly_extra_payment"] = ["Extra payment cannot be negative."]
        elif extra > MAX_EXTRA_PAYMENT:
            errors["monthly_extra_payment"] = ["Extra payment cannot exceed $100,000."]

    if errors:
        raise LoanValidationError(errors)

    return LoanParameters(
        principal=principal,
        annual_rate=rate,
        term_years=term_years,
        extra_payment=extra,
    )
