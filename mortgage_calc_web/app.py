"""JSON API for the mortgage calculator.

Routes:

* ``POST /api/loans/calculate`` computes a loan, stores it and returns it.
* ``GET /api/loans/<id>/amortization-schedule`` returns the standard schedule.
* ``GET /api/loans/<id>/extra-payment-schedule`` returns the schedule with
  extra payments, or 404 when the loan was computed without one.

The database URL comes from ``MORTGAGE_DATABASE_URL`` unless one is passed to
``create_app``.
"""

from __future__ import annotations

import logging
import os

from flask import Flask, abort, current_app, jsonify, request

from mortgage_calc.engine import InvariantViolation, calculate_loan
from mortgage_calc.utils import LoanValidationError, validate_loan_input
from mortgage_calc_web.loan_store import create_store_from_env

logger = logging.getLogger(__name__)

NO_EXTRA_SCHEDULE_MESSAGE = "No extra payment schedule found for this loan"


def _store():
    return current_app.config["LOAN_STORE"]


def _loan_or_404(loan_id: int) -> dict:
    loan = _store().get_loan(loan_id)
    if loan is None:
        abort(404)
    return loan


def calculate():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        payload = {}
    try:
        params = validate_loan_input(payload)
    except LoanValidationError as exc:
        logger.warning("Rejected loan input: %s", exc.errors)
        return jsonify({"message": str(exc), "errors": exc.errors}), 422

    calculation = calculate_loan(params)
    loan_id = _store().save_calculation(calculation)
    return jsonify({"data": _store().get_loan(loan_id)}), 201


def amortization_schedule(loan_id: int):
    loan = _loan_or_404(loan_id)
    schedule = _store().get_schedule(loan_id)
    return jsonify({"data": {"loan_details": loan, "schedule": schedule}})


def extra_payment_schedule(loan_id: int):
    loan = _loan_or_404(loan_id)
    schedule = _store().get_extra_schedule(loan_id)
    if schedule is None:
        return jsonify({"message": NO_EXTRA_SCHEDULE_MESSAGE}), 404
    return jsonify({"data": {"loan_details": loan, "schedule": schedule}})


def loan_not_amortizing(exc):
    logger.error("Loan does not amortize: %s", exc)
    return jsonify({"message": "The loan cannot be paid off with these parameters", "detail": str(exc)}), 422


def not_found(exc):
    return jsonify({"message": "Not found"}), 404


def create_app(database_url: str | None = None) -> Flask:
    app = Flask(__name__)
    app.config["LOAN_STORE"] = create_store_from_env(
        database_url or os.environ.get("MORTGAGE_DATABASE_URL")
    )
    app.add_url_rule("/api/loans/calculate", view_func=calculate, methods=["POST"])
    app.add_url_rule(
        "/api/loans/<int:loan_id>/amortization-schedule",
        view_func=amortization_schedule,
        methods=["GET"],
    )
    app.add_url_rule(
        "/api/loans/<int:loan_id>/extra-payment-schedule",
        view_func=extra_payment_schedule,
        methods=["GET"],
    )
    app.register_error_handler(404, not_found)
    app.register_error_handler(InvariantViolation, loan_not_amortizing)
    return app


if __name__ == "__main__":
    print("Starting Mortgage Calculator API...")
    create_app().run(host="0.0.0.0", port=8710, debug=True)
