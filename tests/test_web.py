"""
Tests for the JSON API and the loan store behind it.
"""

from decimal import Decimal

import pytest

from mortgage_calc.data_models import LoanParameters
from mortgage_calc.engine import calculate_loan
from mortgage_calc_web.app import create_app
from mortgage_calc_web.loan_store import LoanModel, LoanStore

LOAN_KEYS = {
    "loan_id",
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
}


@pytest.fixture
def client():
    app = create_app("sqlite://")
    app.config["TESTING"] = True
    return app.test_client()


def _create(client, **body):
    response = client.post("/api/loans/calculate", json=body)
    assert response.status_code == 201, response.get_json()
    return response.get_json()["data"]


class TestCalculate:
    def test_returns_created_loan(self, client):
        loan = _create(
            client,
            loan_amount=300000,
            annual_interest_rate=4.5,
            loan_term_years=30,
            monthly_extra_payment=200,
        )
        assert set(loan) == LOAN_KEYS
        assert loan["monthly_payment"] == 1520.06
        assert loan["effective_interest_rate"] == 5.6455
        assert loan["original_term_months"] == 360
        assert loan["time_saved_months"] == 76

    def test_extra_payment_is_optional(self, client):
        loan = _create(client, loan_amount=300000, annual_interest_rate=4.5, loan_term_years=5)
        assert loan["monthly_extra_payment"] == 0
        assert loan["time_saved_months"] == 0
        assert loan["effective_interest_rate"] == 4.5

    def test_validates_required_fields(self, client):
        response = client.post("/api/loans/calculate", json={})
        assert response.status_code == 422
        errors = response.get_json()["errors"]
        assert {"loan_amount", "annual_interest_rate", "loan_term_years"} <= set(errors)

    @pytest.mark.parametrize(
        "field,value",
        [("loan_amount", -50000), ("annual_interest_rate", -1), ("loan_term_years", 0)],
    )
    def test_rejects_out_of_range_values(self, client, field, value):
        body = {"loan_amount": 300000, "annual_interest_rate": 4.5, "loan_term_years": 30}
        body[field] = value
        response = client.post("/api/loans/calculate", json=body)
        assert response.status_code == 422
        assert list(response.get_json()["errors"]) == [field]

    def test_non_json_body(self, client):
        response = client.post("/api/loans/calculate", data="not json", content_type="text/plain")
        assert response.status_code == 422

    def test_loan_that_never_amortizes(self, client):
        response = client.post(
            "/api/loans/calculate",
            json={"loan_amount": 1, "annual_interest_rate": 100, "loan_term_years": 50},
        )
        assert response.status_code == 422
        body = response.get_json()
        assert body["message"] == "The loan cannot be paid off with these parameters"
        assert "does not amortize" in body["detail"]


class TestSchedules:
    def test_amortization_schedule(self, client):
        loan = _create(client, loan_amount=100000, annual_interest_rate=5.0, loan_term_years=10)
        response = client.get(f"/api/loans/{loan['loan_id']}/amortization-schedule")
        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["loan_details"]["loan_id"] == loan["loan_id"]
        schedule = data["schedule"]
        assert len(schedule) == 120
        assert [row["month_number"] for row in schedule] == list(range(1, 121))
        assert schedule[0]["starting_balance"] == 100000.0
        assert schedule[-1]["ending_balance"] == 0
        assert {
            "month_number",
            "starting_balance",
            "monthly_payment",
            "principal_component",
            "interest_component",
            "ending_balance",
        } <= set(schedule[0])

    def test_extra_payment_schedule(self, client):
        loan = _create(
            client,
            loan_amount=300000,
            annual_interest_rate=4.5,
            loan_term_years=5,
            monthly_extra_payment=1000,
        )
        response = client.get(f"/api/loans/{loan['loan_id']}/extra-payment-schedule")
        assert response.status_code == 200
        schedule = response.get_json()["data"]["schedule"]
        assert schedule[0]["extra_repayment"] == 1000.0
        assert schedule[-1]["ending_balance_after_extra"] == 0
        assert schedule[-1]["remaining_term_months"] == 0
        assert len(schedule) < 60

    def test_extra_payment_schedule_not_found_without_extra(self, client):
        loan = _create(client, loan_amount=300000, annual_interest_rate=4.5, loan_term_years=5)
        response = client.get(f"/api/loans/{loan['loan_id']}/extra-payment-schedule")
        assert response.status_code == 404
        assert response.get_json()["message"] == "No extra payment schedule found for this loan"

    @pytest.mark.parametrize("route", ["amortization-schedule", "extra-payment-schedule"])
    def test_unknown_loan(self, client, route):
        response = client.get(f"/api/loans/9999/{route}")
        assert response.status_code == 404


class TestLoanStore:
    def test_round_trip(self):
        store = LoanStore("sqlite://")
        params = LoanParameters(Decimal("100000"), Decimal("5.0"), 10, Decimal("100"))
        calculation = calculate_loan(params)
        loan_id = store.save_calculation(calculation)

        loan = store.get_loan(loan_id)
        assert loan["monthly_payment"] == 1060.66
        assert loan["actual_term_months"] == calculation.result.actual_term_months
        assert len(store.get_schedule(loan_id)) == len(calculation.schedule)
        assert len(store.get_extra_schedule(loan_id)) == len(calculation.extra_schedule)

    def test_loans_are_kept_apart(self):
        store = LoanStore("sqlite://")
        first = store.save_calculation(calculate_loan(LoanParameters(Decimal("1000"), Decimal("5"), 1)))
        second = store.save_calculation(
            calculate_loan(LoanParameters(Decimal("2000"), Decimal("5"), 2, Decimal("50")))
        )
        assert store.get_extra_schedule(first) is None
        assert len(store.get_schedule(first)) == 12
        assert store.get_extra_schedule(second) is not None
        assert store.get_loan(12345) is None

    def test_effective_rate_above_one_thousand_percent(self):
        store = LoanStore("sqlite://")
        calculation = calculate_loan(LoanParameters(Decimal("1"), Decimal("5"), 1, Decimal("1000")))
        assert calculation.result.effective_rate > 1000
        loan_id = store.save_calculation(calculation)

        loan = store.get_loan(loan_id)
        assert loan["effective_interest_rate"] == float(calculation.result.effective_rate)
        assert LoanModel.__table__.c.effective_interest_rate.type.precision >= 8
