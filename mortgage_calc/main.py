"""Command-line interface for the mortgage calculator.

This module uses the ``click`` library to implement a multi-command
interface. Users can compute the standard amortization schedule, the
accelerated schedule produced by a monthly extra payment, or only the summary
metrics. Results can be printed to the terminal or exported to JSON/CSV files.
"""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import click

from .data_models import LoanCalculation, LoanParameters
from .engine import InvariantViolation, calculate_loan
from .formatter import (
    extra_schedule_records,
    loan_record,
    print_extra_schedule,
    print_schedule,
    print_summary,
    schedule_records,
)
from .utils import LoanValidationError, decimal_from_str, validate_loan_input

NO_EXTRA_SCHEDULE_MESSAGE = "No extra payment schedule found for this loan"


def parse_amount(value: str) -> str:
    """Expand a numeric string with optional suffixes.

    Accepts plain numbers ("500000", "500,000") and shorthand with ``k``/``m``
    suffixes (e.g., "300k" meaning 300_000). Returns the plain numeric string.
    """
    value = value.strip().lower().replace(",", "")
    factor = 1
    if value.endswith("k"):
        factor = 1_000
        value = value[:-1]
    elif value.endswith("m"):
        factor = 1_000_000
        value = value[:-1]
    try:
        number = decimal_from_str(value)
    except ValueError:
        raise click.BadParameter(f"Invalid amount: {value}")
    return str(number * factor)


def build_params_from_options(
    principal: str,
    rate: str,
    years: str,
    extra: Optional[str] = None,
) -> LoanParameters:
    """Validate the raw option strings and return ``LoanParameters``."""
    data = {
        "loan_amount": parse_amount(principal),
        "annual_interest_rate": rate,
        "loan_term_years": years,
        "monthly_extra_payment": parse_amount(extra) if extra else None,
    }
    try:
        return validate_loan_input(data)
    except LoanValidationError as exc:
        messages = [m for field_messages in exc.errors.values() for m in field_messages]
        raise click.BadParameter(" ".join(messages))


def run_calculation(params: LoanParameters) -> LoanCalculation:
    try:
        return calculate_loan(params)
    except InvariantViolation as exc:
        raise click.ClickException(f"The loan cannot be paid off with these parameters: {exc}")


def _json_ready(record: Dict[str, Any]) -> Dict[str, Any]:
    return {k: float(v) if not isinstance(v, int) else v for k, v in record.items()}


def export_to_json(path: Path, calculation: LoanCalculation, extra: bool = False) -> None:
    """Export the summary and one schedule to a JSON file."""
    if extra:
        rows = extra_schedule_records(calculation.extra_schedule)
    else:
        rows = schedule_records(calculation.schedule)
    data = {
        "summary": _json_ready(loan_record(calculation)),
        "schedule": [_json_ready(r) for r in rows],
    }
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def export_to_csv(path: Path, rows: List[Dict[str, Any]]) -> None:
    """Export schedule rows to a CSV file, one column per field."""
    if not rows:
        raise click.UsageError("Nothing to export")
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=list(rows[0].keys()))
        writer.writeheader()
        for row in rows:
            writer.writerow({k: str(v) for k, v in row.items()})


def _export(output: str, calculation: LoanCalculation, extra: bool) -> None:
    path = Path(output)
    suffix = path.suffix.lower()
    if suffix == ".json":
        export_to_json(path, calculation, extra=extra)
    elif suffix == ".csv":
        if extra:
            export_to_csv(path, extra_schedule_records(calculation.extra_schedule))
        else:
            export_to_csv(path, schedule_records(calculation.schedule))
    else:
        raise click.BadParameter("Unsupported output format; use .json or .csv")
    click.echo(f"Schedule exported to {path}")


def loan_options(func):
    """Attach the loan input options shared by every command."""
    func = click.option("--extra", "-e", "extra", help="Extra principal paid every month")(func)
    func = click.option("--years", "-y", "years", required=True, help="Loan term in years")(func)
    func = click.option("--rate", "-r", "rate", required=True, help="Annual interest rate (percent)")(func)
    func = click.option("--principal", "-p", "principal", required=True, help="Loan amount, e.g. 300000 or 300k")(func)
    return func


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log calculation details")
def cli(verbose: bool) -> None:
    """A command-line mortgage amortization calculator."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


@cli.command()
@loan_options
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
def schedule(principal: str, rate: str, years: str, extra: Optional[str], output: Optional[str]) -> None:
    """Compute and print the standard amortization schedule."""
    params = build_params_from_options(principal, rate, years, extra)
    calculation = run_calculation(params)
    if output:
        _export(output, calculation, extra=False)
        return
    print_summary(calculation.result, params.extra_payment)
    print_schedule(calculation.schedule)


@cli.command("extra-schedule")
@loan_options
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
def extra_schedule(principal: str, rate: str, years: str, extra: Optional[str], output: Optional[str]) -> None:
    """Compute and print the schedule with monthly extra payments."""
    params = build_params_from_options(principal, rate, years, extra)
    calculation = run_calculation(params)
    if calculation.extra_schedule is None:
        raise click.UsageError(NO_EXTRA_SCHEDULE_MESSAGE)
    if output:
        _export(output, calculation, extra=True)
        return
    print_summary(calculation.result, params.extra_payment)
    print_extra_schedule(calculation.extra_schedule)


@cli.command()
@loan_options
@click.option("--output", "output", type=str, help="Output file path (.json)")
def summary(principal: str, rate: str, years: str, extra: Optional[str], output: Optional[str]) -> None:
    """Compute and print only the summary metrics for a loan."""
    params = build_params_from_options(principal, rate, years, extra)
    calculation = run_calculation(params)
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Summary export must use .json extension")
        with path.open("w", encoding="utf-8") as f:
            json.dump({"summary": _json_ready(loan_record(calculation))}, f, indent=2)
        click.echo(f"Summary exported to {path}")
    else:
        print_summary(calculation.result, params.extra_payment)


if __name__ == "__main__":
    cli()
