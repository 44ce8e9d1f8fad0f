"""Command-line interface for DebtLedger."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

import click

from .config import BaseConfig
from .context import AppContext, create_app_context
from .errors import DebtLedgerError
from .logging_config import setup_logging
from .models.debt import DebtType
from .services.debts import DebtFilters

T = TypeVar("T")


def describe_error(exc: DebtLedgerError) -> str:
    """One-line rendering of a classified error and its details."""

    data = exc.to_dict()
    text = f"[{data.pop('kind')}] {data.pop('message')}"
    data.pop("retryable")
    if data:
        text += " (" + ", ".join(f"{key}={value}" for key, value in data.items()) + ")"
    return text


def _run(config: BaseConfig, action: Callable[[AppContext], Awaitable[T]]) -> T:
    """Build a context, run *action* in an event loop and dispose the engine."""

    async def _main() -> T:
        context = await create_app_context(config)
        try:
            return await action(context)
        finally:
            await context.dispose()

    try:
        return asyncio.run(_main())
    except DebtLedgerError as exc:
        raise click.ClickException(describe_error(exc)) from exc


@click.group()
@click.pass_context
def main(ctx: click.Context) -> None:
    """Track household debts, payments and amortization schedules."""

    config = BaseConfig()
    setup_logging(config)
    ctx.obj = config


@main.command("init-db")
@click.pass_obj
def init_db(config: BaseConfig) -> None:
    """Create the database schema."""

    async def action(context: AppContext) -> None:
        return None

    _run(config, action)
    click.echo(f"Database ready: {config.DATABASE_URL}")


@main.command("list")
@click.argument("household_id")
@click.option(
    "--type",
    "debt_type",
    type=click.Choice([t.value for t in DebtType], case_sensitive=False),
    default=None,
    help="Only debts of this type",
)
@click.option("--inactive", is_flag=True, default=False, help="List inactive debts instead of active")
@click.option("--search", default=None, help="Match name or creditor")
@click.pass_obj
def list_debts(
    config: BaseConfig,
    household_id: str,
    debt_type: Optional[str],
    inactive: bool,
    search: Optional[str],
) -> None:
    """List a household's debts."""

    filters = DebtFilters(type=debt_type, is_active=not inactive, search=search)
    debts = _run(
        config, lambda context: context.debt_service.get_debts_by_household(household_id, filters)
    )
    if not debts:
        click.echo("No debts found.")
        return
    for debt in debts:
        balance = debt.current_balance_cents / 100
        rate = f"{debt.rate * 100:.2f}%" if debt.rate is not None else "-"
        click.echo(
            f"{debt.id}  {DebtType(debt.type).value:<12}  {debt.name} ({debt.creditor})  "
            f"{balance:,.2f} {debt.currency}  {rate}"
        )


@main.command("schedule")
@click.argument("debt_id")
@click.argument("household_id")
@click.pass_obj
def schedule(config: BaseConfig, debt_id: str, household_id: str) -> None:
    """Print the amortization schedule for a debt."""

    result = _run(
        config,
        lambda context: context.debt_service.calculate_payment_schedule(debt_id, household_id),
    )
    click.echo(f"{result.debt_name} [{result.debt_type.value}] {result.currency}")
    if result.monthly_payment is not None:
        click.echo(f"Monthly payment: {result.monthly_payment}")
    for row in result.schedule:
        status = "paid" if row.is_paid else ("overdue" if row.is_overdue else "due")
        click.echo(
            f"{row.payment_number:>4}  {row.due_date.isoformat()}  {row.payment_amount:>14}  "
            f"{row.principal_amount:>14}  {row.interest_amount:>12}  {row.remaining_balance:>14}  {status}"
        )
    summary = result.summary
    click.echo(
        f"Total interest: {summary.total_interest}  Total principal: {summary.total_principal}  "
        f"Payoff: {summary.payoff_date.isoformat() if summary.payoff_date else '-'}"
    )


@main.command("summary")
@click.argument("household_id")
@click.pass_obj
def summary(config: BaseConfig, household_id: str) -> None:
    """Print the household's active-debt summary."""

    result = _run(config, lambda context: context.debt_service.get_debt_summary(household_id))
    click.echo(f"Total debt: {result.total_debt} {result.currency or '(mixed)'}")
    for group in result.by_type:
        click.echo(f"  {group.type.value:<12} {group.count:>3} debt(s)  {group.total_balance}")
    upcoming = result.upcoming_payments
    click.echo(
        f"Overdue: {len(upcoming.overdue)}  Today: {len(upcoming.due_today)}  "
        f"This week: {len(upcoming.due_this_week)}  This month: {len(upcoming.due_this_month)}"
    )
    projection = result.payoff_projection
    click.echo(
        f"Interest remaining: {projection.total_interest_remaining}  "
        f"Average months to payoff: {projection.average_payoff_months}"
    )


if __name__ == "__main__":  # pragma: no cover
    main()
