#!/usr/bin/env python3
"""
Settlement Engine — CLI entry point.

Usage examples:
  python main.py check                                  # Show effective configuration
  python main.py init-config                            # Restore missing config files
  python main.py settle invoices.json                   # Payment status of each invoice
  python main.py settle invoices.json --now 2024-06-01 --json
  python main.py proforma proforma.json --applied 250
  python main.py stocktake items.json reservations.json # Reservation conflicts + stats
  python main.py quote quotation.json --cost-per-minute 0.45
"""
import json
import logging
import sys

import click
from pydantic import BaseModel, ValidationError

from bootstrap import ensure_config_files
from config import Config
from engine.errors import EngineError
from engine.quotation import QuotationCalculator
from engine.settlement import SettlementCalculator
from engine.stocktaking import StocktakingReconciler, group_reservations_by_batch
from models.fields import to_timestamp
from models.invoice import Invoice
from models.quotation import Quotation
from models.stocktaking import Reservation, StocktakingItem


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
        datefmt="%H:%M:%S",
    )


def _load_records(path: str) -> list[dict]:
    """Read a JSON file holding one record or a list of records."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    return data if isinstance(data, list) else [data]


def _echo_json(payload, pretty: bool) -> None:
    click.echo(json.dumps(payload, indent=2 if pretty else None, default=str, ensure_ascii=False))


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _load_models(path: str, model: type[BaseModel]) -> list:
    """Validate every record in *path*; bad JSON or records end the command."""
    try:
        return [model.model_validate(r) for r in _load_records(path)]
    except json.JSONDecodeError as exc:
        _fail(f"{path} is not valid JSON: {exc}")
    except ValidationError as exc:
        _fail(str(exc))


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Settlement Engine — invoice settlement, stocktaking and COGS calculators."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _setup_logging(verbose)


# --------------------------------------------------------------------
# check / init-config commands
# --------------------------------------------------------------------

@cli.command()
def check() -> None:
    """Print the effective configuration."""
    config = Config()
    click.echo("\n=== Engine Configuration ===\n")
    click.echo(f"  Settlement tolerance:   {config.settlement_tolerance}")
    click.echo(f"  Quantity precision:     {config.quantity_precision} dp")
    click.echo(f"  Discrepancy epsilon:    {config.discrepancy_epsilon}")
    click.echo(f"  Cost per minute:        {config.cost_per_minute}")
    click.echo(f"  Minutes per gram:       {config.minutes_per_gram}")
    click.echo(f"  Pack brackets (g):      {', '.join(str(w) for w in config.pack_weight_options)}")
    tick = "✓" if config.labor_matrix_path.exists() else "✗ (using built-in matrix)"
    click.echo(f"  Labor matrix:           {config.labor_matrix_path} {tick}")
    click.echo()


@cli.command("init-config")
def init_config() -> None:
    """Restore missing or corrupted config files from defaults/."""
    restored = ensure_config_files()
    if restored:
        click.echo(f"Restored: {', '.join(restored)}")
    else:
        click.echo("Config files are in place.")


# --------------------------------------------------------------------
# settle / proforma commands
# --------------------------------------------------------------------

@cli.command()
@click.argument("invoices_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--now", default=None, help="Reference time for overdue checks (ISO 8601)")
@click.option("--tolerance", default=None, type=float, help="Currency tolerance (default: 0.01)")
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON")
def settle(invoices_file: str, now: str | None, tolerance: float | None, as_json: bool) -> None:
    """Derive the payment status of every invoice in INVOICES_FILE."""
    config = Config()
    if tolerance is not None:
        config.settlement_tolerance = tolerance
    moment = to_timestamp(now) if now else None
    if now and moment is None:
        _fail(f"'{now}' is not an ISO 8601 date")

    calculator = SettlementCalculator(config.settlement_tolerance)
    invoices = _load_models(invoices_file, Invoice)

    results = [(inv, calculator.derive_status(inv, moment)) for inv in invoices]

    if as_json:
        _echo_json([
            {"id": inv.id, "number": inv.number, **res.model_dump(), "display_status": res.display_status}
            for inv, res in results
        ], pretty=True)
        return

    click.echo()
    for inv, res in results:
        ref = inv.number or inv.id or "(unnumbered)"
        line = (
            f"  {ref:<20} {res.display_status:<15} "
            f"settled {res.total_settled:>12.2f} / {res.target:>12.2f}   "
            f"remaining {res.remaining:>12.2f}"
        )
        if res.overpayment:
            line += f"   overpaid {res.overpayment:.2f}"
        click.echo(line)
    click.echo()


@cli.command()
@click.argument("proforma_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--applied", default=None, type=float,
              help="Amount already applied to invoices (default: usedAsAdvancePayment)")
def proforma(proforma_file: str, applied: float | None) -> None:
    """Show how much of each proforma in PROFORMA_FILE is still available."""
    config = Config()
    calculator = SettlementCalculator(config.settlement_tolerance)
    for inv in _load_models(proforma_file, Invoice):
        try:
            availability = calculator.proforma_availability(inv, applied)
        except EngineError as exc:
            _fail(str(exc))
        ref = inv.number or inv.id or "(unnumbered)"
        if availability.requires_payment:
            click.echo(f"  {ref:<20} requires payment (paid {inv.total_paid:.2f} of {inv.total:.2f})")
        else:
            click.echo(f"  {ref:<20} available {availability.available:.2f} of {availability.total:.2f}")


# --------------------------------------------------------------------
# stocktake command
# --------------------------------------------------------------------

@cli.command()
@click.argument("items_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("reservations_file", type=click.Path(exists=True, dir_okay=False), required=False)
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON")
def stocktake(items_file: str, reservations_file: str | None, as_json: bool) -> None:
    """
    Check ITEMS_FILE against RESERVATIONS_FILE before completing a stocktaking.

    \b
    Lists every batch whose counted quantity would no longer cover its
    reservations, followed by the stocktaking statistics.
    """
    config = Config()
    reconciler = StocktakingReconciler(config.quantity_precision, config.discrepancy_epsilon)

    items = _load_models(items_file, StocktakingItem)
    reservations = []
    if reservations_file:
        reservations = _load_models(reservations_file, Reservation)

    conflicts = reconciler.aggregate_impact(items, group_reservations_by_batch(reservations))
    stats = reconciler.compute_statistics(items)

    if as_json:
        _echo_json({
            "conflicts": [c.model_dump() for c in conflicts],
            "statistics": stats.model_dump(),
        }, pretty=True)
        return

    click.echo()
    if conflicts:
        click.echo(f"  Reservation conflicts ({len(conflicts)}):")
        for c in conflicts:
            click.echo(
                f"    ✗ {c.item_name or c.item_id or '?'} [{c.batch_number}]  "
                f"new {c.new_quantity} {c.unit}, reserved {c.total_reserved}, short {c.shortage}"
            )
            for r in c.conflicting_reservations:
                click.echo(f"        - {r.label}: {r.quantity}")
    else:
        click.echo("  ✓ No reservation conflicts")

    click.echo()
    click.echo(f"  Items:            {stats.total_items}")
    click.echo(f"  With discrepancy: {stats.items_with_discrepancy}")
    click.echo(f"  Accuracy:         {stats.accuracy_percentage:.1f}%")
    click.echo(f"  Value difference: {stats.total_value:.2f}")
    click.echo()


# --------------------------------------------------------------------
# quote command
# --------------------------------------------------------------------

@cli.command()
@click.argument("quotation_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--cost-per-minute", default=None, type=float, help="Factory cost per minute of labor")
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON")
def quote(quotation_file: str, cost_per_minute: float | None, as_json: bool) -> None:
    """Calculate the COGS of the quotation in QUOTATION_FILE."""
    config = Config()
    if cost_per_minute is not None:
        config.cost_per_minute = cost_per_minute

    calculator = QuotationCalculator(
        labor_matrix=config.load_labor_matrix(),
        pack_weight_options=config.pack_weight_options,
        cost_per_minute=config.cost_per_minute,
        minutes_per_gram=config.minutes_per_gram,
    )
    quotations = _load_models(quotation_file, Quotation)
    if not quotations:
        _fail(f"{quotation_file} holds no quotation")
    try:
        result = calculator.calculate(quotations[0])
    except EngineError as exc:
        _fail(str(exc))

    if as_json:
        _echo_json(result.model_dump(), pretty=True)
        return

    fmt = f"{result.pack_format.weight_grams} g" if result.pack_format else "(none)"
    click.echo()
    click.echo(f"  Recipe weight:    {result.total_weight_grams:.3f} g")
    click.echo(f"  Pack format:      {fmt}")
    click.echo(f"  Labor:            {result.labor.minutes:.2f} min ({result.labor.source})")
    click.echo()
    click.echo(f"  Components:       {result.components_cost:>10.2f}")
    click.echo(f"  Packaging:        {result.packaging_cost:>10.2f}")
    click.echo(f"  Labor:            {result.labor_cost:>10.2f}")
    click.echo(f"  COGS:             {result.total_cogs:>10.2f}")
    click.echo()


if __name__ == "__main__":
    cli()
