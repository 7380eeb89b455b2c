#!/usr/bin/env python3
"""
Goods Receipt (GRN) reconciliation — CLI entry point.

Usage examples:
  python main.py check                                   # Verify setup (record service, config)
  python main.py remaining PO-2024-001                   # Ordered / received / remaining per line
  python main.py receive PO-2024-001                     # Receive everything still outstanding
  python main.py receive PO-2024-001 --qty "M8 Bolt=40" --qty "Washer=12.5"
  python main.py receive PO-2024-001 --qty "M8 Bolt=40" --transporter "VRL" --dry-run

  python main.py list --search acme                      # Receipt register, filtered
  python main.py export output/GRNs.xlsx                 # Write the register as Excel
  python main.py export output/GRNs.csv --format csv
  python main.py serve --port 8000                       # Run the JSON API
"""
import logging
import sys
from pathlib import Path

import click

from config import Config
from dashboard.services.export import build_register_rows, write_register_csv, write_register_xlsx
from models.receipt import DraftLine, ReceiptDraft
from receiving.errors import InvalidQuantityFormat, ReceiptRejected, ReceivingError
from receiving.quantities import ZERO, normalise_name, to_decimal
from receiving.service import ReceivingService


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
        datefmt="%H:%M:%S",
    )
    # Quieten noisy third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def _parse_pairs(ctx, param, values) -> dict[str, str]:
    """--qty / --rate values of the form NAME=VALUE."""
    pairs = {}
    for raw in values:
        name, sep, value = raw.rpartition("=")
        if not sep or not name.strip():
            raise click.BadParameter(f"expected NAME=VALUE, got {raw!r}", ctx=ctx, param=param)
        pairs[name.strip()] = value.strip()
    return pairs


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """GRN reconciliation — receive goods against purchase orders without over-receiving."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _setup_logging(verbose)


# --------------------------------------------------------------------
# check command
# --------------------------------------------------------------------

@cli.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Verify that the record service is reachable and show the active settings."""
    config = Config()
    service = ReceivingService(config)
    status = service.client.ping()

    click.echo("\n=== Receiving Setup Check ===\n")
    click.echo(f"  Record service:  {config.records_api_url}")
    if status["ok"]:
        click.echo("  Reachable:       ✓")
    else:
        click.echo(f"  Reachable:       ✗ ({status.get('error')})")
        click.echo("  → Check RECORDS_API_URL / RECORDS_API_TOKEN")

    click.echo()
    rules = service.engine.tax_rules
    click.echo(f"  Intra-state GSTIN prefix:  {rules.intra_state_prefix}")
    click.echo(f"  CGST / SGST / IGST:        {rules.cgst_rate} / {rules.sgst_rate} / {rules.igst_rate}")
    click.echo()
    tick = "✓" if config.cache_db_path.exists() else "✗"
    click.echo(f"  Cache database:  {tick}  {config.cache_db_path}")
    tick = "✓" if config.export_dir.exists() else "✗"
    click.echo(f"  Export folder:   {tick}  {config.export_dir}")
    click.echo()
    if not status["ok"]:
        sys.exit(1)


# --------------------------------------------------------------------
# remaining command
# --------------------------------------------------------------------

@cli.command()
@click.argument("po_number")
@click.pass_context
def remaining(ctx: click.Context, po_number: str) -> None:
    """Show ordered, received and remaining quantity for each line of PO_NUMBER."""
    service = ReceivingService(Config())
    try:
        po, lines, status = service.order_position(po_number)
    except ReceivingError as exc:
        _fail(str(exc))

    click.echo(f"\n  PO:      {po.po_number}")
    click.echo(f"  Vendor:  {po.vendor_name or '(unknown)'}  {po.vendor_tax_id or ''}")
    click.echo(f"  Status:  {status.replace('_', ' ')}\n")
    if not lines:
        click.echo("  ✓ Nothing left to receive")
        click.echo()
        return
    click.echo(f"  {'Item':<30} {'Ordered':>10} {'Received':>10} {'Remaining':>10}")
    for rl in lines:
        click.echo(
            f"  {rl.line.name:<30} {rl.quantity_ordered:>10} "
            f"{rl.quantity_received:>10} {rl.remaining_quantity:>10}"
        )
    click.echo()


# --------------------------------------------------------------------
# receive command
# --------------------------------------------------------------------

@cli.command()
@click.argument("po_number")
@click.option("--qty", "quantities", multiple=True, callback=_parse_pairs,
              help="Quantity to receive, as NAME=QTY (repeatable). Default: all remaining")
@click.option("--rate", "rates", multiple=True, callback=_parse_pairs,
              help="Override a line rate, as NAME=RATE (repeatable)")
@click.option("--other-charges", default=None, help="Freight / handling added after tax")
@click.option("--transporter", default=None)
@click.option("--vehicle", "vehicle_number", default=None, help="Vehicle number")
@click.option("--lr-number", default=None, help="Lorry receipt number")
@click.option("--date", "receipt_date", default=None, help="Receipt date (YYYY-MM-DD, default today)")
@click.option("--comments", default=None)
@click.option("--strict", is_flag=True,
              help="Reject quantities above the remaining amount instead of capping them")
@click.option("--dry-run", is_flag=True, help="Validate and price only; nothing is saved")
@click.pass_context
def receive(
    ctx: click.Context,
    po_number: str,
    quantities: dict[str, str],
    rates: dict[str, str],
    other_charges: str | None,
    transporter: str | None,
    vehicle_number: str | None,
    lr_number: str | None,
    receipt_date: str | None,
    comments: str | None,
    strict: bool,
    dry_run: bool,
) -> None:
    """
    Record a goods receipt against PO_NUMBER.

    \b
    Quantities above what is still outstanding are capped to the remaining
    amount (use --strict to have them rejected instead). The record service
    is queried again immediately before the receipt is validated.
    """
    service = ReceivingService(Config())
    try:
        draft = service.open_receipt(po_number)
    except ReceivingError as exc:
        _fail(str(exc))

    try:
        draft.lines = _apply_inputs(service, draft.lines, quantities, rates, strict)
    except InvalidQuantityFormat as exc:
        _fail(str(exc))
    draft = draft.model_copy(update={
        k: v for k, v in {
            "other_charges":  other_charges,
            "transporter":    transporter,
            "vehicle_number": vehicle_number,
            "lr_number":      lr_number,
            "receipt_date":   receipt_date,
            "comments":       comments,
        }.items() if v is not None
    })

    try:
        if dry_run:
            violations, totals = service.check(draft)
            _echo_lines(draft)
            _echo_totals(totals)
            if violations:
                _echo_violations(violations)
                sys.exit(1)
            click.echo("  ✓ Receipt is valid (dry run, nothing saved)\n")
            return
        saved = service.submit(draft, actor="cli")
    except ReceiptRejected as exc:
        _echo_violations(exc.violations)
        sys.exit(1)
    except ReceivingError as exc:
        _fail(str(exc))

    _echo_lines(draft)
    _echo_totals(saved)
    click.echo(f"  ✓ Saved GRN {saved.document_number or '(pending number)'}\n")


# --------------------------------------------------------------------
# list command
# --------------------------------------------------------------------

@cli.command("list")
@click.option("--search", "-s", default=None, help="Filter by GRN, PO, vendor, GSTIN or item")
@click.option("--cached", is_flag=True, help="Read the local cache instead of the record service")
@click.pass_context
def list_receipts(ctx: click.Context, search: str | None, cached: bool) -> None:
    """List receipts, newest first."""
    service = ReceivingService(Config())
    try:
        receipts = service.list_receipts(search=search, cached=cached)
    except ReceivingError as exc:
        _fail(str(exc))

    if not receipts:
        click.echo("No receipts found.")
        return
    for row in build_register_rows(receipts, service.engine.tax_rules):
        click.echo(
            f"  {row['GRN No']:<14} {row['Date']:<11} {row['PO Number']:<16} "
            f"{row['Vendor'][:28]:<28} {row['Total']:>12}  {row['GST Type']}"
        )
    click.echo(f"\n{len(receipts)} receipt(s).")


# --------------------------------------------------------------------
# export command
# --------------------------------------------------------------------

@cli.command()
@click.argument("destination", type=click.Path(dir_okay=False))
@click.option("--format", "fmt", type=click.Choice(["xlsx", "csv"]), default=None,
              help="Output format (default: from the file extension, else xlsx)")
@click.option("--search", "-s", default=None, help="Only export receipts matching this term")
@click.pass_context
def export(ctx: click.Context, destination: str, fmt: str | None, search: str | None) -> None:
    """Write the receipt register to DESTINATION as Excel or CSV."""
    service = ReceivingService(Config())
    dest = Path(destination)
    if fmt is None:
        fmt = "csv" if dest.suffix.lower() == ".csv" else "xlsx"

    try:
        receipts = service.list_receipts(search=search)
    except ReceivingError as exc:
        _fail(str(exc))
    if not receipts:
        _fail("no receipts to export")

    rows = build_register_rows(receipts, service.engine.tax_rules)
    writer = write_register_csv if fmt == "csv" else write_register_xlsx
    path = writer(rows, dest)
    service.cache.log_audit("*", "exported", actor="cli", detail={"file": path.name, "rows": len(rows)})
    click.echo(f"✓ Exported {len(rows)} receipt(s) to {path}")


# --------------------------------------------------------------------
# init / serve commands
# --------------------------------------------------------------------

@cli.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """Restore missing default config files into the config directory."""
    from bootstrap import ensure_config_files

    restored = ensure_config_files()
    if restored:
        for name in restored:
            click.echo(f"  + {name}")
    else:
        click.echo("Config files already present.")


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, type=int, show_default=True)
@click.pass_context
def serve(ctx: click.Context, host: str, port: int) -> None:
    """Run the receiving JSON API."""
    import uvicorn

    uvicorn.run("dashboard.app:app", host=host, port=port)


# --------------------------------------------------------------------
# Helpers
# --------------------------------------------------------------------

def _apply_inputs(
    service: ReceivingService,
    lines: list[DraftLine],
    quantities: dict[str, str],
    rates: dict[str, str],
    strict: bool,
) -> list[DraftLine]:
    """
    Apply --qty / --rate to the pre-filled draft lines.

    With no --qty every outstanding line is received in full. Otherwise only
    the named lines are kept; names not on the PO are passed through so that
    validation can report them. A quantity for a name the PO repeats is capped
    at the combined remaining amount and split across those lines in PO order.
    """
    by_name: dict[str, list[DraftLine]] = {}
    for line in lines:
        by_name.setdefault(normalise_name(line.name), []).append(line)

    if quantities:
        selected = []
        for name, raw in quantities.items():
            group = by_name.get(normalise_name(name))
            if not group:
                selected.append(DraftLine(name=name, quantity_received=raw, rate=rates.get(name)))
                continue
            cap = sum((line.remaining_quantity or ZERO for line in group), ZERO)
            if strict:
                qty = to_decimal(raw)
            else:
                qty = service.engine.clamp_quantity_input(raw, cap)
                if to_decimal(raw) > cap:
                    click.echo(f"  ⚠ {group[0].name}: {raw} capped to {qty}")
            if qty is None or qty <= ZERO or len(group) == 1:
                selected.append(group[0].model_copy(update={"quantity_received": raw if strict else qty}))
                continue
            selected.extend(_split_quantity(qty, group))
        lines = selected

    overrides = {normalise_name(k): v for k, v in rates.items()}
    return [
        line.model_copy(update={"rate": overrides[normalise_name(line.name)]})
        if normalise_name(line.name) in overrides else line
        for line in lines
    ]


def _split_quantity(qty, group: list[DraftLine]) -> list[DraftLine]:
    """Fill same-named lines in order; the last one takes any excess."""
    parts = []
    left = qty
    for i, line in enumerate(group):
        take = left if i == len(group) - 1 else min(left, line.remaining_quantity or ZERO)
        if take > ZERO:
            parts.append(line.model_copy(update={"quantity_received": take}))
        left -= take
    return parts


def _echo_lines(draft: ReceiptDraft) -> None:
    click.echo(f"\n  PO:  {draft.po_number}   Vendor: {draft.vendor_name or '(unknown)'}\n")
    for line in draft.lines:
        click.echo(f"    {line.name:<30} {str(line.quantity_received):>10} @ {line.rate}")
    click.echo()


def _echo_totals(totals) -> None:
    click.echo(f"  Subtotal:       {totals.subtotal:.2f}")
    if totals.cgst or totals.sgst:
        click.echo(f"  CGST:           {totals.cgst:.2f}")
        click.echo(f"  SGST:           {totals.sgst:.2f}")
    else:
        click.echo(f"  IGST:           {totals.igst:.2f}")
    click.echo(f"  Other charges:  {totals.other_charges:.2f}")
    click.echo(f"  Total:          {totals.total:.2f}")
    click.echo()


def _echo_violations(violations) -> None:
    click.echo(f"  ✗ Receipt rejected ({len(violations)} problem(s)):", err=True)
    for v in violations:
        hint = f"  (did you mean '{v.suggestion}'?)" if v.suggestion else ""
        click.echo(f"    - {v.description}{hint}", err=True)
    click.echo(err=True)


if __name__ == "__main__":
    cli()
