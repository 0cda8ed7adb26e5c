#!/usr/bin/env python3
"""
Customer Address Notifier — CLI entry point.

Usage examples:
  python main.py serve                              # Run the webhook server (HOST/PORT)
  python main.py serve --port 8080 --dry-run        # Log notifications instead of mailing
  python main.py check                              # Verify store and SMTP settings
  python main.py show 42                            # Show the stored baseline for customer 42
  python main.py forget 42                          # Drop customer 42 (next webhook is a first sighting)
  python main.py history --customer 42              # Recent events for one customer
  python main.py preview payload.json --action changed_default_address
  python main.py replay addresses_synced payload.json --dry-run
  python main.py init-config                        # Seed config/ with editable templates
"""
import json
import logging
import sys
from pathlib import Path

import click

from config import Config
from models.customer import Customer
from notifier.classifier import ALL_ACTIONS, ACTION_CHANGED_DEFAULT
from notifier.errors import NotifierError
from notifier.formatter import NotificationFormatter
from notifier.mailer import DryRunMailer, build_mailer
from notifier.processor import ALL_EVENTS, CustomerEventProcessor
from notifier.store import build_store


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
        datefmt="%H:%M:%S",
    )
    # Quieten noisy third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _load_customer(path: str) -> Customer:
    with open(path, encoding="utf-8") as f:
        payload = json.load(f)
    return Customer.model_validate(payload)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Customer Address Notifier — detect address changes and email the shop."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _setup_logging(verbose)


# --------------------------------------------------------------------
# serve command
# --------------------------------------------------------------------

@cli.command()
@click.option("--host", default=None, help="Bind address (default: HOST env var or 0.0.0.0)")
@click.option("--port", "-p", default=None, type=int, help="Port (default: PORT env var or 3000)")
@click.option("--dry-run", is_flag=True, help="Log notifications instead of sending mail")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, dry_run: bool) -> None:
    """Run the webhook server."""
    import uvicorn
    from server import app as server_app

    config = Config()
    if host:
        config.host = host
    if port is not None:
        config.port = port
    if dry_run:
        config.mail_dry_run = True

    # Build the processor up front so configuration errors surface before binding
    server_app.set_processor(CustomerEventProcessor(config))

    click.echo(
        f"\n  Webhook server:  http://{config.host}:{config.port}\n"
        f"  Store:           {config.store_backend}"
        f"{f' ({config.db_path})' if config.store_backend == 'sqlite' else ''}\n"
        f"  Operator:        {config.operator_email or '(not set)'}\n"
        f"  Mail:            {'dry run' if config.mail_dry_run else f'{config.smtp_host}:{config.smtp_port}'}\n"
    )
    uvicorn.run(server_app.app, host=config.host, port=config.port, log_level="info")


# --------------------------------------------------------------------
# check command
# --------------------------------------------------------------------

@cli.command()
@click.option("--skip-smtp", is_flag=True, help="Do not open an SMTP connection")
@click.pass_context
def check(ctx: click.Context, skip_smtp: bool) -> None:
    """Verify that the store, templates, and mail settings are ready."""
    config = Config()
    problems = 0

    click.echo("\n=== Notifier Setup Check ===\n")

    # Operator mailbox
    if config.operator_email:
        click.echo(f"  Operator email:   ✓ {config.operator_email}")
    else:
        click.echo("  Operator email:   ✗ NOT set")
        click.echo("  → Set OPERATOR_EMAIL (or EMAIL_USER) in your .env")
        problems += 1

    # Store
    try:
        store = build_store(config)
        store.recent_events(limit=1)
        where = f" ({config.db_path})" if store.name == "sqlite" else ""
        click.echo(f"  Store:            ✓ {store.name}{where}")
    except (NotifierError, ValueError) as e:
        click.echo(f"  Store:            ✗ {e}")
        problems += 1

    # Templates
    try:
        formatter = NotificationFormatter(config)
        formatter.registration(Customer(id="0", first_name="Check", last_name="Setup"))
        click.echo(f"  Templates:        ✓ locale={formatter.locale} timezone={config.timezone}")
    except Exception as e:
        click.echo(f"  Templates:        ✗ {e}")
        problems += 1

    # Mail
    if config.mail_dry_run:
        click.echo("  Mail:             ✓ dry run (MAIL_DRY_RUN)")
    elif skip_smtp:
        click.echo(f"  Mail:             - not checked ({config.smtp_host}:{config.smtp_port})")
    else:
        status = build_mailer(config).check()
        if status.get("ok"):
            click.echo(f"  SMTP:             ✓ {config.smtp_host}:{config.smtp_port}")
        else:
            click.echo(f"  SMTP:             ✗ NOT reachable ({status.get('error')})")
            click.echo("  → Check SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASS")
            problems += 1

    click.echo()
    if problems:
        sys.exit(1)


# --------------------------------------------------------------------
# store inspection commands
# --------------------------------------------------------------------

@cli.command()
@click.argument("customer_id")
@click.pass_context
def show(ctx: click.Context, customer_id: str) -> None:
    """Show the stored baseline for CUSTOMER_ID."""
    record = build_store(Config()).get(customer_id)
    if record is None:
        click.echo(f"No record for customer {customer_id}", err=True)
        sys.exit(1)
    click.echo(json.dumps(record.model_dump(), indent=2))


@cli.command()
@click.argument("customer_id")
@click.pass_context
def forget(ctx: click.Context, customer_id: str) -> None:
    """Delete CUSTOMER_ID from the store, including any deletion tombstone."""
    if build_store(Config()).delete(customer_id):
        click.echo(f"✓ Forgot customer {customer_id}")
    else:
        click.echo(f"No record for customer {customer_id}")


@cli.command()
@click.option("--customer", "customer_id", default=None, help="Only events for this customer id")
@click.option("--limit", "-n", default=20, show_default=True, type=int)
@click.pass_context
def history(ctx: click.Context, customer_id: str | None, limit: int) -> None:
    """List recently handled webhook events, newest first."""
    events = build_store(Config()).recent_events(limit=limit, customer_id=customer_id)
    if not events:
        click.echo("No events recorded.")
        return
    for e in events:
        detail = e.get("detail") or {}
        flags = []
        if detail.get("first_observation"):
            flags.append("baseline")
        if detail.get("dispatched"):
            flags.append("mailed")
        if detail.get("skipped_reason"):
            flags.append(f"skipped:{detail['skipped_reason']}")
        if detail.get("error"):
            flags.append(f"FAILED:{detail['error']}")
        click.echo(
            f"  {e['timestamp']}  {e['customer_id']:<14} {e['event']:<17} "
            f"{e.get('action') or '-':<24} {' '.join(flags)}"
        )


# --------------------------------------------------------------------
# preview / replay commands
# --------------------------------------------------------------------

@cli.command()
@click.argument("payload", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--action", "-a", default=ACTION_CHANGED_DEFAULT, show_default=True,
    type=click.Choice(sorted(ALL_ACTIONS)),
    help="Address action to render",
)
@click.option(
    "--kind", "-k", default="address_change", show_default=True,
    type=click.Choice(["address_change", "registration", "deletion_confirmation", "deletion_notice"]),
)
@click.option("--locale", default=None, help="Override NOTIFY_LOCALE")
@click.pass_context
def preview(ctx: click.Context, payload: str, action: str, kind: str, locale: str | None) -> None:
    """Render the notification for a customer PAYLOAD (JSON) without sending it."""
    config = Config()
    if locale:
        config.locale = locale
    formatter = NotificationFormatter(config)
    customer = _load_customer(payload)

    if kind == "address_change":
        note = formatter.address_change(customer, action)
    else:
        note = getattr(formatter, kind)(customer)

    click.echo(f"Subject: {note.subject}\n")
    click.echo(note.body)


@cli.command()
@click.argument("event", type=click.Choice(ALL_EVENTS))
@click.argument("payload", type=click.Path(exists=True, dir_okay=False))
@click.option("--dry-run", is_flag=True, help="Log notifications instead of sending mail")
@click.pass_context
def replay(ctx: click.Context, event: str, payload: str, dry_run: bool) -> None:
    """
    Feed a saved webhook PAYLOAD (JSON) through the processor as EVENT.

    \b
    The store is updated exactly as if the webhook had arrived.
    Examples:
      python main.py replay customer_created new_customer.json --dry-run
      python main.py replay addresses_synced customer_42.json
    """
    config = Config()
    mailer = DryRunMailer() if dry_run else None
    processor = CustomerEventProcessor(config, mailer=mailer)
    try:
        result = processor.handle(event, _load_customer(payload))
    except NotifierError as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(1)

    click.echo(f"✓ {result.summary}")
    if isinstance(mailer, DryRunMailer):
        for msg in mailer.outbox:
            click.echo(f"\n--- To: {', '.join(msg['recipients'])}\n--- Subject: {msg['subject']}\n")
            click.echo(msg["body"])


# --------------------------------------------------------------------
# init-config command
# --------------------------------------------------------------------

@cli.command("init-config")
@click.option("--config-dir", default=None, type=click.Path(file_okay=False), help="Target config directory")
@click.pass_context
def init_config(ctx: click.Context, config_dir: str | None) -> None:
    """Copy the default templates and a starter settings file into the config directory."""
    from bootstrap import ensure_config_files

    written = ensure_config_files(Path(config_dir) if config_dir else Config().config_dir)
    click.echo(f"✓ {len(written)} file(s) written" if written else "✓ Config already complete")


if __name__ == "__main__":
    cli()
