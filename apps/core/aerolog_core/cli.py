"""CLI commands for AEROLOG."""

import json
from dataclasses import asdict

import click

from aerolog_core.db.base import Base
from aerolog_core.db.seed import seed_all
from aerolog_core.db.session import SessionLocal, engine
from aerolog_core.errors import ComplianceError
from aerolog_core.jobs.budget import RunBudget
from aerolog_core.jobs.context import build_jobs
from aerolog_core.settings import get_settings
from aerolog_core.utils.logging import configure_logging


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL.")
def cli(log_level):
    """AEROLOG compliance engine CLI."""
    configure_logging(log_level)
    try:
        get_settings().validate_production_settings()
    except ValueError as e:
        raise click.ClickException(str(e)) from e


@cli.command("init-db")
def init_db():
    """Create database tables."""
    import aerolog_core.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    click.echo("✓ Database schema created.")


@cli.command()
def seed():
    """Seed initial data."""
    click.echo("Seeding initial data...")
    db = SessionLocal()
    try:
        seed_all(db)
        click.echo("✓ Seed data created.")
    except Exception as e:
        click.echo(f"✗ Error seeding data: {e}", err=True)
        db.rollback()
    finally:
        db.close()


def _budget() -> RunBudget:
    return RunBudget(get_settings().job_time_budget_seconds)


def _echo(result):
    click.echo(json.dumps(result, indent=2, default=str))


@cli.command()
def sweep():
    """Run the deadline sweep and overdue escalation."""
    db = SessionLocal()
    try:
        _echo(build_jobs(db).deadlines.run_hourly(budget=_budget()))
    finally:
        db.close()


@cli.command()
def sync():
    """Submit pending records to the regulator."""
    db = SessionLocal()
    try:
        result = build_jobs(db).sync.sync_pending(_budget())
        _echo(asdict(result))
    except ComplianceError as e:
        click.echo(f"✗ Sync aborted: {e.reason}", err=True)
        raise SystemExit(1)
    finally:
        db.close()


@cli.command()
def reprocess():
    """Reset failed submissions and retry them."""
    db = SessionLocal()
    try:
        result = build_jobs(db).sync.reprocess_failed(_budget())
        _echo(asdict(result))
    except ComplianceError as e:
        click.echo(f"✗ Reprocessing aborted: {e.reason}", err=True)
        raise SystemExit(1)
    finally:
        db.close()


@cli.command("validate-signature")
@click.argument("signature_id", type=int)
def validate_signature(signature_id):
    """Validate the integrity of a stored signature."""
    db = SessionLocal()
    try:
        ok = build_jobs(db).signatures.validate_integrity(signature_id)
    except ComplianceError as e:
        click.echo(f"✗ {e.reason}", err=True)
        raise SystemExit(1)
    finally:
        db.close()
    if ok:
        click.echo(f"✓ Signature {signature_id} is intact.")
    else:
        click.echo(f"✗ Signature {signature_id} failed validation; record placed on hold.", err=True)
        raise SystemExit(2)


@cli.command("cache-reconcile")
def cache_reconcile():
    """Verify a sample of cache entries and repair mismatches."""
    db = SessionLocal()
    try:
        _echo(build_jobs(db).cache.verify_integrity())
    finally:
        db.close()


@cli.command()
def conformance():
    """Run the conformance audit."""
    db = SessionLocal()
    try:
        _echo(build_jobs(db).conformance.run())
    finally:
        db.close()


if __name__ == "__main__":
    cli()
