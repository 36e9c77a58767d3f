from __future__ import annotations

import sys
from pathlib import Path
from typing import List, Optional, Tuple

import typer
from tenacity import Retrying, retry_if_result, stop_after_attempt, wait_exponential

from upsert_ingest.config import Settings, get_settings
from upsert_ingest.domain.models import RecordBatch, UpsertDialect, is_table_name
from upsert_ingest.errors import ConfigurationBuildFailed, ExecutionFailed, ParseError
from upsert_ingest.infrastructure.db_factory import provider_from_settings
from upsert_ingest.processor import ProcessOutcome, UpsertProcessor
from upsert_ingest.reporter import print_outcomes, print_problems
from upsert_ingest.routing import DirectoryRouter
from upsert_ingest.security.authenticator import Authenticator
from upsert_ingest.security.configuration import ConfigurationCache
from upsert_ingest.sql.translator import translate_batch
from upsert_ingest.utils.logging import configure_logging

app = typer.Typer(help="Upsert JSON record batches into a database table.")


def _resolve_table(table: Optional[str], settings: Settings) -> str:
    resolved = table or settings.upsert_table
    if not resolved:
        raise typer.BadParameter("a target table is required (--table or UPSERT_TABLE)")
    if not is_table_name(resolved):
        raise typer.BadParameter(f"invalid table name '{resolved}'")
    return resolved


def _resolve_dialect(dialect: Optional[str], settings: Settings) -> UpsertDialect:
    value = dialect or settings.upsert_dialect
    try:
        return UpsertDialect(value.lower())
    except ValueError:
        choices = ", ".join(d.value for d in UpsertDialect)
        raise typer.BadParameter(f"unknown dialect '{value}' (choose from {choices})")


def _should_retry(outcome: ProcessOutcome) -> bool:
    return isinstance(outcome.error, ExecutionFailed)


def process_with_retry(processor: UpsertProcessor, payload: bytes, attempts: int) -> ProcessOutcome:
    """
    Re-run a whole payload while its batch fails at the database.

    Parse and authentication failures are final. After the last attempt the last
    outcome is returned as-is.
    """
    retrying = Retrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_result(_should_retry),
        retry_error_callback=lambda state: state.outcome.result(),
    )
    return retrying(processor.process, payload)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    security = settings.config_resources or "disabled"
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"pool=({settings.db_pool_min_size},{settings.db_pool_max_size}) | "
        f"table={settings.upsert_table or '-'} dialect={settings.upsert_dialect} "
        f"keys={','.join(settings.key_columns) or '-'} | security={security}"
    )


@app.command()
def validate() -> None:
    """
    Check Kerberos principal/keytab settings against the configuration resources.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    authenticator = Authenticator(
        ConfigurationCache(), ccache=settings.kerberos_ccache, kinit_path=settings.kinit_path
    )
    try:
        problems = authenticator.validate(
            settings.config_resources, settings.kerberos_principal, settings.kerberos_keytab
        )
    except ConfigurationBuildFailed as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2)

    print_problems(problems)
    if problems:
        raise typer.Exit(code=1)


@app.command()
def translate(
    payload_file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    table: Optional[str] = typer.Option(None, "--table", "-t", help="Target table name."),
    dialect: Optional[str] = typer.Option(
        None, "--dialect", "-d", help="Statement flavour: phoenix or postgres."
    ),
) -> None:
    """
    Print the statements a payload would produce, without touching the database.
    """
    settings = get_settings()
    table_name = _resolve_table(table, settings)
    chosen = _resolve_dialect(dialect, settings)
    try:
        batch = RecordBatch.from_json(payload_file.read_bytes())
    except ParseError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)

    for statement in translate_batch(table_name, batch, chosen, settings.key_columns):
        typer.echo(statement.render())


@app.command()
def ingest(
    payload_files: List[Path] = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    table: Optional[str] = typer.Option(None, "--table", "-t", help="Target table name."),
    dialect: Optional[str] = typer.Option(
        None, "--dialect", "-d", help="Statement flavour: phoenix or postgres."
    ),
    out_dir: Path = typer.Option(
        Path("routed"), "--out-dir", "-o", help="Root of the success/failure directories."
    ),
    attempts: Optional[int] = typer.Option(
        None, "--attempts", "-a", help="Attempts per payload when the batch fails."
    ),
) -> None:
    """
    Upsert each payload file as one batch and route it to success or failure.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    table_name = _resolve_table(table, settings)
    chosen = _resolve_dialect(dialect, settings)
    max_attempts = attempts or settings.ingest_max_attempts

    router = DirectoryRouter(out_dir)
    outcomes: List[Tuple[str, ProcessOutcome]] = []
    with provider_from_settings(settings) as provider:
        processor = UpsertProcessor(
            provider,
            table_name=table_name,
            dialect=chosen,
            key_columns=settings.key_columns,
            parameterized=settings.upsert_parameterized,
        )
        for path in payload_files:
            payload = path.read_bytes()
            try:
                outcome = process_with_retry(processor, payload, max_attempts)
            except ConfigurationBuildFailed as exc:
                typer.echo(str(exc), err=True)
                raise typer.Exit(code=2)
            router.transfer(path.name, payload, outcome.relationship, penalized=outcome.penalized)
            outcomes.append((path.name, outcome))

    print_outcomes(outcomes)
    if any(not outcome.succeeded for _, outcome in outcomes):
        raise typer.Exit(code=1)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
