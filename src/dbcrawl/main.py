import logging
import typer
from typing import List, Optional
from pathlib import Path
from .config import AppConfig
from .handler import RelationalDbmsHandler
from .inspector import InspectorFacade
from .domain.models import HealthStatus
from .exceptions import DbcrawlException

app = typer.Typer(help="Relational schema introspection toolkit")

def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

def _load_config(config: Path) -> AppConfig:
    try:
        return AppConfig.from_yaml(config)
    except DbcrawlException as e:
        typer.echo(f"Error loading config: {e}", err=True)
        raise typer.Exit(code=1)

@app.command()
def check_conn(
    config: Path = typer.Option(..., "--config", "-c", help="Path to configuration file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
):
    """
    Connectivity health check and schema discovery for every configured database.
    """
    _configure_logging(verbose)
    app_config = _load_config(config)

    typer.echo(f"Starting connectivity check for {len(app_config.databases)} databases...")

    failures = 0
    for db_config in app_config.databases:
        typer.echo(f"Checking {db_config.alias} ({db_config.type or 'auto'})...")

        try:
            handler = RelationalDbmsHandler.from_config(db_config, app_config.execution)
            report = InspectorFacade(handler).run_diagnostics(db_config.schema_filter())

            if report.health.status == HealthStatus.SUCCESS:
                typer.secho(f"✅ {db_config.alias}: Connection Successful ({report.health.latency_ms}ms)", fg=typer.colors.GREEN)
                tables = report.dbms.all_tables()
                typer.echo(f"   Found {len(report.dbms.schemas)} schemas, {len(tables)} tables.")
                if verbose:
                    for table in tables:
                        typer.echo(f"     - {table.parent.name}.{table.name}: {len(table.columns)} columns")
            else:
                failures += 1
                typer.secho(f"❌ {db_config.alias}: Connection Failed. Error: {report.health.error_message}", fg=typer.colors.RED)

        except DbcrawlException as e:
            failures += 1
            typer.secho(f"⚠️ Error processing {db_config.alias}: {e}", fg=typer.colors.YELLOW)
            if verbose:
                raise

    if failures:
        raise typer.Exit(code=1)

@app.command()
def crawl(
    alias: str = typer.Argument(..., help="Database alias from the configuration file"),
    config: Path = typer.Option(..., "--config", "-c", help="Path to configuration file"),
    schema: Optional[List[str]] = typer.Option(None, "--schema", "-s", help="Schema name pattern (repeatable), overrides include_schemas"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the schema document to this file instead of stdout"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
):
    """
    Crawl one database and print its schema document as JSON.
    """
    _configure_logging(verbose)
    app_config = _load_config(config)

    try:
        db_config = app_config.get_db_config(alias)
        if schema:
            db_config = db_config.model_copy(update={"include_schemas": list(schema)})
        handler = RelationalDbmsHandler.from_config(db_config, app_config.execution)
        dbms = handler.read_schema_metadata(db_config.schema_filter())
    except DbcrawlException as e:
        typer.secho(f"❌ Crawl failed: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    document = dbms.model_dump_json(indent=2)
    if output:
        output.write_text(document)
        typer.secho(f"✅ Wrote {len(dbms.all_tables())} tables to {output}", fg=typer.colors.GREEN)
    else:
        typer.echo(document)

if __name__ == "__main__":
    app()
