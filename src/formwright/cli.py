"""CLI main entry point."""

import json
import logging
import os

import click
from pydantic import ValidationError

from .compiler import validate_submission
from .conditions import resolve_visible
from .config import Config
from .db import close_db, create_tables, init_db
from .errors import FormwrightException
from .fields import dump_fields, parse_fields
from .log import setup as setup_log
from .registry import list_field_types
from .text_dsl import parse_text

logger = logging.getLogger(__name__)


def _echo_json(data) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


def _load_json(stream, what: str):
    try:
        return json.load(stream)
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Invalid JSON in {what}: {e}")


def _load_fields(stream):
    data = _load_json(stream, "fields file")
    if isinstance(data, dict):
        data = data.get("fields", [])
    try:
        return parse_fields(data)
    except (TypeError, ValidationError) as e:
        raise click.ClickException(f"Invalid field definitions: {e}")


@click.group()
@click.option("--config", "-c", default="config.toml", help="Configuration file path")
@click.pass_context
def cli(ctx, config: str):
    """Formwright - form builder and submission validator."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    setup_log()


@cli.command(name="field-types")
def field_types():
    """List the available field types."""
    click.echo("type\tcategory\tlabel")
    for info in list_field_types():
        click.echo(f"{info.type.value}\t{info.category.value}\t{info.label}")


@cli.command(name="parse")
@click.argument("source", type=click.File("r", encoding="utf-8"))
def parse(source):
    """Parse text-builder input from SOURCE ('-' for stdin) into field JSON."""
    fields = parse_text(source.read())
    _echo_json(dump_fields(fields))


@cli.command(name="validate")
@click.argument("fields_json", type=click.File("r", encoding="utf-8"))
@click.argument("payload_json", type=click.File("r", encoding="utf-8"))
@click.pass_context
def validate(ctx, fields_json, payload_json):
    """Validate a submission payload against a form's fields.

    Exits with status 1 when the payload is rejected.
    """
    fields = _load_fields(fields_json)
    payload = _load_json(payload_json, "payload file")

    result = validate_submission(fields, payload)
    if result.ok:
        _echo_json({"ok": True, "data": result.data})
        return

    _echo_json({"ok": False, "errors": [e.to_dict() for e in result.errors]})
    ctx.exit(1)


@cli.command(name="visible")
@click.argument("fields_json", type=click.File("r", encoding="utf-8"))
@click.argument("values_json", type=click.File("r", encoding="utf-8"))
def visible(fields_json, values_json):
    """Print the ids of fields shown for the given answers."""
    fields = _load_fields(fields_json)
    values = _load_json(values_json, "values file")
    if not isinstance(values, dict):
        raise click.ClickException("Values must be a JSON object")

    for field in resolve_visible(fields, values):
        click.echo(f"{field.id}\t{field.label}")


@cli.command(name="init-db")
@click.pass_context
def init_database(ctx):
    """Create the database tables."""
    config_path = ctx.obj["config_path"]
    try:
        cfg = Config.load_from_file(config_path)
        setup_log(cfg.log_file)
        init_db(cfg.database.path)
        create_tables()
        click.echo(f"Database ready: {cfg.database.path}")
    except FormwrightException as e:
        logger.error(f"Application error: {e}", exc_info=True)
        raise click.ClickException(str(e))
    finally:
        close_db()


@cli.command(name="serve")
@click.option("--host", "-h", default=None, help="Override host from config")
@click.option("--port", "-p", default=None, type=int, help="Override port from config")
@click.option("--reload/--no-reload", default=None, help="Reload on code changes (defaults to [web] debug)")
@click.pass_context
def serve(ctx, host, port, reload):
    """Start the API server."""
    config_path = ctx.obj["config_path"]

    try:
        logger.info(f"Loading configuration file: {config_path}")
        cfg = Config.load_from_file(config_path)
        setup_log(cfg.log_file)
    except FormwrightException as e:
        logger.error(f"Application error: {e}", exc_info=True)
        raise click.ClickException(str(e))

    host = host or cfg.web.host
    port = port or cfg.web.port
    if reload is None:
        reload = cfg.web.debug

    if reload:
        logger.warning("Auto-reload is enabled. This should NOT be used in production.")

    os.environ["CONFIG_FILE"] = config_path

    import uvicorn

    logger.info(f"Starting server on http://{host}:{port}")
    uvicorn.run(
        "formwright.api:create_app",
        host=host,
        port=port,
        factory=True,
        reload=reload,
    )


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
