"""
CLI interface for crmcore.

Provides commands to initialize configuration, evaluate stored formulas and
manage users through the repository pipeline.
"""

import json
from pathlib import Path

import click

from crmcore import __version__
from crmcore.errors import ConflictError, CrmError


@click.group()
@click.version_option(version=__version__, prog_name="crmcore")
@click.pass_context
def main(ctx):
    """
    crmcore - CRM records and formula engine.
    """
    from crmcore.config import load_config
    from crmcore.utils import setup_logging

    ctx.ensure_object(dict)
    try:
        config = load_config()
    except Exception as e:
        # init works without a config; other commands check ctx.obj
        ctx.obj["config_error"] = str(e)
        return

    ctx.obj["config"] = config
    setup_logging(
        config.log_file_path,
        log_level=config.log_level,
        log_format=config.log_format,
        console_output=True,
    )


def _require_config(ctx):
    if "config" not in ctx.obj:
        click.echo(f"✗ Config not loaded: {ctx.obj.get('config_error', 'Unknown error')}", err=True)
        click.echo("Run 'crmcore init' to create a configuration file.", err=True)
        raise SystemExit(1)
    return ctx.obj["config"]


def _fail(error: Exception) -> None:
    if isinstance(error, ConflictError):
        click.echo(f"✗ Conflict: {json.dumps(error.payload)}", err=True)
    else:
        click.echo(f"✗ {error}", err=True)
    raise SystemExit(1)


@main.command("init")
@click.option("--force", is_flag=True, help="Overwrite existing configuration")
def init(force: bool):
    """Initialize crmcore configuration."""
    import yaml

    from crmcore.config import CrmConfig, get_crmcore_home

    home = get_crmcore_home()
    if not home.exists():
        home.mkdir(parents=True)

    cfg_path = home / "config.yaml"
    if cfg_path.exists() and not force:
        click.echo(f"Config already exists at {cfg_path}. Use --force to overwrite.", err=True)
        raise SystemExit(1)

    default_cfg = CrmConfig(
        sqlite_path=str(home / "crm.db"),
        secrets_path=str(home / "secrets.yaml"),
        env_file=str(home / ".env"),
    ).to_dict()
    cfg_path.write_text(yaml.safe_dump(default_cfg, sort_keys=False))

    env_path = home / ".env"
    if not env_path.exists():
        env_path.write_text("# CRMCORE_HOME=...\n")

    click.echo(f"Initialized crmcore config at {cfg_path}")


# -----------------------------------------------------------------------------
# formula
# -----------------------------------------------------------------------------


@main.group("formula")
def formula_group():
    """Evaluate formulas and inspect the function registry."""
    pass


def _parse_var(value: str):
    """NAME=VALUE, where VALUE is JSON if it parses and a plain string otherwise."""
    if "=" not in value:
        raise click.BadParameter(f"Expected NAME=VALUE, got '{value}'")
    name, raw = value.split("=", 1)
    try:
        return name, json.loads(raw)
    except json.JSONDecodeError:
        return name, raw


@formula_group.command("run")
@click.argument("script", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--record", "record_path", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="JSON file with the record attributes the formula runs against")
@click.option("--var", "variables", multiple=True, help="Formula variable as NAME=VALUE (repeatable)")
@click.pass_context
def run_formula(ctx, script: Path, record_path: Path, variables: tuple):
    """
    Evaluate a stored formula (JSON) and print the result.

    Examples:

        crmcore formula run rule.json

        crmcore formula run rule.json --record account.json --var limit=10
    """
    from crmcore.formula import Evaluator
    from crmcore.formula.evaluator import format_value
    from crmcore.record import Record

    config = ctx.obj.get("config")
    max_depth = config.formula_max_depth if config else 100

    record = None
    if record_path is not None:
        try:
            attributes = json.loads(record_path.read_text())
        except json.JSONDecodeError as e:
            raise click.BadParameter(f"Invalid JSON: {e}", param_hint="'--record'")
        if not isinstance(attributes, dict):
            raise click.BadParameter("Expected a JSON object of attributes", param_hint="'--record'")
        record = Record(attributes)

    variable_map = dict(_parse_var(v) for v in variables)

    try:
        result = Evaluator(max_depth=max_depth).run(
            script.read_text(), record=record, variables=variable_map
        )
    except CrmError as e:
        _fail(e)

    click.echo(format_value(result))
    if record is not None and record.changed_attributes():
        click.echo(f"record: {format_value(record)}")
    if variable_map:
        click.echo(f"variables: {format_value(variable_map)}")


@formula_group.command("functions")
@click.option("--category", help="Only list one category (array, string, ...)")
def list_functions(category: str = None):
    """List registered formula functions."""
    from crmcore.formula import FunctionRegistry

    registry = FunctionRegistry.create_default()

    categories = registry.categories()
    if category:
        if category not in categories:
            click.echo(f"No category '{category}'. Available: {', '.join(categories)}")
            return
        categories = [category]

    for cat in categories:
        click.echo(f"{cat}:")
        for name in registry.names(cat):
            descriptor = registry.resolve(name)
            line = f"  {name}"
            if descriptor.description:
                line += f" - {descriptor.description}"
            click.echo(line)


# -----------------------------------------------------------------------------
# user
# -----------------------------------------------------------------------------


@main.group("user")
def user_group():
    """Manage users."""
    pass


@user_group.command("create")
@click.argument("user_name")
@click.option("--type", "user_type", default="regular",
              type=click.Choice(["regular", "admin", "portal", "api"]), show_default=True)
@click.option("--auth-method", type=click.Choice(["Hmac", "ApiKey", "Basic"]), help="API users only")
@click.option("--api-key", help="API key (API users)")
@click.option("--secret-key", help="Secret key (Hmac API users)")
@click.pass_context
def create_user(ctx, user_name: str, user_type: str, auth_method: str, api_key: str, secret_key: str):
    """Create a user."""
    from crmcore.entity_manager import EntityManager

    config = _require_config(ctx)
    em = EntityManager.create_default(config)
    try:
        user = em.get_new_entity("User")
        user.set({"userName": user_name, "type": user_type})
        if auth_method:
            user.set("authMethod", auth_method)
        if api_key:
            user.set("apiKey", api_key)
        if secret_key:
            user.set("secretKey", secret_key)
        em.save_entity_with_retry(user)
    except CrmError as e:
        _fail(e)
    finally:
        em.close()

    click.echo(f"✓ Created user {user_name} ({user.id})")


@user_group.command("show")
@click.argument("user_id")
@click.pass_context
def show_user(ctx, user_id: str):
    """Show a user's stored attributes."""
    from crmcore.entity_manager import EntityManager

    config = _require_config(ctx)
    em = EntityManager.create_default(config)
    try:
        user = em.get_entity("User", user_id)
    finally:
        em.close()

    if user is None:
        click.echo(f"✗ Unknown user: {user_id}", err=True)
        raise SystemExit(1)

    data = user.to_dict()
    data.pop("secretKey", None)
    click.echo(json.dumps(data, indent=2, sort_keys=True))


@user_group.command("remove")
@click.argument("user_id")
@click.pass_context
def remove_user(ctx, user_id: str):
    """Remove a user and its side records."""
    from crmcore.entity_manager import EntityManager

    config = _require_config(ctx)
    em = EntityManager.create_default(config)
    try:
        user = em.get_entity("User", user_id)
        if user is None:
            click.echo(f"✗ Unknown user: {user_id}", err=True)
            raise SystemExit(1)
        em.remove_entity(user)
    except CrmError as e:
        _fail(e)
    finally:
        em.close()

    click.echo(f"✓ Removed user {user_id}")
