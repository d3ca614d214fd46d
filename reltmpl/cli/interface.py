import os
import sys
import json
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click
from click_option_group import optgroup
from rich.console import Console as RichConsole
import structlog

from reltmpl import __version__ as app_version
from reltmpl.config.loader import load_and_merge_configs, load_run_config
from reltmpl.logging_setup import configure_logging
from reltmpl.core.output import write_to_stdout, write_to_file
from reltmpl.core.templating import Template
from reltmpl.core.templating import fields as f
from reltmpl.exceptions import ReltmplError
from .console_output import masked_fields, print_fields_table

log = structlog.get_logger(__name__)

def _parse_key_value_pairs(ctx: click.Context, param: click.Parameter, values: Tuple[str, ...]) -> Dict[str, str]:
    # click callback turning repeated KEY=VALUE options into a dict.
    parsed: Dict[str, str] = {}
    for item in values:
        if "=" not in item:
            raise click.BadParameter(f"expected KEY=VALUE, got {item!r}", ctx=ctx, param=param)
        key, value = item.split("=", 1)
        parsed[key] = value
    return parsed

def _build_template(config_path: Optional[Path], env_vars: Dict[str, str], extra_fields: Dict[str, Any],
                    use_artifact: bool = True, use_build: bool = True) -> Template:
    """Loads the release configuration and applies every enrichment it describes."""
    raw_config = load_and_merge_configs(config_path)
    run_config = load_run_config(raw_config, environ=os.environ)

    template = Template.new(run_config.context)
    if env_vars:
        template.with_env({**run_config.context.env, **env_vars})
    if use_build and run_config.build is not None:
        log.info("applying_build_options", target=run_config.build.target)
        template.with_build_options(run_config.build)
    if use_artifact and run_config.artifact is not None:
        log.info("applying_artifact", artifact=run_config.artifact.name)
        template.with_artifact(run_config.artifact, run_config.replacements)
    template.with_extra_fields({**run_config.extra_fields, **extra_fields})
    return template

def _run_cli_action(action):
    # shared error reporting for every subcommand.
    try:
        action()
    except click.exceptions.Exit:
        raise
    except ReltmplError as e:
        log.error("handled_application_error_in_cli", error_type=type(e).__name__, message=str(e))
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)
    except click.ClickException:
        raise
    except Exception as e:
        log.critical("unexpected_critical_error_in_cli", message=str(e), exc_info=True)
        click.secho(f"Unexpected critical error: {e}. Please report this.", fg="red", err=True)
        sys.exit(1)

config_option = click.option(
    "--config", "config_path", type=click.Path(exists=True, dir_okay=False, path_type=Path), default=None,
    help="Release config TOML. Default: .reltmpl.toml, reltmpl.toml or [tool.reltmpl] in pyproject.toml.",
)

@click.group(context_settings=dict(help_option_names=["-h", "--help"]))
@click.option("--verbose", "-v", "verbosity_level", count=True, help="Verbosity: -v info, -vv debug.")
@click.option("--force-json-logs", "force_json_logs", is_flag=True, default=False, help="Force JSON logs.")
@click.version_option(version=app_version, package_name="reltmpl", prog_name="reltmpl", help="Show version and exit.")
def main_cli_group(verbosity_level: int, force_json_logs: bool):
    """reltmpl: expand release templates (archive names, URLs, changelog
    filters) against project, git, artifact and environment fields."""
    log_level = "warning"
    if verbosity_level == 1: log_level = "info"
    elif verbosity_level >= 2: log_level = "debug"
    configure_logging(log_level_str=log_level, force_json_logs=force_json_logs)

@main_cli_group.command("render")
@click.argument("template_text", metavar="TEMPLATE")
@optgroup.group("Context Sources", help="Where template fields come from.")
@optgroup.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False, path_type=Path), default=None, help="Release config TOML. Default: .reltmpl.toml, reltmpl.toml or [tool.reltmpl] in pyproject.toml.")
@optgroup.option("--env", "env_vars", multiple=True, metavar="KEY=VALUE", callback=_parse_key_value_pairs, help="Environment variables exposed as .Env (override config/process env).")
@optgroup.option("--field", "extra_fields", multiple=True, metavar="KEY=VALUE", callback=_parse_key_value_pairs, help="Extra template fields; override fields with the same name.")
@optgroup.group("Enrichment", help="Which configured enrichments to apply.")
@optgroup.option("--artifact/--no-artifact", "use_artifact", default=True, help="Apply the [artifact] table. Default: on.")
@optgroup.option("--build/--no-build", "use_build", default=True, help="Apply the [build] table. Default: on.")
@optgroup.group("Rendering & Output")
@optgroup.option("--env-only", "env_only", is_flag=True, default=False, help="Only accept a single {{ .Env.VAR }} reference (for secrets).")
@optgroup.option("-o", "--output", "output_file", type=click.Path(dir_okay=False, writable=True, path_type=Path), default=None, help="Path to write the rendered text to.")
def render_command(template_text: str, config_path: Optional[Path], env_vars: Dict[str, str], extra_fields: Dict[str, str],
                   use_artifact: bool, use_build: bool, env_only: bool, output_file: Optional[Path]):
    """Render TEMPLATE ('-' reads it from stdin)."""
    def action():
        source = template_text
        if source == "-":
            source = click.get_text_stream("stdin").read().rstrip("\n")
        template = _build_template(config_path, env_vars, extra_fields, use_artifact, use_build)
        log.info("rendering_template", env_only=env_only)
        rendered = template.apply_single_env_only(source) if env_only else template.apply(source)
        if output_file:
            write_to_file(output_file, rendered + "\n")
            click.echo(f"Info: Output written to: {output_file}", err=True)
        else:
            write_to_stdout(rendered + "\n")
    _run_cli_action(action)

@main_cli_group.command("fields")
@config_option
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the fields as JSON.")
@click.option("--artifact/--no-artifact", "use_artifact", default=True, help="Apply the [artifact] table. Default: on.")
@click.option("--build/--no-build", "use_build", default=True, help="Apply the [build] table. Default: on.")
def fields_command(config_path: Optional[Path], as_json: bool, use_artifact: bool, use_build: bool):
    """Show the fields templates can reference (environment values are masked)."""
    def action():
        template = _build_template(config_path, {}, {}, use_artifact, use_build)
        if as_json:
            write_to_stdout(json.dumps(masked_fields(template.fields), indent=2, sort_keys=True, default=str) + "\n")
        else:
            print_fields_table(template.fields, RichConsole())
        log.debug("fields_listed", count=len(template.fields), env_vars=len(template.fields.get(f.ENV) or {}))
    _run_cli_action(action)
