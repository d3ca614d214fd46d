"""
Renders the Field Set for the `fields` command. Environment values are never
printed, only the variable names.
"""
from typing import Any, Dict

from rich.console import Console as RichConsole
from rich.table import Table
from rich.text import Text
import structlog

from reltmpl.core.templating import fields as f
from reltmpl.core.templating.builtins import format_value

log = structlog.get_logger(__name__)

MASK = "***"

def masked_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of ``fields`` with every Env value replaced by a mask."""
    masked = dict(fields)
    env = masked.get(f.ENV)
    if isinstance(env, dict):
        masked[f.ENV] = {key: MASK for key in env}
    return masked

def _group_of(key: str) -> str:
    if key in f.GENERAL_KEYS:
        return "general"
    if key in f.BUILD_KEYS and key in f.ARTIFACT_KEYS:
        return "artifact/build"
    if key in f.ARTIFACT_KEYS:
        return "artifact"
    if key in f.BUILD_KEYS:
        return "build"
    return "extra"

def print_fields_table(fields: Dict[str, Any], console: RichConsole):
    table = Table(title="Template fields", show_lines=False)
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Group", style="magenta")
    table.add_column("Value", overflow="fold")

    for key in sorted(fields):
        value = fields[key]
        if key == f.ENV and isinstance(value, dict):
            shown = f"{len(value)} variables: " + ", ".join(sorted(value)) if value else "(empty)"
        else:
            shown = format_value(value)
        # Text() keeps values like map[A:1] from being read as markup.
        table.add_row(key, _group_of(key), Text(shown))

    console.print(table)
    log.debug("fields_table_printed", rows=len(fields))
