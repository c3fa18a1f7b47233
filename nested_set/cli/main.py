"""
Main CLI entry point for the nested set store.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

# mypy: ignore-errors

import click
import importlib
from typing import Dict, Optional

from ..core.settings_manager import get_settings
from ..logging.unified_logging import setup_logging

_COMMANDS: Dict[str, str] = {
    "tree": "nested_set.cli.tree_cli:tree",
    "config": "nested_set.cli.config_cli:config",
}


def _load_click_command(import_path: str) -> click.Command:
    module_path, obj_name = import_path.split(":", 1)
    mod = importlib.import_module(module_path)
    return getattr(mod, obj_name)


class LazyGroup(click.Group):
    """
    Click group that lazy-loads subcommands on demand.

    `nested-set config show` never imports the row store drivers.
    """

    def list_commands(self, ctx: click.Context) -> list:
        return sorted(_COMMANDS.keys())

    def get_command(self, ctx: click.Context, cmd_name: str) -> Optional[click.Command]:
        target = _COMMANDS.get(cmd_name)
        if not target:
            return None
        return _load_click_command(target)


@click.group(cls=LazyGroup)
@click.option("--db", "db_path", help="SQLite database file (default: data/nested_set.db)")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    help="Log level (default: WARNING)",
)
@click.option("--log-file", help="Also write log records to this file")
def cli(db_path: Optional[str], log_level: Optional[str], log_file: Optional[str]) -> None:
    """Nested set tree store - build, reshape and check interval-encoded trees."""
    settings = get_settings()
    settings.set_cli_overrides(
        {"db_path": db_path, "log_level": log_level, "log_file": log_file}
    )
    setup_logging(settings.log_level, settings.log_file or None)


if __name__ == "__main__":
    cli()
