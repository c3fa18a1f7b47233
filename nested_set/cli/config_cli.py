"""
CLI commands for inspecting effective configuration.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

import click
import json
import sys

from ..core.settings_manager import get_settings


@click.group()
def config():
    """Configuration commands."""
    pass


@config.command()
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "text"]),
    default="text",
    help="Output format",
)
def show(output_format: str) -> None:
    """Show effective settings (CLI > environment > defaults)."""
    settings = get_settings()
    try:
        settings.tree_config()
    except Exception as e:
        click.echo(f"❌ Invalid table layout: {e}", err=True)
        sys.exit(1)

    values = settings.as_dict()
    if output_format == "json":
        click.echo(json.dumps(values, indent=2, sort_keys=True))
        return
    for name in sorted(values):
        click.echo(f"{name}: {values[name]}")


if __name__ == "__main__":
    config()
