"""exprassert CLI entry point."""

import click

from exprassert.config import EngineConfig


@click.group()
@click.option(
    "--log-level",
    default=None,
    help="Logging level (DEBUG, INFO, WARNING...). Overrides EXPRASSERT_LOG_LEVEL.",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str | None):
    """exprassert: expression-based validation rules."""
    config = EngineConfig.from_env()
    if log_level:
        config.log_level = log_level.upper()
    try:
        config.configure_logging()
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--log-level")
    ctx.obj = config


# Register subcommands
from exprassert.cli.rule_cmd import check, compile_cmd, eval_cmd  # noqa: E402

cli.add_command(check)
cli.add_command(compile_cmd)
cli.add_command(eval_cmd)
