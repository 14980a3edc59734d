"""CLI entry point — Click group with global options."""

from __future__ import annotations

import logging

import click

from nginxpolicy import __version__
from nginxpolicy.config import EngineConfig
from nginxpolicy.policies.conflicts import MergeStrategy


@click.group()
@click.version_option(version=__version__, prog_name="nginxpolicy")
@click.option(
    "--merge-strategy",
    type=click.Choice([s.value for s in MergeStrategy]),
    default=None,
    help="Which of two conflicting policies wins (overrides NGINXPOLICY_MERGE_STRATEGY).",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.pass_context
def main(ctx: click.Context, merge_strategy: str | None, verbose: bool) -> None:
    """nginxpolicy — validate NGINX Gateway policies and render their directives."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        config = EngineConfig.load()
    except ValueError as exc:
        raise click.UsageError(str(exc)) from exc
    if merge_strategy:
        config.merge_strategy = MergeStrategy(merge_strategy)
    config.verbose = verbose

    ctx.ensure_object(dict)
    ctx.obj["config"] = config


def _register_commands() -> None:
    from nginxpolicy.cli.generate import generate  # noqa: F811
    from nginxpolicy.cli.validate import validate  # noqa: F811

    main.add_command(validate)
    main.add_command(generate)


_register_commands()
