"""CLI command: nginxpolicy generate <manifest>... — render NGINX configuration files."""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console

from nginxpolicy.cli._common import evaluate, load_all
from nginxpolicy.filters.authentication import generate_basic_auth
from nginxpolicy.policies.manager import Placement, PolicyManager

console = Console(stderr=True)


@click.command()
@click.argument("manifests", nargs=-1, type=click.Path(exists=True))
@click.option(
    "--output",
    "-o",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory to write files into (default: NGINXPOLICY_OUTPUT_DIR or XDG data dir).",
)
@click.option(
    "--context",
    "-c",
    "contexts",
    multiple=True,
    type=click.Choice([p.value for p in Placement]),
    help="Only render these contexts. May be repeated.",
)
@click.pass_context
def generate(
    ctx: click.Context,
    manifests: tuple[str, ...],
    output: str | None,
    contexts: tuple[str, ...],
) -> None:
    """Render accepted policies into per-context NGINX include files."""
    config = ctx.obj["config"]
    loaded = load_all(manifests, config)
    out_dir = Path(output) if output else Path(config.output_dir)

    manager = PolicyManager(merge_strategy=config.merge_strategy)
    evaluations, filters = evaluate(loaded, config, manager)
    rendered = manager.generate_all(evaluations)

    selected = {Placement(c) for c in contexts} if contexts else set(Placement)
    written = 0
    for placement, files in rendered.items():
        if placement not in selected or not files:
            continue
        target_dir = out_dir / placement.value
        target_dir.mkdir(parents=True, exist_ok=True)
        for f in files:
            (target_dir / f.name).write_text(f.content, encoding="utf-8")
            console.print(f"  [cyan]{placement.value}[/cyan] {f.name}")
            written += 1

    if Placement.LOCATION in selected:
        for processed in filters.values():
            if not processed.valid:
                continue
            af = processed.source
            target_dir = out_dir / Placement.LOCATION.value
            target_dir.mkdir(parents=True, exist_ok=True)
            name = f"AuthenticationFilter_{af.namespace}_{af.name}.conf"
            (target_dir / name).write_text(generate_basic_auth(af), encoding="utf-8")
            console.print(f"  [cyan]{Placement.LOCATION.value}[/cyan] {name}")
            written += 1

    console.print(f"\nWrote {written} file(s) to [cyan]{out_dir}[/cyan]")
