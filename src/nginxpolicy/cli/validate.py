"""CLI command: nginxpolicy validate <manifest>... — check policies and filters."""

from __future__ import annotations

import sys

import click
from rich.console import Console
from rich.table import Table

from nginxpolicy.cli._common import evaluate, load_all
from nginxpolicy.conditions import (
    PolicyReason,
    new_authentication_filter_accepted,
    new_policy_accepted,
)
from nginxpolicy.policy.models import policy_key

console = Console(stderr=True)

_REASON_COLORS = {
    PolicyReason.ACCEPTED: "green",
    PolicyReason.INVALID: "red",
    PolicyReason.CONFLICTED: "yellow",
}


@click.command()
@click.argument("manifests", nargs=-1, type=click.Path(exists=True))
@click.pass_context
def validate(ctx: click.Context, manifests: tuple[str, ...]) -> None:
    """Validate policies and authentication filters, resolving conflicts per target."""
    config = ctx.obj["config"]
    loaded = load_all(manifests, config)

    console.print(
        f"[bold]nginxpolicy[/bold] validating {len(loaded.policies)} policies and "
        f"{len(loaded.authentication_filters)} filters "
        f"([cyan]{config.merge_strategy.value}[/cyan] merge)\n"
    )

    evaluations, filters = evaluate(loaded, config)

    table = Table(title="Conditions", show_lines=False)
    table.add_column("Target", style="cyan")
    table.add_column("Resource")
    table.add_column("Reason", style="bold", width=14)
    table.add_column("Message", max_width=80)

    rejected = 0
    for target, evaluation in sorted(evaluations.items()):
        accepted = new_policy_accepted()
        for policy in evaluation.accepted:
            table.add_row(
                str(target), str(policy_key(policy)), _reason(accepted.reason), accepted.message
            )
        for key, conds in sorted(evaluation.conditions.items()):
            rejected += 1
            for cond in conds:
                table.add_row(str(target), str(key), _reason(cond.reason), cond.message)

    for nsname, processed in sorted(filters.items()):
        resource = f"AuthenticationFilter {nsname}"
        if processed.valid:
            accepted = new_authentication_filter_accepted()
            table.add_row("-", resource, _reason(accepted.reason), accepted.message)
            continue
        rejected += 1
        for cond in processed.conditions:
            table.add_row("-", resource, _reason(cond.reason), cond.message)

    console.print(table)

    if rejected > 0:
        console.print(f"\n[red]{rejected} rejected resource(s)[/red]")
        sys.exit(1)
    console.print("\n[green]All resources accepted.[/green]")


def _reason(reason: PolicyReason) -> str:
    color = _REASON_COLORS.get(reason, "white")
    return f"[{color}]{reason.value}[/{color}]"
