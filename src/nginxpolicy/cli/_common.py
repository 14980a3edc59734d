"""Helpers shared by CLI commands."""

from __future__ import annotations

import click

from nginxpolicy.config import EngineConfig
from nginxpolicy.filters.authentication import (
    ProcessedAuthenticationFilter,
    process_authentication_filters,
)
from nginxpolicy.objects import NamespacedName
from nginxpolicy.policies.manager import PolicyEvaluation, PolicyManager
from nginxpolicy.policy.loader import ManifestError, Manifests, load_manifests
from nginxpolicy.policy.models import PolicyTarget
from nginxpolicy.resolver import ResourceResolver


def load_all(paths: tuple[str, ...], config: EngineConfig) -> Manifests:
    """Load manifests from the given paths, falling back to the configured manifest dirs."""
    sources = list(paths) or [str(d) for d in config.manifest_dirs]
    if not sources:
        raise click.UsageError(
            f"No manifests given and {config.config_dir / 'manifests'} does not exist"
        )

    manifests = Manifests()
    for source in sources:
        try:
            manifests.extend(load_manifests(source))
        except ManifestError as exc:
            raise click.ClickException(str(exc)) from exc
        except OSError as exc:
            raise click.ClickException(f"Cannot read {source}: {exc}") from exc
    return manifests


def evaluate(
    manifests: Manifests,
    config: EngineConfig,
    manager: PolicyManager | None = None,
) -> tuple[
    dict[PolicyTarget, PolicyEvaluation],
    dict[NamespacedName, ProcessedAuthenticationFilter],
]:
    manager = manager or PolicyManager(merge_strategy=config.merge_strategy)
    evaluations = manager.evaluate_by_target(manifests.policies, config.global_settings())

    resolver = ResourceResolver(manifests.resources)
    filters = process_authentication_filters(manifests.authentication_filters, resolver)
    return evaluations, filters
