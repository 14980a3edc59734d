"""Generator for SnippetsPolicy: one file per policy per snippet in the rendered context."""

from __future__ import annotations

from collections.abc import Sequence

from nginxpolicy.policies.base import GeneratedFile, Generator, of_kind
from nginxpolicy.policy.models import NginxContext, Policy, SnippetsPolicy

# label used in the comment line and the file name
_CONTEXT_LABELS = {
    NginxContext.MAIN: "main",
    NginxContext.HTTP: "http",
    NginxContext.HTTP_SERVER: "server",
    NginxContext.HTTP_SERVER_LOCATION: "location",
}


class SnippetsGenerator(Generator):
    def generate_for_main(self, policies: Sequence[Policy]) -> list[GeneratedFile]:
        return _generate(policies, NginxContext.MAIN)

    def generate_for_http(self, policies: Sequence[Policy]) -> list[GeneratedFile]:
        return _generate(policies, NginxContext.HTTP)

    def generate_for_server(self, policies: Sequence[Policy]) -> list[GeneratedFile]:
        return _generate(policies, NginxContext.HTTP_SERVER)

    def generate_for_location(self, policies: Sequence[Policy]) -> list[GeneratedFile]:
        return _generate(policies, NginxContext.HTTP_SERVER_LOCATION)

    def generate_for_internal_location(
        self, policies: Sequence[Policy]
    ) -> list[GeneratedFile]:
        return _generate(policies, NginxContext.HTTP_SERVER_LOCATION)


def _generate(policies: Sequence[Policy], context: NginxContext) -> list[GeneratedFile]:
    label = _CONTEXT_LABELS[context]
    files: list[GeneratedFile] = []
    for sp in of_kind(policies, SnippetsPolicy):
        for snippet in sp.spec.snippets:
            if snippet.context is not context:
                continue
            files.append(
                GeneratedFile(
                    name=f"SnippetsPolicy_{label}_{sp.namespace}-{sp.name}.conf",
                    content=f"\n# SnippetsPolicy {sp.nsname} {label} context\n{snippet.value}\n",
                )
            )
    return files
