"""Validator for ProxySettingsPolicy."""

from __future__ import annotations

import logging

from nginxpolicy.conditions import Condition, new_policy_invalid
from nginxpolicy.policies.base import GlobalSettings, must_cast
from nginxpolicy.policy.models import (
    Policy,
    ProxyBuffering,
    ProxySettingsPolicy,
    ProxySettingsPolicySpec,
)
from nginxpolicy.validation.common import parse_nginx_size
from nginxpolicy.validation.field import FieldError, FieldPath, aggregate, invalid, new_path
from nginxpolicy.validation.http import GenericValidator

logger = logging.getLogger(__name__)


class ProxySettingsValidator:
    """Validates the parts of a ProxySettingsPolicy the CRD schema cannot check."""

    def __init__(self, generic: GenericValidator | None = None) -> None:
        self._generic = generic or GenericValidator()

    def validate(self, policy: Policy) -> list[Condition]:
        psp = must_cast(policy, ProxySettingsPolicy)

        msg = self._validate_settings(psp.spec)
        if msg is not None:
            logger.debug("ProxySettingsPolicy %s is invalid: %s", psp.nsname, msg)
            return [new_policy_invalid(msg)]
        return []

    def validate_global_settings(
        self, policy: Policy, settings: GlobalSettings | None
    ) -> list[Condition]:
        return []

    def conflicts(self, a: Policy, b: Policy) -> bool:
        psp_a = must_cast(a, ProxySettingsPolicy)
        psp_b = must_cast(b, ProxySettingsPolicy)
        return _conflicts(psp_a.spec, psp_b.spec)

    def _validate_settings(self, spec: ProxySettingsPolicySpec) -> str | None:
        errors: list[FieldError] = []
        if spec.buffering is not None:
            path = new_path("spec", "buffering")
            errors.extend(self._validate_buffer_sizes(spec.buffering, path))
            errors.extend(_validate_busy_buffers_size(spec.buffering, path))
        return aggregate(errors)

    def _validate_buffer_sizes(
        self, buffering: ProxyBuffering, path: FieldPath
    ) -> list[FieldError]:
        errors: list[FieldError] = []
        sizes = [
            (path.child("bufferSize"), buffering.buffer_size),
            (
                path.child("buffers").child("size"),
                buffering.buffers.size if buffering.buffers else None,
            ),
            (path.child("busyBuffersSize"), buffering.busy_buffers_size),
        ]
        for field_path, value in sizes:
            if value is None:
                continue
            try:
                self._generic.validate_nginx_size(value)
            except ValueError as exc:
                errors.append(invalid(field_path, value, str(exc)))
        return errors


def _conflicts(a: ProxySettingsPolicySpec, b: ProxySettingsPolicySpec) -> bool:
    # Presence, not value: two policies setting the same field conflict even if they agree.
    if a.buffering is None or b.buffering is None:
        return False
    return any(
        getattr(a.buffering, name) is not None and getattr(b.buffering, name) is not None
        for name in ("disable", "buffer_size", "buffers", "busy_buffers_size")
    )


def _validate_busy_buffers_size(buffering: ProxyBuffering, path: FieldPath) -> list[FieldError]:
    """Check proxy_busy_buffers_size against the other buffer settings.

    NGINX refuses to start unless:

    1. ``proxy_busy_buffers_size`` > ``proxy_buffer_size``
    2. ``proxy_busy_buffers_size`` < total ``proxy_buffers`` space minus one buffer

    The schema cannot express either rule because the values carry units.
    Only fields set on the same policy are compared; sizes that fail to parse
    are reported by the per-field checks instead.
    """
    if buffering.busy_buffers_size is None:
        return []
    try:
        busy = parse_nginx_size(buffering.busy_buffers_size)
    except ValueError:
        return []

    errors: list[FieldError] = []
    busy_path = path.child("busyBuffersSize")

    if buffering.buffer_size is not None:
        try:
            buffer_size = parse_nginx_size(buffering.buffer_size)
        except ValueError:
            buffer_size = None
        if buffer_size is not None and busy <= buffer_size:
            errors.append(
                invalid(busy_path, buffering.busy_buffers_size, "must be larger than bufferSize")
            )

    if buffering.buffers is not None:
        try:
            one_buffer = parse_nginx_size(buffering.buffers.size)
        except ValueError:
            one_buffer = None
        if one_buffer is not None:
            max_busy = one_buffer * buffering.buffers.number - one_buffer
            if busy >= max_busy:
                errors.append(
                    invalid(
                        busy_path,
                        buffering.busy_buffers_size,
                        "must be less than the size of all proxy_buffers minus one buffer",
                    )
                )

    return errors
