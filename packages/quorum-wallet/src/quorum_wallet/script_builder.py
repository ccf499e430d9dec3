"""Assemble a role's native script from the wallet's participant keys."""
from __future__ import annotations

from typing import Iterable, Optional, Union

from quorum_core.exceptions import InvalidThresholdError

from .keys import ParticipantKey, Role
from .native_script import AllOf, AnyOf, AtLeastOf, NativeScript, Sig, ThresholdKind, ThresholdRule


def build(
    role: Union[Role, int, str],
    participants: Iterable[ParticipantKey],
    rule: ThresholdRule,
) -> Optional[NativeScript]:
    """Build the native script for `role`.

    Keys keep their configured order; the resulting script hash depends
    on it. Returns None when no participant holds a key for the role.

    Raises:
        InvalidThresholdError: atLeast(n) with n < 1 or n above the
            role's key count. Thresholds are never clamped.
    """
    role = Role.parse(role)
    sigs = tuple(Sig(p.key_hash) for p in participants if p.role is role)
    if not sigs:
        return None

    if rule.kind is ThresholdKind.ALL:
        return AllOf(sigs)
    if rule.kind is ThresholdKind.ANY:
        return AnyOf(sigs)
    if rule.kind is ThresholdKind.AT_LEAST:
        if rule.required < 1 or rule.required > len(sigs):
            raise InvalidThresholdError(
                f"atLeast({rule.required}) is out of range for {len(sigs)} {role.label} keys",
                required=rule.required,
                available=len(sigs),
                role=role.label,
            )
        return AtLeastOf(rule.required, sigs)
    raise TypeError(f"Unknown threshold kind: {rule.kind!r}")


__all__ = ["build"]
