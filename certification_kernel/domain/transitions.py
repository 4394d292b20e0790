"""
Module: certification_kernel.domain.transitions
Responsibility: The status transition table and the pure validator that
    answers "is from -> to legal" and "what are the legal targets from X".
Architecture position: Kernel > Domain.  Pure, zero I/O except
    load_transition_table(), which reads a YAML file once at startup.

Invariants enforced:
    - The table is data, built once and read-only afterwards
      (MappingProxyType of frozensets).  No other module branches on
      status pairs; everything asks the validator.
    - Every status of the vocabulary has an entry (possibly empty).
    - Self-transitions are never legal, whatever a loaded table says.

Failure modes:
    - RuleViolationError from validate() for an illegal pair, carrying the
      legal target set.
    - UnknownStatusError for values outside the vocabulary.
    - InvalidTransitionTableError when a loaded table is malformed.
"""

from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from certification_kernel.domain.status import (
    ALL_STATUSES,
    CustomerStatus,
    parse_status,
)
from certification_kernel.exceptions import (
    InvalidTransitionTableError,
    RuleViolationError,
    UnknownStatusError,
)

TransitionTable = Mapping[CustomerStatus, frozenset[CustomerStatus]]

_S = CustomerStatus


def freeze_table(
    table: Mapping[CustomerStatus, Any],
) -> TransitionTable:
    """
    Validate a raw mapping and return it as a read-only table.

    Raises:
        InvalidTransitionTableError: a status is missing, a target is a
            self-loop, or a key/target is outside the vocabulary.
    """
    frozen: dict[CustomerStatus, frozenset[CustomerStatus]] = {}
    for raw_source, raw_targets in table.items():
        try:
            source = parse_status(raw_source)
            targets = frozenset(parse_status(t) for t in (raw_targets or ()))
        except UnknownStatusError as exc:
            raise InvalidTransitionTableError(
                f"unknown status {exc.value!r} in transition table"
            ) from exc
        if source in frozen:
            raise InvalidTransitionTableError(f"duplicate entry for {source.value}")
        if source in targets:
            raise InvalidTransitionTableError(
                f"self-transition {source.value} -> {source.value} is not allowed"
            )
        frozen[source] = targets

    missing = ALL_STATUSES - frozen.keys()
    if missing:
        names = ", ".join(sorted(s.value for s in missing))
        raise InvalidTransitionTableError(f"no entry for status(es): {names}")

    return MappingProxyType(frozen)


CANONICAL_TRANSITIONS: TransitionTable = freeze_table({
    _S.NEW: {_S.NOTIFIED, _S.ABORTED, _S.CERTIFIED_ELSEWHERE},
    _S.NOTIFIED: {_S.SUBMITTED, _S.ABORTED, _S.CERTIFIED_ELSEWHERE},
    _S.SUBMITTED: {_S.CERTIFIED, _S.ABORTED, _S.CERTIFIED_ELSEWHERE},
    _S.ABORTED: {_S.NEW, _S.CERTIFIED_ELSEWHERE},
    _S.CERTIFIED: set(),
    _S.CERTIFIED_ELSEWHERE: {
        _S.NOTIFIED, _S.SUBMITTED, _S.CERTIFIED, _S.ABORTED,
    },
})


def load_transition_table(path: str | Path) -> TransitionTable:
    """
    Load a transition table from YAML.

    Expected shape::

        transitions:
          NEW: [NOTIFIED, ABORTED, CERTIFIED_ELSEWHERE]
          CERTIFIED: []
          ...

    Raises:
        FileNotFoundError: if the file does not exist.
        InvalidTransitionTableError: if the document is malformed.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict) or not isinstance(data.get("transitions"), dict):
        raise InvalidTransitionTableError(
            f"{path}: expected a top-level 'transitions' mapping"
        )
    return freeze_table(data["transitions"])


def _ordered(statuses: frozenset[CustomerStatus]) -> list[CustomerStatus]:
    order = list(CustomerStatus)
    return sorted(statuses, key=order.index)


class StatusTransitionValidator:
    """
    Decides transition legality against an immutable table.

    Contract:
        ``is_allowed`` and ``allowed_targets`` are total over the vocabulary.
        ``validate`` raises RuleViolationError for anything ``is_allowed``
        rejects.

    Non-goals:
        The same-status no-op is a lifecycle concern; the validator itself
        always rejects ``from == to``.
    """

    def __init__(self, table: TransitionTable | None = None):
        self._table = table if table is not None else CANONICAL_TRANSITIONS

    @property
    def table(self) -> TransitionTable:
        return self._table

    def is_allowed(self, from_status: Any, to_status: Any) -> bool:
        source = parse_status(from_status)
        target = parse_status(to_status)
        if source == target:
            return False
        return target in self._table[source]

    def allowed_targets(self, from_status: Any) -> frozenset[CustomerStatus]:
        return self._table[parse_status(from_status)]

    def validate(self, from_status: Any, to_status: Any) -> None:
        """Raise RuleViolationError unless from -> to is legal."""
        source = parse_status(from_status)
        target = parse_status(to_status)
        if not self.is_allowed(source, target):
            raise RuleViolationError(
                from_status=source,
                to_status=target,
                allowed_targets=self.allowed_targets(source),
                message=self.describe_rejection(source, target),
            )

    def describe_rejection(self, from_status: Any, to_status: Any) -> str:
        """Human-readable reason a transition is rejected."""
        source = parse_status(from_status)
        target = parse_status(to_status)

        if source == target:
            return f"Customer is already in status: {target.display_name}"

        allowed = self.allowed_targets(source)
        if target == CustomerStatus.NEW and target not in allowed:
            return (
                f"Cannot transition from {source.display_name} to New. "
                "Once a customer leaves New status, they cannot return to it."
            )
        if not allowed:
            return f"No status transitions are allowed from {source.display_name}"

        options = ", ".join(s.display_name for s in _ordered(allowed))
        return (
            f"Cannot transition from {source.display_name} to "
            f"{target.display_name}. Valid transitions are: {options}"
        )
