"""Diff engine: decides which source units must be copied to the target."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from azmigrate.core.models import (
    MigrationUnit,
    PlannedUnit,
    SelectionReason,
    TransferPlan,
)


logger = logging.getLogger(__name__)

FreshnessComparator = Callable[[MigrationUnit, MigrationUnit], bool]
"""Returns True when the target unit is strictly older than the source unit."""


def newer_timestamp(source: MigrationUnit, target: MigrationUnit) -> bool:
    """Target is stale if its last_modified is strictly before the source's.

    Equal timestamps count as up to date, so clock skew never triggers a
    needless re-copy. Units without timestamps are never stale.
    """
    if source.last_modified is None or target.last_modified is None:
        return False
    return target.last_modified < source.last_modified


def digest_changed(source: MigrationUnit, target: MigrationUnit) -> bool:
    """Target is stale if both sides report a digest and the digests differ."""
    if source.digest is None or target.digest is None:
        return False
    return source.digest != target.digest


def fewer_rows(source: MigrationUnit, target: MigrationUnit) -> bool:
    """Target is stale if it holds strictly fewer rows (or bytes) than source."""
    if source.size is None or target.size is None:
        return False
    return target.size < source.size


@dataclass(frozen=True, slots=True)
class DiffPolicy:
    """How the diff engine selects units.

    Attributes:
        comparator: Freshness comparator for units present on both sides.
        window: Only consider source units modified within this window of the
            reference time. None means unrestricted.
        force: Select every in-window unit, even when the target is current.
    """

    comparator: FreshnessComparator = newer_timestamp
    window: timedelta | None = None
    force: bool = False

    def __post_init__(self) -> None:
        """Validate the window."""
        if self.window is not None and self.window < timedelta(0):
            raise ValueError("Diff window cannot be negative")

    def cutoff(self, now: datetime) -> datetime | None:
        """Oldest last_modified that is still inside the window."""
        if self.window is None:
            return None
        return now - self.window

    def in_window(self, unit: MigrationUnit, cutoff: datetime | None) -> bool:
        """True if the unit passes the time-window filter."""
        if cutoff is None:
            return True
        if unit.last_modified is None:
            return False
        return _aware(unit.last_modified) >= cutoff


def _aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def plan(
    source_units: Iterable[MigrationUnit],
    target_units: Iterable[MigrationUnit],
    policy: DiffPolicy | None = None,
    now: datetime | None = None,
) -> TransferPlan:
    """Compute the transfer plan for a source and target enumeration.

    For each source unit, in order: units outside the policy window are
    ignored; units absent from the target are selected as ``missing``;
    units the comparator judges older on the target are selected as
    ``stale``; with ``policy.force`` the remaining units are selected as
    ``forced``. Everything else is up to date and omitted.

    Args:
        source_units: Units enumerated on the source endpoint.
        target_units: Units enumerated on the target endpoint.
        policy: Selection policy. Defaults to timestamp comparison with no
            window.
        now: Reference time for the window. Defaults to the current time.

    Returns:
        TransferPlan preserving source enumeration order.

    Example:
        >>> a, b = MigrationUnit("a"), MigrationUnit("b")
        >>> [p.unit.key for p in plan([a, b], [a])]
        ['b']
    """
    if policy is None:
        policy = DiffPolicy()
    reference = _aware(now) if now is not None else datetime.now(UTC)
    cutoff = policy.cutoff(reference)

    targets: dict[str, MigrationUnit] = {}
    for unit in target_units:
        targets.setdefault(unit.key, unit)

    selected: list[PlannedUnit] = []
    seen: set[str] = set()
    considered = 0

    for unit in source_units:
        if unit.key in seen:
            logger.debug("Ignoring duplicate source unit %s", unit.key)
            continue
        seen.add(unit.key)

        if not policy.in_window(unit, cutoff):
            continue
        considered += 1

        existing = targets.get(unit.key)
        if existing is None:
            selected.append(PlannedUnit(unit, SelectionReason.MISSING))
        elif policy.comparator(unit, existing):
            selected.append(PlannedUnit(unit, SelectionReason.STALE))
        elif policy.force:
            selected.append(PlannedUnit(unit, SelectionReason.FORCED))

    logger.debug(
        "Planned %d of %d source unit(s) in window", len(selected), considered
    )
    return TransferPlan(
        units=tuple(selected), considered=considered, window=policy.window
    )
