"""Post-transfer reconciliation of source and target."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from azmigrate.core.exceptions import AzmigrateError
from azmigrate.core.models import VerificationResult


if TYPE_CHECKING:
    from collections.abc import Iterable

    from azmigrate.core.models import MigrationUnit, ResourceEndpoint
    from azmigrate.core.ports import ResourceAdapter


logger = logging.getLogger(__name__)


class Verifier:
    """Compares per-unit fingerprints on both sides of a migration.

    Never mutates either endpoint. Runs standalone (verify-only workflows)
    or right after a transfer batch.
    """

    def __init__(self, adapter: ResourceAdapter) -> None:
        self._adapter = adapter

    def reconcile(
        self,
        source: ResourceEndpoint,
        target: ResourceEndpoint,
        units: Iterable[MigrationUnit],
    ) -> list[VerificationResult]:
        """Fingerprint each unit on both endpoints and compare.

        A fingerprint error on either side yields a non-matching result with
        the error in ``detail``; reconciliation continues with the next unit.

        Args:
            source: Source endpoint.
            target: Target endpoint.
            units: Verification units (tables, containers, image tags).

        Returns:
            One VerificationResult per unit, in input order.
        """
        results: list[VerificationResult] = []
        for unit in units:
            try:
                source_print = self._adapter.fingerprint(source, unit)
            except AzmigrateError as e:
                results.append(_errored(unit, "source", e))
                continue
            try:
                target_print = self._adapter.fingerprint(target, unit)
            except AzmigrateError as e:
                results.append(_errored(unit, "target", e, source=source_print))
                continue

            match = source_print is not None and source_print == target_print
            detail = "" if match else _mismatch(source_print, target_print)
            if not match:
                logger.warning("Mismatch on %s: %s", unit.key, detail)
            results.append(
                VerificationResult(
                    unit=unit,
                    match=match,
                    detail=detail,
                    source=source_print,
                    target=target_print,
                )
            )
        return results


def _format(value: Any) -> str:
    if value is None:
        return "missing"
    if isinstance(value, tuple):
        return "/".join(str(part) for part in value)
    return str(value)


def _mismatch(source: Any, target: Any) -> str:
    return f"Source={_format(source)}, Target={_format(target)}"


def _errored(
    unit: MigrationUnit, side: str, error: AzmigrateError, source: Any = None
) -> VerificationResult:
    logger.warning("Could not fingerprint %s on %s: %s", unit.key, side, error)
    return VerificationResult(
        unit=unit,
        match=False,
        detail=f"{side} error: {error}",
        source=source,
    )
