"""
Update Classification Policy.

This module provides THE authoritative decline and approval rules for
catalog entries. The classification service only carries out what this
module decides.

Architecture Note:
    - Pure domain logic - no I/O, no catalog calls
    - Decline sets are disjoint: a record matching several predicates is
      placed in the first matching set (expired, then superseded, then old)
    - "Old" is judged by the vendor release date, never the local import date
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from autowsus.domain.config.settings import UpdatePolicy
from autowsus.domain.models import ClassificationResult, UpdateRecord


def _as_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC so comparisons never mix kinds."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# =============================================================================
# Predicates
# =============================================================================

def is_expired_candidate(record: UpdateRecord) -> bool:
    return record.is_expired and not record.is_declined


def is_superseded_candidate(record: UpdateRecord) -> bool:
    return record.is_superseded and not record.is_declined


def is_old_candidate(record: UpdateRecord, cutoff: datetime) -> bool:
    """Not declined and released before the cutoff."""
    if record.is_declined or record.release_date is None:
        return False
    return _as_utc(record.release_date) < _as_utc(cutoff)


def has_excluded_title(title: str, excluded_terms: Iterable[str]) -> bool:
    """Case-insensitive substring match against preview/beta style terms."""
    lowered = (title or "").lower()
    return any(term.lower() in lowered for term in excluded_terms)


def is_approvable(record: UpdateRecord, cutoff: datetime, policy: UpdatePolicy) -> bool:
    """
    Check whether a record may be approved automatically.

    Requires: not declined/superseded/expired, no install approval yet for the
    default group, released after the cutoff, no excluded title term, and an
    approvable classification.
    """
    if record.is_declined or record.is_superseded or record.is_expired:
        return False
    if record.has_install_approval:
        return False
    if record.release_date is None or _as_utc(record.release_date) <= _as_utc(cutoff):
        return False
    if has_excluded_title(record.title, policy.excluded_title_terms):
        return False
    return record.classification in policy.approvable_classifications


# =============================================================================
# Classification
# =============================================================================

def classify(
    records: Iterable[UpdateRecord],
    now: datetime,
    policy: UpdatePolicy | None = None,
) -> ClassificationResult:
    """
    Split a catalog snapshot into disjoint action sets.

    Args:
        records: Catalog snapshot
        now: Reference time for the age cutoff
        policy: Policy settings (defaults: 6 months, preview/beta excluded)

    Returns:
        ClassificationResult with expired, superseded, old and approvable lists
    """
    policy = policy or UpdatePolicy()
    cutoff = policy.release_cutoff(_as_utc(now))
    result = ClassificationResult()

    for record in records:
        if policy.decline_expired and is_expired_candidate(record):
            result.expired.append(record)
        elif policy.decline_superseded and is_superseded_candidate(record):
            result.superseded.append(record)
        elif policy.decline_old and is_old_candidate(record, cutoff):
            result.old.append(record)
        elif is_approvable(record, cutoff, policy):
            result.approvable.append(record)

    return result
