"""Triage ledger: persists human accept/flag/delete decisions per comparison pair."""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Optional

from vrtriage.models.comparison import ComparisonItem
from vrtriage.models.ledger import AcceptanceRecord, DeletionRecord, FlagRecord, TriageLedger

logger = logging.getLogger(__name__)


def _now() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def _drop(section: dict, pair_key: str, item_keys: set[str]) -> bool:
    """Remove item keys from one pair of a ledger section, pruning empty pairs."""
    pair = section.get(pair_key)
    if not pair:
        return False
    removed = [k for k in item_keys if k in pair]
    for k in removed:
        del pair[k]
    if not pair:
        del section[pair_key]
    return bool(removed)


class TriageStore:
    """Owns the triage ledger JSON file.

    Every mutation is a full load-modify-save. Writers must be serialized by
    the caller; there is no cross-process locking.
    """

    def __init__(self, ledger_path: Path):
        self.ledger_path = Path(ledger_path)

    def load(self) -> TriageLedger:
        """Load the ledger from disk, or start an empty one."""
        if self.ledger_path.exists():
            try:
                with open(self.ledger_path) as f:
                    data = json.load(f)
                return TriageLedger(**data)
            except Exception as e:
                logger.warning("Failed to load triage ledger %s: %s. Starting empty.", self.ledger_path, e)
        return TriageLedger()

    def save(self, ledger: TriageLedger) -> None:
        """Persist the ledger to disk."""
        self.ledger_path.parent.mkdir(parents=True, exist_ok=True)
        ledger.last_updated = _now()
        with open(self.ledger_path, "w") as f:
            json.dump(ledger.model_dump(exclude_none=True), f, indent=2)
        logger.debug("Saved triage ledger to %s", self.ledger_path)

    # ------------------------------------------------------------------
    # Acceptances
    # ------------------------------------------------------------------

    def accept(self, pair_key: str, item_key: str, reason: Optional[str] = None) -> AcceptanceRecord:
        """Accept an item, replacing any earlier acceptance for the same key."""
        ledger = self.load()
        record = AcceptanceRecord(accepted_at=_now(), reason=reason)
        ledger.acceptances.setdefault(pair_key, {})[item_key] = record
        self.save(ledger)
        logger.info("Accepted %s in %s", item_key, pair_key)
        return record

    def revoke_acceptance(self, pair_key: str, item_key: str) -> bool:
        ledger = self.load()
        if not _drop(ledger.acceptances, pair_key, {item_key}):
            return False
        self.save(ledger)
        logger.info("Revoked acceptance of %s in %s", item_key, pair_key)
        return True

    def acceptances(self, pair_key: str) -> dict[str, AcceptanceRecord]:
        return self.load().acceptances.get(pair_key, {})

    # ------------------------------------------------------------------
    # Flags
    # ------------------------------------------------------------------

    def flag(self, pair_key: str, item_key: str, reason: Optional[str] = None) -> FlagRecord:
        """Flag an item for attention, replacing any earlier flag for the same key."""
        ledger = self.load()
        record = FlagRecord(flagged_at=_now(), reason=reason)
        ledger.flags.setdefault(pair_key, {})[item_key] = record
        self.save(ledger)
        logger.info("Flagged %s in %s", item_key, pair_key)
        return record

    def unflag(self, pair_key: str, item_key: str) -> bool:
        ledger = self.load()
        if not _drop(ledger.flags, pair_key, {item_key}):
            return False
        self.save(ledger)
        logger.info("Removed flag from %s in %s", item_key, pair_key)
        return True

    def flags(self, pair_key: str) -> dict[str, FlagRecord]:
        return self.load().flags.get(pair_key, {})

    # ------------------------------------------------------------------
    # Soft deletion
    # ------------------------------------------------------------------

    def soft_delete(self, pair_key: str, item_key: str) -> DeletionRecord:
        """Hide an item from listings and drop its acceptance and flag."""
        ledger = self.load()
        record = DeletionRecord(deleted_at=_now())
        ledger.deletions.setdefault(pair_key, {})[item_key] = record
        _drop(ledger.acceptances, pair_key, {item_key})
        _drop(ledger.flags, pair_key, {item_key})
        self.save(ledger)
        logger.info("Deleted %s from %s", item_key, pair_key)
        return record

    def restore(self, pair_key: str, item_keys: list[str]) -> bool:
        """Undo soft deletion for the given items."""
        ledger = self.load()
        if not _drop(ledger.deletions, pair_key, set(item_keys)):
            return False
        self.save(ledger)
        return True

    def deletions(self, pair_key: str) -> dict[str, DeletionRecord]:
        return self.load().deletions.get(pair_key, {})

    def is_deleted(self, pair_key: str, item_key: str) -> bool:
        return item_key in self.deletions(pair_key)

    def clear_pair(self, pair_key: str) -> None:
        """Forget every decision recorded for a comparison pair."""
        ledger = self.load()
        changed = False
        for section in (ledger.acceptances, ledger.flags, ledger.deletions):
            if section.pop(pair_key, None) is not None:
                changed = True
        if changed:
            self.save(ledger)

    def visible_items(self, pair_key: str, items: list[ComparisonItem]) -> list[ComparisonItem]:
        """Items of a pair that have not been soft-deleted."""
        deleted = self.deletions(pair_key)
        return [item for item in items if item.resolved_key not in deleted]
