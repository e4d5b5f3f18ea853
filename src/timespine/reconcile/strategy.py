"""
Reconciler strategies.

One interface, two implementations, chosen by an explicit
:class:`~timespine.core.settings.UpdateMode` value:

- ``native``: plan in-process and commit through ``run_in_transaction``,
  one timeline at a time.
- ``set``: hand the whole batch to the store's ``bulk_reconcile``, which
  prefetches every affected timeline at once and reconciles inside the
  store.

Both produce identical history for identical input.

Examples:
    >>> reconciler = build_reconciler("set")
    >>> reconciler.mode
    <UpdateMode.SET: 'set'>
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from timespine.core.errors import ConfigError
from timespine.core.logging import get_logger
from timespine.core.settings import UpdateMode
from timespine.core.temporal import Fact
from timespine.reconcile.batch import BatchStats, apply_facts, fact_to_payload

if TYPE_CHECKING:
    from timespine.storage.protocols import TimelineStore

logger = get_logger(__name__)


@runtime_checkable
class Reconciler(Protocol):
    """Applies validated facts to a store."""

    mode: UpdateMode

    def apply(self, store: TimelineStore, fact: Fact) -> BatchStats:
        """Reconcile a single fact atomically.

        Raises :class:`TimelineNotFoundError` if the timeline is empty when
        the transaction reads it.
        """
        ...

    def apply_batch(
        self,
        store: TimelineStore,
        facts: Sequence[Fact],
        *,
        latest_transactions: bool = False,
    ) -> BatchStats:
        """Reconcile *facts* in order, all in one transaction."""
        ...


class NativeReconciler:
    """In-process planning through a store transaction."""

    mode = UpdateMode.NATIVE

    def apply(self, store: TimelineStore, fact: Fact) -> BatchStats:
        return store.run_in_transaction(
            lambda txn: apply_facts(txn, [fact], create_missing=False)
        )

    def apply_batch(
        self,
        store: TimelineStore,
        facts: Sequence[Fact],
        *,
        latest_transactions: bool = False,
    ) -> BatchStats:
        return store.run_in_transaction(
            lambda txn: apply_facts(txn, facts, latest_transactions=latest_transactions)
        )


class SetReconciler:
    """Delegates to the store's set-oriented ``bulk_reconcile``."""

    mode = UpdateMode.SET

    def apply(self, store: TimelineStore, fact: Fact) -> BatchStats:
        return store.bulk_reconcile([fact_to_payload(fact)], create_missing=False)

    def apply_batch(
        self,
        store: TimelineStore,
        facts: Sequence[Fact],
        *,
        latest_transactions: bool = False,
    ) -> BatchStats:
        payload = [fact_to_payload(fact) for fact in facts]
        return store.bulk_reconcile(payload, latest_transactions)


def build_reconciler(mode: UpdateMode | str = UpdateMode.NATIVE) -> Reconciler:
    """Return the reconciler for *mode*.

    Raises:
        ConfigError: *mode* is not a known update mode.
    """
    try:
        resolved = UpdateMode(mode)
    except ValueError as e:
        raise ConfigError(
            f"unknown update mode {mode!r}; expected one of "
            f"{', '.join(m.value for m in UpdateMode)}",
            cause=e,
        ) from e

    logger.debug("reconciler_selected", mode=resolved.value)
    if resolved is UpdateMode.SET:
        return SetReconciler()
    return NativeReconciler()


__all__ = ["NativeReconciler", "Reconciler", "SetReconciler", "build_reconciler"]
