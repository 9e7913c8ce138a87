"""Namespaced state tables with all-or-nothing transactions.

Every mutation goes through :meth:`Store.put`, :meth:`Store.delete` or
:meth:`Store.touch`. Inside a transaction the first touch of an entry saves
a deep copy of its prior value; if the transaction body raises, every saved
entry is restored before the exception propagates.
"""

import copy
import logging
import threading
from contextlib import contextmanager
from typing import Any, Hashable, Iterator

log = logging.getLogger(__name__)

CLAIMS = "claims"
DIDS = "dids"
HANDLES = "handles"
HANDLE_OWNERS = "handle_owners"
SOCIAL = "social"
ATTESTATIONS = "attestations"

TABLES = (CLAIMS, DIDS, HANDLES, HANDLE_OWNERS, SOCIAL, ATTESTATIONS)

_MISSING = object()


class Store:
    """In-memory tables guarded by one re-entrant lock."""

    def __init__(self):
        self._tables: dict[str, dict[Hashable, Any]] = {name: {} for name in TABLES}
        self._journal: dict[tuple[str, Hashable], Any] | None = None
        self.lock = threading.RLock()

    def get(self, table: str, key: Hashable, default: Any = None) -> Any:
        return self._tables[table].get(key, default)

    def contains(self, table: str, key: Hashable) -> bool:
        return key in self._tables[table]

    def items(self, table: str) -> list[tuple[Hashable, Any]]:
        return list(self._tables[table].items())

    def size(self, table: str) -> int:
        return len(self._tables[table])

    def _stage(self, table: str, key: Hashable) -> None:
        if self._journal is None or (table, key) in self._journal:
            return
        current = self._tables[table].get(key, _MISSING)
        self._journal[(table, key)] = current if current is _MISSING else copy.deepcopy(current)

    def put(self, table: str, key: Hashable, value: Any) -> None:
        self._stage(table, key)
        self._tables[table][key] = value

    def delete(self, table: str, key: Hashable) -> None:
        self._stage(table, key)
        self._tables[table].pop(key, None)

    def touch(self, table: str, key: Hashable) -> Any:
        """Return the stored record for in-place mutation.

        Raises:
            KeyError: No record under ``key``
        """
        self._stage(table, key)
        return self._tables[table][key]

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run a block atomically. Nested calls join the outer transaction."""
        with self.lock:
            if self._journal is not None:
                yield
                return

            self._journal = {}
            try:
                yield
            except BaseException:
                self._rollback()
                raise
            finally:
                self._journal = None

    def _rollback(self) -> None:
        log.debug("Rolling back %d staged entries", len(self._journal))
        for (table, key), previous in self._journal.items():
            if previous is _MISSING:
                self._tables[table].pop(key, None)
            else:
                self._tables[table][key] = previous
