"""Gate storage contract and in-memory backend."""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Collection
from typing import Any

from .exceptions import GateAlreadyDecidedError, GateConflictError, GateNotFoundError
from .models import Gate, GateStatus

logger = logging.getLogger(__name__)

ExpectedStatus = GateStatus | Collection[GateStatus] | None


def _status_matches(actual: GateStatus, expected: ExpectedStatus) -> bool:
    if expected is None:
        return True
    if isinstance(expected, GateStatus):
        return actual == expected
    return actual in expected


class GateStore(ABC):
    """Abstract base class for gate storage backends.

    ``update`` is the only write after creation. Backends must apply it
    atomically with the ``expected_status`` and ``expected_fields`` checks (a
    row-level transaction or a conditional update), so that two concurrent
    writers cannot both act on the same gate state.
    """

    @abstractmethod
    async def create(self, gate: Gate) -> Gate:
        """Persist a new gate.

        Args:
            gate: Gate to store. Its ``id`` must be unique.

        Returns:
            The stored gate.
        """

    @abstractmethod
    async def find_by_id(self, gate_id: str) -> Gate | None:
        """Load a gate by ID.

        Returns:
            The gate, or None if not found.
        """

    @abstractmethod
    async def find_pending_by_assignee(self, assigned_to: str) -> list[Gate]:
        """List open gates assigned to a person, oldest first."""

    @abstractmethod
    async def update(
        self,
        gate_id: str,
        updates: dict[str, Any],
        expected_status: ExpectedStatus = None,
        expected_fields: dict[str, Any] | None = None,
    ) -> Gate:
        """Apply field updates to a gate.

        Args:
            gate_id: Gate to update.
            updates: Field values to set.
            expected_status: When given, the update is applied only if the
                gate's current status is (one of) this.
            expected_fields: Field values the stored gate must still have
                for the update to apply.

        Returns:
            The updated gate.

        Raises:
            GateNotFoundError: If the gate does not exist.
            GateAlreadyDecidedError: If the status check fails.
            GateConflictError: If an expected field has changed.
        """


class InMemoryGateStore(GateStore):
    """Process-local gate store.

    Writes are serialised with an ``asyncio.Lock``; callers receive copies,
    never the stored objects.
    """

    def __init__(self) -> None:
        self._gates: dict[str, Gate] = {}
        self._lock = asyncio.Lock()

    async def create(self, gate: Gate) -> Gate:
        async with self._lock:
            if gate.id in self._gates:
                raise ValueError(f"Gate {gate.id} already exists")
            self._gates[gate.id] = gate.model_copy(deep=True)
        logger.debug("Created gate %s (%s)", gate.id, gate.gate_type.value)
        return gate.model_copy(deep=True)

    async def find_by_id(self, gate_id: str) -> Gate | None:
        gate = self._gates.get(gate_id)
        return gate.model_copy(deep=True) if gate is not None else None

    async def find_pending_by_assignee(self, assigned_to: str) -> list[Gate]:
        gates = [
            g.model_copy(deep=True)
            for g in self._gates.values()
            if g.assigned_to == assigned_to and g.is_open
        ]
        return sorted(gates, key=lambda g: g.created_at)

    async def update(
        self,
        gate_id: str,
        updates: dict[str, Any],
        expected_status: ExpectedStatus = None,
        expected_fields: dict[str, Any] | None = None,
    ) -> Gate:
        async with self._lock:
            current = self._gates.get(gate_id)
            if current is None:
                raise GateNotFoundError(gate_id)
            if not _status_matches(current.status, expected_status):
                raise GateAlreadyDecidedError(gate_id, current.status.value)
            for field, value in (expected_fields or {}).items():
                if getattr(current, field) != value:
                    raise GateConflictError(gate_id, field)

            updated = Gate.model_validate({**current.model_dump(), **updates})
            self._gates[gate_id] = updated
            return updated.model_copy(deep=True)

    def __len__(self) -> int:
        return len(self._gates)
