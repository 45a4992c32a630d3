# tenancy_engine/domain/transitions.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .errors import InvalidStateTransition

# -----------------------------------------------------------------------------
# Lifecycle transition tables
# -----------------------------------------------------------------------------
# One table per record. Keys are (current_state, event) and values are the
# resulting state. Anything not listed is illegal. Services call next_state()
# before writing; nothing else decides whether a move is allowed.
#
# Ownership (who may fire an event) is checked by the services, not here:
# these predicates are pure and need no database.
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Machine:
    name: str
    initial: str
    transitions: Dict[Tuple[str, str], str]

    @property
    def states(self) -> set[str]:
        out = {self.initial}
        for (src, _event), dst in self.transitions.items():
            out.add(src)
            out.add(dst)
        return out

    @property
    def terminal(self) -> set[str]:
        sources = {src for (src, _event) in self.transitions}
        return {s for s in self.states if s not in sources}

    def can_transition(self, current: str, event: str) -> bool:
        return (current, event) in self.transitions

    def next_state(
        self,
        current: str,
        event: str,
        *,
        entity_id: Optional[int] = None,
    ) -> str:
        dst = self.transitions.get((current, event))
        if dst is None:
            raise InvalidStateTransition(
                f"{self.name} cannot '{event}' from '{current}'",
                entity_type=self.name,
                entity_id=entity_id,
                current_state=current,
            )
        return dst


APPLICATION = Machine(
    name="Application",
    initial="pending",
    transitions={
        ("pending", "accept"): "accepted",
        ("pending", "reject"): "rejected",
        ("pending", "withdraw"): "withdrawn",
    },
)

VIEWING = Machine(
    name="Viewing",
    initial="pending",
    transitions={
        ("pending", "approve"): "approved",
        ("pending", "reject"): "rejected",
        ("pending", "cancel"): "cancelled",
        ("approved", "complete"): "completed",
        ("approved", "no_show"): "no_show",
        ("approved", "cancel"): "cancelled",
    },
)

CONTRACT = Machine(
    name="Contract",
    initial="draft",
    transitions={
        ("draft", "landlord_sign"): "sent_to_tenant",
        ("sent_to_tenant", "tenant_sign"): "fully_signed",
        ("fully_signed", "activate"): "active",
        ("draft", "terminate"): "terminated",
        ("sent_to_tenant", "terminate"): "terminated",
        ("fully_signed", "terminate"): "terminated",
        ("active", "terminate"): "terminated",
    },
)

# "confirm" is the derived move taken once both parties have confirmed.
# Self-loops list the edits allowed without a status change.
KEY_COLLECTION = Machine(
    name="KeyCollection",
    initial="scheduled",
    transitions={
        ("scheduled", "confirm"): "confirmed",
        ("confirmed", "complete"): "completed",
        ("scheduled", "reschedule"): "scheduled",
        ("scheduled", "add_notes"): "scheduled",
        ("confirmed", "add_notes"): "confirmed",
    },
)

MACHINES: Dict[str, Machine] = {
    m.name: m for m in (APPLICATION, VIEWING, CONTRACT, KEY_COLLECTION)
}

# Contract states that still hold the property for one tenancy.
OPEN_CONTRACT_STATES = ("draft", "sent_to_tenant", "fully_signed", "active")


def can_transition(machine: str, current: str, event: str) -> bool:
    m = MACHINES.get(machine)
    if m is None:
        raise KeyError(f"unknown machine: {machine}")
    return m.can_transition(current, event)
