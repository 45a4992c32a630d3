# tests/test_transitions.py
from __future__ import annotations

import pytest

from tenancy_engine.domain.errors import InvalidStateTransition
from tenancy_engine.domain.transitions import (
    APPLICATION,
    CONTRACT,
    KEY_COLLECTION,
    VIEWING,
    can_transition,
)


def test_application_only_moves_out_of_pending():
    assert APPLICATION.next_state("pending", "accept") == "accepted"
    assert APPLICATION.next_state("pending", "reject") == "rejected"
    assert APPLICATION.next_state("pending", "withdraw") == "withdrawn"
    for decided in ("accepted", "rejected", "withdrawn"):
        for event in ("accept", "reject", "withdraw"):
            assert not APPLICATION.can_transition(decided, event)
    assert APPLICATION.terminal == {"accepted", "rejected", "withdrawn"}


def test_viewing_graph():
    assert VIEWING.can_transition("pending", "approve")
    assert VIEWING.can_transition("approved", "cancel")
    assert not VIEWING.can_transition("pending", "complete")
    assert not VIEWING.can_transition("completed", "cancel")
    assert VIEWING.terminal == {"rejected", "cancelled", "completed", "no_show"}


def test_contract_signing_order_is_fixed():
    assert not CONTRACT.can_transition("draft", "tenant_sign")
    assert CONTRACT.next_state("draft", "landlord_sign") == "sent_to_tenant"
    assert CONTRACT.next_state("sent_to_tenant", "tenant_sign") == "fully_signed"
    assert CONTRACT.next_state("fully_signed", "activate") == "active"
    assert not CONTRACT.can_transition("sent_to_tenant", "landlord_sign")


def test_contract_terminates_from_any_open_state():
    for s in ("draft", "sent_to_tenant", "fully_signed", "active"):
        assert CONTRACT.next_state(s, "terminate") == "terminated"
    assert not CONTRACT.can_transition("terminated", "terminate")
    assert CONTRACT.terminal == {"terminated"}


def test_key_collection_edits_stop_at_completed():
    assert KEY_COLLECTION.can_transition("scheduled", "reschedule")
    assert not KEY_COLLECTION.can_transition("confirmed", "reschedule")
    assert KEY_COLLECTION.can_transition("confirmed", "add_notes")
    assert not KEY_COLLECTION.can_transition("completed", "add_notes")
    assert not KEY_COLLECTION.can_transition("scheduled", "complete")
    assert KEY_COLLECTION.terminal == {"completed"}


def test_next_state_error_carries_current_state():
    with pytest.raises(InvalidStateTransition) as ei:
        CONTRACT.next_state("active", "tenant_sign", entity_id=7)
    err = ei.value
    assert err.current_state == "active"
    assert err.to_dict()["entity_id"] == "7"
    assert err.to_dict()["error"] == "invalid_state_transition"


def test_can_transition_by_machine_name():
    assert can_transition("Viewing", "approved", "no_show")
    with pytest.raises(KeyError):
        can_transition("Lease", "draft", "sign")
