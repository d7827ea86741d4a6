from __future__ import annotations

import json

import pytest

from pywabridge.state.events import ConnectionPhase
from pywabridge.state.store import StateSnapshot, StateStore


def test_initial_snapshot_is_disconnected_and_empty() -> None:
    snapshot = StateStore().snapshot()

    assert snapshot == StateSnapshot(phase=ConnectionPhase.DISCONNECTED, challenge=None, account=None)


def test_awaiting_challenge_requires_challenge() -> None:
    store = StateStore()

    with pytest.raises(ValueError):
        store.set_phase(ConnectionPhase.AWAITING_CHALLENGE)

    # Rejected calls must leave the previous state untouched.
    assert store.phase is ConnectionPhase.DISCONNECTED


def test_connected_requires_account_and_rejects_challenge() -> None:
    store = StateStore()

    with pytest.raises(ValueError):
        store.set_phase(ConnectionPhase.CONNECTED)
    with pytest.raises(ValueError):
        store.set_phase(ConnectionPhase.CONNECTED, account="Alice (+1)", challenge="qr")


def test_disconnected_rejects_payload() -> None:
    store = StateStore()

    with pytest.raises(ValueError):
        store.set_phase(ConnectionPhase.DISCONNECTED, account="Alice (+1)")
    with pytest.raises(ValueError):
        store.set_phase(ConnectionPhase.DISCONNECTED, challenge="qr")


def test_connected_clears_challenge() -> None:
    store = StateStore()
    store.set_phase(ConnectionPhase.AWAITING_CHALLENGE, challenge="qr-1")

    snapshot = store.set_phase(ConnectionPhase.CONNECTED, account="Alice (+15551230000)")

    assert snapshot.challenge is None
    assert snapshot.account == "Alice (+15551230000)"
    assert store.snapshot() is snapshot


def test_new_challenge_replaces_previous() -> None:
    store = StateStore()
    store.set_phase(ConnectionPhase.AWAITING_CHALLENGE, challenge="qr-1")
    store.set_phase(ConnectionPhase.AWAITING_CHALLENGE, challenge="qr-2")

    assert store.snapshot().challenge == "qr-2"


def test_disconnected_clears_challenge_and_account() -> None:
    store = StateStore()
    store.set_phase(ConnectionPhase.CONNECTED, account="Alice (+15551230000)")

    snapshot = store.set_phase(ConnectionPhase.DISCONNECTED)

    assert snapshot.challenge is None
    assert snapshot.account is None


def test_snapshot_decomposes_into_wire_events() -> None:
    snapshot = StateSnapshot(phase=ConnectionPhase.CONNECTED, account="Alice (+15551230000)")

    frames = [json.loads(event.to_json()) for event in snapshot.to_wire_events()]

    assert frames == [
        {"kind": "phase", "value": "connected"},
        {"kind": "challenge", "value": None},
        {"kind": "account", "value": "Alice (+15551230000)"},
    ]
