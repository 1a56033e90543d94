import pytest

from mirror_relay.constants import ROLE_SOURCE, ROLE_VIEWER
from mirror_relay.services.errors import InvalidRole, SessionNotFound, TokenSpaceExhausted
from mirror_relay.services.session_store import SessionStore, counterpart_role


def test_create_starts_empty_and_is_retrievable(store, clock):
    session = store.create()

    assert session.created_at == clock.now
    assert session.source_connection_id is None
    assert session.viewer_connection_id is None
    assert store.get(session.token) is session
    assert session.token in store


def test_tokens_are_unique():
    store = SessionStore()
    tokens = {store.create().token for _ in range(500)}
    assert len(tokens) == 500
    assert len(store) == 500


def test_get_unknown_token_raises(store):
    with pytest.raises(SessionNotFound):
        store.get("does-not-exist")


def test_remove_is_idempotent(store):
    session = store.create()
    store.remove(session.token)
    store.remove(session.token)
    store.remove("never-existed")
    assert session.token not in store


def test_create_gives_up_when_tokens_keep_colliding(clock):
    store = SessionStore(clock=clock, token_factory=lambda: "same")
    store.create()
    with pytest.raises(TokenSpaceExhausted):
        store.create()


def test_sweep_respects_ttl(store, clock):
    session = store.create()
    ttl = 60 * 60

    assert store.sweep_expired(clock.now + 59 * 60, ttl) == []
    assert store.get(session.token) is session

    evicted = store.sweep_expired(clock.now + ttl + 0.001, ttl)
    assert evicted == [session]
    with pytest.raises(SessionNotFound):
        store.get(session.token)


def test_sweep_keeps_young_sessions(store, clock):
    old = store.create()
    clock.advance(30 * 60)
    young = store.create()

    store.sweep_expired(clock.now + 31 * 60, 60 * 60)

    assert old.token not in store
    assert young.token in store


def test_sweep_notifies_listeners_before_removal(store, clock):
    seen = []
    store.add_eviction_listener(lambda s: seen.append((s.token, s.token in store)))
    session = store.create()

    store.sweep_expired(clock.now + 7200, 3600)

    assert seen == [(session.token, True)]


def test_failing_listener_does_not_stop_sweep(store, clock):
    def boom(session):
        raise RuntimeError("listener failure")

    store.add_eviction_listener(boom)
    first, second = store.create(), store.create()

    evicted = store.sweep_expired(clock.now + 7200, 3600)

    assert {s.token for s in evicted} == {first.token, second.token}
    assert len(store) == 0


def test_role_slots(store):
    session = store.create()
    session.set_connection(ROLE_SOURCE, "c1")
    assert session.connection_for(ROLE_SOURCE) == "c1"
    assert session.connection_for(ROLE_VIEWER) is None
    assert not session.is_empty()

    with pytest.raises(InvalidRole):
        session.set_connection("spectator", "c2")


def test_counterpart_role():
    assert counterpart_role(ROLE_SOURCE) == ROLE_VIEWER
    assert counterpart_role(ROLE_VIEWER) == ROLE_SOURCE
    with pytest.raises(InvalidRole):
        counterpart_role("pc")


def test_sessions_snapshot(store):
    first, second = store.create(), store.create()
    snapshot = store.sessions()
    store.remove(first.token)

    assert snapshot == [first, second]
    assert store.sessions() == [second]
