"""
Unit tests for the in-memory form session store.
"""

import time

from formlogic.core.form_logic import FormLogicState
from formlogic.core.session import SessionStore


class TestSessionStore:
    def test_create_and_get(self):
        store = SessionStore()
        state = FormLogicState("contact")
        form_instance_id, session = store.create_session(state)
        assert store.get_session(form_instance_id) is session
        assert session.state is state

    def test_custom_id(self):
        store = SessionStore()
        form_instance_id, _ = store.create_session(FormLogicState(), "mine")
        assert form_instance_id == "mine"

    def test_missing(self):
        assert SessionStore().get_session("nope") is None

    def test_delete(self):
        store = SessionStore()
        form_instance_id, _ = store.create_session(FormLogicState())
        assert store.delete_session(form_instance_id) is True
        assert store.delete_session(form_instance_id) is False
        assert store.count() == 0

    def test_expired_session_dropped(self):
        store = SessionStore(timeout_seconds=60)
        form_instance_id, session = store.create_session(FormLogicState())
        session.last_accessed_at = time.time() - 120
        assert store.get_session(form_instance_id) is None
        assert store.count() == 0

    def test_cleanup_expired(self):
        store = SessionStore(timeout_seconds=60)
        _, stale = store.create_session(FormLogicState())
        store.create_session(FormLogicState())
        stale.last_accessed_at = time.time() - 120
        assert store.cleanup_expired() == 1
        assert store.count() == 1
