"""
In-memory store of live form instances.

Each session holds the FormLogicState of one rendered form. Sessions
are created when a form is opened and dropped after an idle timeout.
Nothing is persisted.
"""

import threading
import time
import uuid

from formlogic.core.form_logic import FormLogicState


# Default session timeout: 30 minutes
DEFAULT_SESSION_TIMEOUT_SECONDS = 30 * 60


class Session:
    """A single live form instance."""

    def __init__(self, state: FormLogicState):
        self.state: FormLogicState = state
        self.created_at: float = time.time()
        self.last_accessed_at: float = time.time()

    def touch(self) -> None:
        """Update the last accessed timestamp."""
        self.last_accessed_at = time.time()

    def is_expired(self, timeout_seconds: int = DEFAULT_SESSION_TIMEOUT_SECONDS) -> bool:
        """Check if the session has expired."""
        return (time.time() - self.last_accessed_at) > timeout_seconds


class SessionStore:
    """Thread-safe in-memory store of form sessions."""

    def __init__(self, timeout_seconds: int = DEFAULT_SESSION_TIMEOUT_SECONDS):
        self._sessions: dict[str, Session] = {}
        self._timeout_seconds = timeout_seconds
        self._lock = threading.RLock()

    def create_session(
        self,
        state: FormLogicState,
        form_instance_id: str | None = None,
    ) -> tuple[str, Session]:
        """Store a started form state under a new (or given) instance ID.

        Returns:
            Tuple of (form_instance_id, Session).
        """
        if form_instance_id is None:
            form_instance_id = str(uuid.uuid4())

        session = Session(state)
        with self._lock:
            self._sessions[form_instance_id] = session
        return form_instance_id, session

    def get_session(self, form_instance_id: str) -> Session | None:
        """Retrieve a session, or None if it doesn't exist or has expired."""
        with self._lock:
            session = self._sessions.get(form_instance_id)
            if session is None:
                return None

            if session.is_expired(self._timeout_seconds):
                del self._sessions[form_instance_id]
                return None

        session.touch()
        return session

    def delete_session(self, form_instance_id: str) -> bool:
        """Delete a session. Returns True if it existed."""
        with self._lock:
            return self._sessions.pop(form_instance_id, None) is not None

    def cleanup_expired(self) -> int:
        """Remove all expired sessions. Returns the count of removed sessions."""
        with self._lock:
            expired = [
                sid for sid, session in self._sessions.items()
                if session.is_expired(self._timeout_seconds)
            ]
            for sid in expired:
                del self._sessions[sid]
        return len(expired)

    def count(self) -> int:
        """Return the number of active sessions."""
        with self._lock:
            return len(self._sessions)
