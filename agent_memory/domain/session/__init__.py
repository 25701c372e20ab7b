from .session_manager import SessionManager
from .session_store import FileSessionStore, InMemorySessionStore, SessionStore

__all__ = ["SessionManager", "FileSessionStore", "InMemorySessionStore", "SessionStore"]
