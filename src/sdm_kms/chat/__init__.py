"""Multi-turn chat over the document set."""

from sdm_kms.chat.session import ChatSession, SessionBusyError, SessionManager, fingerprint

__all__ = ["ChatSession", "SessionBusyError", "SessionManager", "fingerprint"]
