"""Authentication session management."""

from .auth_flow import AuthFlow, AuthForm, AuthMode
from .manager import QuotaSummary, Session, SessionManager

__all__ = ["AuthFlow", "AuthForm", "AuthMode", "QuotaSummary", "Session", "SessionManager"]
