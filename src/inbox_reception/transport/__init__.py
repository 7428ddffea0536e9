"""Transport adapters for the mail store and the auth provider."""

from .auth import TokenAuthProvider
from .gmail_client import GmailClient, LabelMutationError

__all__ = ["GmailClient", "LabelMutationError", "TokenAuthProvider"]
