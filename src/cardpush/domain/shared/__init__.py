"""Shared domain utilities.

This package is domain-accessible and should not depend on application code.
"""

from .credential_provider import CredentialProvider, TokenFetcher

__all__ = ["CredentialProvider", "TokenFetcher"]
