"""Credential verification helpers."""

from .identity import IdentityResolver, extract_credential

__all__ = ["IdentityResolver", "extract_credential"]
