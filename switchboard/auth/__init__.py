"""Credential handling for switchboard"""

from .credentials import CredentialStore

__all__ = ["CredentialStore"]
