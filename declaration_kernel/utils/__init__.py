"""Utility modules for the declaration kernel."""

from declaration_kernel.utils.expiring_store import ExpiringTokenStore

__all__ = ["ExpiringTokenStore"]
