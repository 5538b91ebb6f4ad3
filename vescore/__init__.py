"""Vault data model: users, vault items, sharing entries and event watches."""

__version__ = "1.32.0"
__all__ = ["util", "user", "vaultitem", "sharing", "watch"]