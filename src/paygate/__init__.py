"""Payment provider callback reconciliation."""

__version__ = "0.1.0"
