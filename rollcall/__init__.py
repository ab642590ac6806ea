"""Event check-in service: state, moderation, QR tokens and audit trail."""

__version__ = "1.0.0"
