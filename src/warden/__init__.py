"""Warden — email/password session core.

Issues, validates, caches, and revokes sessions across a durable store
(PostgreSQL via SQLAlchemy) and a volatile cache (Redis), and provides the
cryptographic primitives that make session tokens and cookies tamper-evident.
"""

__version__ = "0.1.0"
