"""
Service Registry - connection registry for a SAML federation

This package contains the Service Registry backend:
- metadata: Metadata definition catalog and flatten/unflatten codec
- connections: Connection drafts, revision service, listing assembly
- storage: Database adapter, ORM models and the revision store
- auth: Authentication providers resolving the acting user
- api: FastAPI REST endpoints
- platform: Cross-cutting concerns (config, logging)
"""

__version__ = "0.1.0"
