"""
Feature modules live under this package.

Each module owns its models, service layer and blueprint, and reuses the platform
primitives (auth, audit, notifications, DB session).
"""
