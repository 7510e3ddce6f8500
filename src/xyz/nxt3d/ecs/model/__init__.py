"""
Database Models

SQLAlchemy ORM models for the persistent state of the credential service.

Key Models:
- base.py: Declarative base with address, digest and timestamp column types
- namespaces.py: Commitments, registered namespaces and sub-namespace bindings
- credentials.py: Values stored by local credential resolvers
- events.py: Append-only log of registry and resolver changes

Relationships:
- Namespace: owned label keyed by namehash, bound to at most one resolver
- ResolverBinding: deeper namespace path bound under a registered root label
- CredentialRecord: value a resolver answers for an identifier and key
- RegistryEvent: observation of a registration, rebind, removal or key update

All timestamps are unix seconds and are compared against an injected clock,
never swept in the background.
"""
