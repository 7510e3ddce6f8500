"""
Namespace Registry

Commit-reveal admission of namespace labels, resolver bindings, ownership and
expiration checks.
"""
