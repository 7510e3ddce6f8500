"""
Credential Resolution

Selects the credential resolver for a key and drives a resolution call from
the wire name to the final value.
"""
