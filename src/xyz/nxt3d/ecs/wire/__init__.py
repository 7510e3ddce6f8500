"""
Wire Names

DNS wire-format encoding and decoding, ENS namehash computation, and the
marker scan that pulls the queried identity out of a wildcard name.

Query shapes:
1. Name based: `<identity name>.name.<namespace>.eth`
2. Address based: `<hex address>.<hex coin type>.addr.<namespace>.eth`
"""
