"""
Verified Remote Reads

Two-phase credential calls in the style of EIP-3668. A resolver that needs data
from another chain suspends with an OffchainLookup, the gateway returns values
and a proof, and the call resumes through the resolver's callback once the
proof has been checked.

Key Components:
- protocol.py: Call outcomes and the suspend/resume driver
- request.py: Storage probe requests and slot derivation
- gateway.py: HTTP gateway client following the URL template rules
- chain.py: Middleware chain for gateway requests (metrics, retries)
- verifier.py: Signed gateway response verification
"""
