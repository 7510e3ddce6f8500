"""
ECS - Ethereum Credential Service

This package resolves credentials attached to identities through wildcard
names. A namespace owner registers a label with commit-reveal and binds it to a
credential resolver. Queries such as `vitalik.eth.name.name-stars.eth` with the
key `eth.ecs.name-stars.starts:vitalik.eth` are routed to that resolver, which
answers from local records or through a verified remote read.

Key Components:
- wire: DNS wire-format names, namehash and marker extraction
- registry: Commit-reveal namespace admission, ownership and expiry
- resolve: Key matching and the resolution entry point
- ccip: Suspend/resume remote reads, gateway client and proof verification
- resolvers: Local and offchain credential resolvers
- model: Database models for registry and resolver state
- app: aiohttp web service exposing read-only resolution endpoints
"""
