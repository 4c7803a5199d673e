"""
Interfaces and HTTP clients for the external services.

Defines the ledger and pinning Protocols the workflow depends on, and thin
requests-based clients for the ledger gateway and Pinata.
"""
