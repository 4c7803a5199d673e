"""
giftflow: checkpointed, resumable NFT gift workflows.

Mints one NFT instance per row of a beneficiary CSV, pins its image and
metadata, and funds a freshly generated gift account, picking up where it left
off after any failure.
"""

__version__ = "0.1.0"
