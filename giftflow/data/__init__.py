"""
Checkpoint storage and the in-memory views over it.

CSV reading and atomic writing, the beneficiary DataTable and the single-row
class and batch records.
"""
