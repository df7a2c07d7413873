"""
Registry Kernel - approval workflow core for union registration review.

Provides:
- Sequential multi-authority approval chains
- A validation-issue ledger for ingested submissions
- Submission review coordination with per-instance serialization
"""

__version__ = "0.1.0"
