"""
Tenderflow - Event-sourced tender and bid workflow

Runs procurement tenders from draft to award or expiry, keeps every company
to at most one bid per tender, and ranks submitted bids with a deterministic,
explainable score.

Fun fact: Sealed two-envelope bidding (technical first, financial second)
dates back to public works contracting long before spreadsheets; here both
envelopes are simply lists of documents that must both be non-empty.
"""

from tenderflow.flow import Tenderflow
from tenderflow.kernel.actors import Actor, Role

__version__ = "0.1.0"
__all__ = ["Tenderflow", "Actor", "Role", "__version__"]
