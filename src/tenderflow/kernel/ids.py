"""
Identifier generation

Tender, bid and event ids are UUIDv7-style strings: the leading 48 bits carry
the millisecond timestamp, so ids sort in creation order, which keeps
`ORDER BY event_id` and bid listings stable.
"""

import secrets
import time


def generate_id() -> str:
    """
    Generate a time-ordered UUID string

    Returns:
        36-character UUID string (e.g. "01908e9a-3b87-7000-8000-123456789abc")
    """
    timestamp_ms = int(time.time() * 1000) & 0xFFFFFFFFFFFF
    rand_a = secrets.randbits(12)
    rand_b = secrets.randbits(62)

    value = (timestamp_ms << 80) | (0x7 << 76) | (rand_a << 64) | (0b10 << 62) | rand_b
    hex_str = f"{value:032x}"
    return f"{hex_str[:8]}-{hex_str[8:12]}-{hex_str[12:16]}-{hex_str[16:20]}-{hex_str[20:]}"


def bidder_stream_id(tender_id: str, company_id: str) -> str:
    """
    Stream holding every bid event of one company on one tender

    Draft uniqueness and withdrawal permanence both hang off this id: two
    racing writers for the same pair collide on the same stream version.
    """
    return f"bidder:{tender_id}:{company_id}"
