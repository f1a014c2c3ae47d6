"""
Listings application.

Property listings are owned by the catalogue service; this app keeps the
slice of a listing the billing engine reads and writes: its owner and
its featured placement.

Usage:
    from listings.models import Listing
"""
