"""
Listings application.

Holds the marketplace Item. Only the fields the payment core depends on
(seller, price, quantity, status) live here; search and browsing are
handled elsewhere.

Usage:
    from listings.models import Item, ItemStatus
"""
