"""
Bus terminal core: reservations, routes and passengers.

The package manages bus-terminal operations through a small set of
storage-backed services:
1. Stop Catalog and Route Graph Builder (ordered stop chains, built atomically)
2. Flight Scheduler (route + timing + capacity, occupancy always derived)
3. Passenger Registry (race-safe get-or-create by identity document)
4. Reservation Engine (seat tickets with a booking -> sale/cancellation lifecycle)
5. Reporting Aggregator (read-only sales and status views)
"""

__version__ = "0.1.0"
