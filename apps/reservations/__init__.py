"""Reservations app package.

This app holds the availability and reservation engine for venues:
free-slot computation, time-dependent pricing and the conflict-free
reservation commit. Double booking is prevented by locking the venue row
and advancing its reservation version inside a single transaction.
"""
