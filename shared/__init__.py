"""
Shared kernel of the venue reservations service.

Domain building blocks, value objects (Money, Interval), the error
taxonomy, the unit of work and message bus, and small HTTP helpers used
by every app.
"""
