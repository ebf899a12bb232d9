"""Venues app package.

Venues are the bookable spaces: each one carries its timezone, guest
capacity, hourly rate schedule and weekly opening hours, plus the blocked
periods its owner has taken out of sale. The reservation engine reads
them through ``Venue.to_domain``.
"""
