"""
Bookings Domain

Booking groups (one row per service, sharing client, barber, date and time),
availability checks and the status lifecycle.

- availability.py - busy intervals, conflict checks, slot enumeration
- repository.py   - queries and group-wide bulk updates
- service.py      - create, transition, comment, list, delete
- state.py        - allowed status transitions and group keys
- router.py       - HTTP endpoints
"""
