"""Infrastructure Layer — backend implementations, database sessions and logging.

Invariants:
    - Both AssignmentBackend implementations speak the portal's dict shapes
    - All external calls wrapped with retry/timeout/error mapping

Design Decisions:
    - SqlAssignmentBackend is authoritative; PortalClient adapts the legacy API
"""
