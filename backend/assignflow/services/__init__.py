"""Services Layer — async use cases over the AssignmentBackend protocol.

Invariants:
    - Services never import a concrete backend (infrastructure/)
    - Every backend acknowledgement passes through core.envelope.interpret_ack

Design Decisions:
    - One service per workflow concern: orchestration, rejection, ledger, capacity
"""
