"""ORM Models — SQLAlchemy declarative models for the assignment workflow.

Invariants:
    - All models inherit from Base (db/base.py)
    - RequestAsignation is the aggregate root; messages are scoped by request_id

Design Decisions:
    - One file per entity
    - All models imported here so SQLAlchemy resolves string-based relationship()
      references before any query runs
"""

from assignflow.models.knowledge_area import KnowledgeArea  # noqa: F401
from assignflow.models.instructor import Instructor  # noqa: F401
from assignflow.models.request_asignation import RequestAsignation  # noqa: F401
from assignflow.models.request_message import RequestMessage  # noqa: F401
