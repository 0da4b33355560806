"""KnowledgeArea ORM — lookup table resolving area ids to names.

Invariants:
    - name is unique and non-nullable
"""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from assignflow.db.base import Base


class KnowledgeArea(Base):
    """Knowledge area an instructor belongs to."""
    __tablename__ = "knowledge_area"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
