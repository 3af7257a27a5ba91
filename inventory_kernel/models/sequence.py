"""
Module: inventory_kernel.models.sequence
Responsibility: Named counter rows backing order number allocation.
Architecture position: Kernel > Models.  May import from db/ only.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row is a named sequence with its current value.  Row-level locking
    in SequenceService keeps allocation monotonic under concurrency.
    """

    __tablename__ = "sequence_counters"

    # Sequence name (e.g., "purchase_order", "sales_order")
    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
