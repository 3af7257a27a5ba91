"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Allocates strictly increasing numbers for purchase and sales order
    numbers (``PO-000001``, ``SO-000001``).  A dedicated counter table with
    row-level locking (``SELECT ... FOR UPDATE``) keeps allocation unique
    under concurrent access.

Architecture position:
    Kernel > Services.  Called by the purchase and sales order services.

Invariants enforced:
    - The locked counter row is the sole source of the next value; the
      aggregate-max-plus-one pattern is never used.
    - Transactional: a rolled-back allocation is returned to the sequence.

Failure modes:
    - IntegrityError on concurrent first use of a sequence name, handled by
      savepoint rollback and retry.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Transactional named counters.

    Non-goals:
        - Does NOT call ``session.commit()``; the caller controls boundaries.
    """

    PURCHASE_ORDER = "purchase_order"
    SALES_ORDER = "sales_order"

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Lock the counter row (creating it on first use), increment, return.

        Postconditions:
            - Returns an integer > 0 strictly greater than any previously
              committed value for this name.
            - The counter row stays locked until the transaction ends.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def next_document_number(self, sequence_name: str, prefix: str, width: int = 6) -> str:
        """Formatted document number, e.g. ``PO-000042``."""
        return f"{prefix}-{self.next_value(sequence_name):0{width}d}"

    def current_value(self, sequence_name: str) -> int | None:
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None
