import logging
from collections import deque
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from goldledger.exceptions import WriteError
from goldledger.ledger import Sale, parse_timestamp, sale_from_document, sort_snapshot
from goldledger.models import DOCUMENT_KEYS, Sale as SaleRow

log = logging.getLogger(__name__)

Snapshot = Tuple[Sale, ...]


class Subscription:
    """
    Live view of one owner's sales.

    The store pushes a full, newest-first snapshot on subscribe and after every
    create/delete for the owner. A new snapshot supersedes the previous one,
    so only the newest undelivered snapshot is kept; there is no diffing.
    """

    def __init__(self, store, owner_id):
        self.owner_id = owner_id
        self.latest: Snapshot = ()
        self.closed = False
        self._store = store
        self._pending = deque(maxlen=1)

    def _deliver(self, snapshot: Snapshot):
        self.latest = snapshot
        self._pending.append(snapshot)

    def __iter__(self):
        while self._pending:
            yield self._pending.popleft()

    def close(self):
        if not self.closed:
            self._store._detach(self)
            self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class SaleStore:
    def __init__(self, db):
        self.db = db
        self._subscribers: Dict[int, List[Subscription]] = {}

    # -----------------------
    # Reads
    # -----------------------
    def snapshot(self, owner_id) -> Snapshot:
        rows = SaleRow.query.filter_by(owner_id=owner_id).all()
        return sort_snapshot(sale_from_document(row.to_document()) for row in rows)

    def get(self, owner_id, sale_id) -> Optional[Sale]:
        row = SaleRow.query.filter_by(id=sale_id, owner_id=owner_id).first()
        return sale_from_document(row.to_document()) if row else None

    def subscribe(self, owner_id) -> Subscription:
        subscription = Subscription(self, owner_id)
        self._subscribers.setdefault(owner_id, []).append(subscription)
        subscription._deliver(self.snapshot(owner_id))
        return subscription

    def _detach(self, subscription):
        subs = self._subscribers.get(subscription.owner_id, [])
        if subscription in subs:
            subs.remove(subscription)
        if not subs:
            self._subscribers.pop(subscription.owner_id, None)

    def _publish(self, owner_id):
        subs = self._subscribers.get(owner_id)
        if not subs:
            return
        snapshot = self.snapshot(owner_id)
        for subscription in list(subs):
            subscription._deliver(snapshot)

    # -----------------------
    # Writes
    # -----------------------
    def create(self, owner_id, fields, timestamp: Optional[datetime] = None) -> str:
        row = SaleRow(owner_id=owner_id, **fields)
        if timestamp is not None:
            row.timestamp = timestamp

        try:
            self.db.session.add(row)
            self.db.session.commit()
        except SQLAlchemyError as e:
            self.db.session.rollback()
            log.exception("Saving sale for owner %s failed", owner_id)
            raise WriteError("Failed to save sale.") from e

        log.info("Sale %s saved for owner %s (%s)", row.id, owner_id, row.item_name)
        self._publish(owner_id)
        return row.id

    def delete(self, owner_id, sale_id):
        row = SaleRow.query.filter_by(id=sale_id, owner_id=owner_id).first()
        if row is None:
            log.warning("Owner %s tried to delete unknown sale %s", owner_id, sale_id)
            raise WriteError("Sale not found.")

        try:
            self.db.session.delete(row)
            self.db.session.commit()
        except SQLAlchemyError as e:
            self.db.session.rollback()
            log.exception("Deleting sale %s failed", sale_id)
            raise WriteError("Failed to delete sale.") from e

        log.info("Sale %s deleted by owner %s", sale_id, owner_id)
        self._publish(owner_id)

    def import_documents(self, owner_id, documents: Iterable[dict]) -> int:
        """Store exported documents as they are. Legacy rows stay legacy."""
        count = 0
        try:
            for doc in documents:
                row = SaleRow(
                    owner_id=owner_id,
                    customer_name=str(doc.get("customerName") or ""),
                    customer_phone=str(doc.get("customerPhone") or ""),
                    item_name=str(doc.get("itemName") or ""),
                    huid=str(doc.get("huid") or ""),
                    notes=str(doc.get("notes") or ""),
                    timestamp=parse_timestamp(doc.get("timestamp")),
                )
                if doc.get("id"):
                    row.id = str(doc["id"])
                for column, key in DOCUMENT_KEYS.items():
                    value = doc.get(key)
                    if isinstance(value, (int, float)) and not isinstance(value, bool):
                        setattr(row, column, Decimal(str(value)))
                self.db.session.add(row)
                count += 1
            self.db.session.commit()
        except SQLAlchemyError as e:
            self.db.session.rollback()
            log.exception("Importing sales for owner %s failed", owner_id)
            raise WriteError("Failed to import sales.") from e

        log.info("Imported %d sales for owner %s", count, owner_id)
        self._publish(owner_id)
        return count
