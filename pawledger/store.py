"""
Document store used by the loyalty ledger and appointment services.

Exposes collection-addressed document operations over the SQLAlchemy models:

    store = DocumentStore()
    client = store.get_document('clients', 42)          # dict or None
    tx_id = store.add_document('loyalty_transactions', {...})
    store.update_document('clients', 42, {...}, expected_version=client['version'])
    rows = store.query_documents('loyalty_transactions',
                                 filters={'client_id': 42},
                                 order_by=['-created_at', '-id'], limit=20)

Writes outside `atomic()` commit immediately. Inside `atomic()` they are
flushed and committed together when the outermost block exits, or rolled back
if it raises. Database failures surface as StoreError.
"""
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from sqlalchemy import update, select
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db
from .models import Tenant, Client, Pet, Appointment, LoyaltyTransaction
from .utils.exceptions import StoreError, ConcurrencyConflictError, NotFoundError

logger = logging.getLogger(__name__)


COLLECTIONS = {
    'tenants': Tenant,
    'clients': Client,
    'pets': Pet,
    'appointments': Appointment,
    'loyalty_transactions': LoyaltyTransaction,
}

# Fields the store manages itself
_PROTECTED_FIELDS = {'id', 'version', 'created_at'}

_OPERATORS = {
    '==': lambda col, v: col == v,
    '!=': lambda col, v: col != v,
    '<': lambda col, v: col < v,
    '<=': lambda col, v: col <= v,
    '>': lambda col, v: col > v,
    '>=': lambda col, v: col >= v,
    'in': lambda col, v: col.in_(list(v)),
}

Filter = Tuple[str, str, Any]


class DocumentStore:
    """Collection/document view over the tenant database."""

    def __init__(self, session=None):
        self._session = session
        self._depth = 0

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    # ==================== Unit of work ====================

    @contextmanager
    def atomic(self):
        """
        Group writes into one database transaction.

        Nested blocks join the outermost one.
        """
        self._depth += 1
        outermost = self._depth == 1
        try:
            yield self
            if outermost:
                self.session.commit()
        except SQLAlchemyError as e:
            if outermost:
                self.session.rollback()
            logger.error(f"Store transaction rolled back: {e}")
            raise StoreError(f'Store transaction failed: {e}', original_error=e) from e
        except Exception:
            if outermost:
                self.session.rollback()
            raise
        finally:
            self._depth -= 1

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    def _finish_write(self) -> None:
        if self.in_transaction:
            self.session.flush()
        else:
            self.session.commit()

    # ==================== Reads ====================

    def get_document(self, collection: str, doc_id) -> Optional[Dict[str, Any]]:
        """Fetch one document by id, or None if it does not exist."""
        model = self._model(collection)
        try:
            obj = self.session.get(model, doc_id, populate_existing=True)
        except SQLAlchemyError as e:
            raise StoreError(f'Failed to read {collection}/{doc_id}: {e}', original_error=e) from e
        return obj.to_dict() if obj is not None else None

    def query_documents(
        self,
        collection: str,
        filters: Union[Dict[str, Any], Iterable[Filter], None] = None,
        order_by: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Query a collection.

        Args:
            filters: {field: value} equality map, or (field, op, value) triples
                     with op in ==, !=, <, <=, >, >=, in
            order_by: Field names; prefix with '-' for descending
            limit: Maximum number of documents

        Returns:
            Matching documents in the requested order
        """
        model = self._model(collection)
        stmt = select(model)

        for field, op, value in self._normalize_filters(filters):
            column = self._column(model, field)
            if op not in _OPERATORS:
                raise StoreError(f'Unsupported filter operator: {op}')
            stmt = stmt.where(_OPERATORS[op](column, value))

        for field in order_by or []:
            descending = field.startswith('-')
            column = self._column(model, field.lstrip('-'))
            stmt = stmt.order_by(column.desc() if descending else column.asc())

        if limit is not None:
            stmt = stmt.limit(limit)

        try:
            rows = self.session.execute(
                stmt.execution_options(populate_existing=True)
            ).scalars().all()
        except SQLAlchemyError as e:
            raise StoreError(f'Failed to query {collection}: {e}', original_error=e) from e
        return [row.to_dict() for row in rows]

    # ==================== Writes ====================

    def add_document(self, collection: str, data: Dict[str, Any]) -> int:
        """Insert a document and return its generated id."""
        model = self._model(collection)
        self._check_fields(model, data)
        obj = model(**data)
        try:
            self.session.add(obj)
            self._finish_write()
        except SQLAlchemyError as e:
            if not self.in_transaction:
                self.session.rollback()
            raise StoreError(f'Failed to add to {collection}: {e}', original_error=e) from e
        return obj.id

    def update_document(
        self,
        collection: str,
        doc_id,
        data: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> None:
        """
        Apply a partial update to a document.

        When `expected_version` is given the write only applies if the stored
        version still matches; otherwise ConcurrencyConflictError is raised.
        Versioned collections get their version bumped on every update.

        Raises:
            NotFoundError: Document does not exist
            ConcurrencyConflictError: Version mismatch
            StoreError: Database failure
        """
        model = self._model(collection)
        self._check_fields(model, data)

        values = dict(data)
        stmt = update(model).where(model.id == doc_id)
        if hasattr(model, 'version'):
            values['version'] = model.version + 1
            if expected_version is not None:
                stmt = stmt.where(model.version == expected_version)

        try:
            result = self.session.execute(
                stmt.values(**values).execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                exists = self.session.execute(
                    select(model.id).where(model.id == doc_id)
                ).first() is not None
                if not exists:
                    raise NotFoundError(model.__name__, doc_id)
                raise ConcurrencyConflictError(collection, doc_id, expected_version)
            self._finish_write()
        except SQLAlchemyError as e:
            if not self.in_transaction:
                self.session.rollback()
            raise StoreError(f'Failed to update {collection}/{doc_id}: {e}', original_error=e) from e
        except (NotFoundError, ConcurrencyConflictError):
            if not self.in_transaction:
                self.session.rollback()
            raise

    # ==================== Helpers ====================

    @staticmethod
    def _model(collection: str):
        try:
            return COLLECTIONS[collection]
        except KeyError:
            raise StoreError(f'Unknown collection: {collection}')

    @staticmethod
    def _column(model, field: str):
        if field not in model.__table__.columns:
            raise StoreError(f'Unknown field {model.__tablename__}.{field}')
        return getattr(model, field)

    @staticmethod
    def _check_fields(model, data: Dict[str, Any]) -> None:
        columns = model.__table__.columns
        for field in data:
            if field not in columns or field in _PROTECTED_FIELDS:
                raise StoreError(f'Field not writable: {model.__tablename__}.{field}')

    @staticmethod
    def _normalize_filters(filters) -> List[Filter]:
        if not filters:
            return []
        if isinstance(filters, dict):
            return [(field, '==', value) for field, value in filters.items()]
        return list(filters)
