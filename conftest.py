# conftest.py
"""
Shared pytest fixtures.

FakeFirestore is an in-memory stand-in for the parts of the Firestore client the
portal uses: documents, simple queries, write batches, optimistic transactions,
create() conflicts and snapshot listeners.
"""

import copy
import itertools
import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from flask_jwt_extended import create_access_token
from google.api_core.exceptions import Aborted, AlreadyExists, NotFound

from portal import create_app

_BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeSnapshot:
    def __init__(self, reference, data, update_time=None):
        self.reference = reference
        self.id = reference.id
        self._data = data
        self.update_time = update_time

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeDocumentReference:
    def __init__(self, db, collection_name, doc_id):
        self._db = db
        self._collection = collection_name
        self.id = doc_id

    @property
    def _store(self):
        return self._db._data.setdefault(self._collection, {})

    def get(self, transaction=None):
        entry = self._store.get(self.id)
        if transaction is not None:
            transaction._record_read(self, entry['update_time'] if entry else None)
        if entry is None:
            return FakeSnapshot(self, None)
        return FakeSnapshot(self, entry['data'], entry['update_time'])

    def set(self, data, merge=False):
        existing = self._store.get(self.id)
        if merge and existing:
            merged = copy.deepcopy(existing['data'])
            merged.update(copy.deepcopy(data))
            data = merged
        self._store[self.id] = {'data': copy.deepcopy(data), 'update_time': self._db._tick()}

    def create(self, data):
        if self.id in self._store:
            raise AlreadyExists(f"Document already exists: {self._collection}/{self.id}")
        self.set(data)

    def update(self, data):
        entry = self._store.get(self.id)
        if entry is None:
            raise NotFound(f"No document to update: {self._collection}/{self.id}")
        entry['data'].update(copy.deepcopy(data))
        entry['update_time'] = self._db._tick()

    def delete(self):
        self._store.pop(self.id, None)


class FakeQuery:
    _OPS = {
        '==': lambda a, b: a == b,
        '!=': lambda a, b: a != b,
        '<': lambda a, b: a < b,
        '<=': lambda a, b: a <= b,
        '>': lambda a, b: a > b,
        '>=': lambda a, b: a >= b,
        'in': lambda a, b: a in b,
        'not-in': lambda a, b: a not in b,
        'array_contains': lambda a, b: isinstance(a, list) and b in a,
    }

    def __init__(self, db, collection_name, filters=(), orders=(), limit_to=None):
        self._db = db
        self._collection = collection_name
        self._filters = tuple(filters)
        self._orders = tuple(orders)
        self._limit = limit_to

    def where(self, field, op, value):
        return FakeQuery(self._db, self._collection, self._filters + ((field, op, value),), self._orders, self._limit)

    def order_by(self, field, direction='ASCENDING'):
        return FakeQuery(self._db, self._collection, self._filters, self._orders + ((field, direction),), self._limit)

    def limit(self, count):
        return FakeQuery(self._db, self._collection, self._filters, self._orders, count)

    def _matches(self, data):
        for field, op, value in self._filters:
            if field not in data:
                return False
            if not self._OPS[op](data[field], value):
                return False
        return True

    def stream(self):
        store = self._db._data.get(self._collection, {})
        rows = [(doc_id, entry) for doc_id, entry in store.items() if self._matches(entry['data'])]
        for field, direction in reversed(self._orders):
            rows = [r for r in rows if field in r[1]['data']]
            rows.sort(key=lambda r: r[1]['data'][field], reverse=(direction == 'DESCENDING'))
        if self._limit is not None:
            rows = rows[:self._limit]
        for doc_id, entry in rows:
            ref = FakeDocumentReference(self._db, self._collection, doc_id)
            yield FakeSnapshot(ref, entry['data'], entry['update_time'])

    def get(self):
        return list(self.stream())


class FakeCollection(FakeQuery):
    def __init__(self, db, name):
        super().__init__(db, name)
        self.id = name

    def document(self, doc_id=None):
        return FakeDocumentReference(self._db, self._collection, doc_id or uuid.uuid4().hex)

    def on_snapshot(self, callback):
        self._db.listeners.setdefault(self._collection, []).append(callback)
        return SimpleNamespace(unsubscribe=lambda: self._db.listeners[self._collection].remove(callback))


class FakeWriteBatch:
    def __init__(self, db):
        self._db = db
        self._ops = []

    def set(self, ref, data, merge=False):
        self._ops.append(lambda: ref.set(data, merge=merge))

    def create(self, ref, data):
        self._ops.append(lambda: ref.create(data))

    def update(self, ref, data):
        self._ops.append(lambda: ref.update(data))

    def delete(self, ref):
        self._ops.append(ref.delete)

    def commit(self):
        if self._db.fail_batches:
            raise RuntimeError("batch commit failed")
        for op in self._ops:
            op()
        self._db.committed_batches.append(len(self._ops))
        return []


class FakeTransaction(FakeWriteBatch):
    """
    Optimistic transaction: documents read through it must be unchanged at
    commit, otherwise the commit raises Aborted and `firestore.transactional`
    runs the function again.
    """
    def __init__(self, db, max_attempts=5):
        super().__init__(db)
        self._max_attempts = max_attempts
        self._read_only = False
        self._id = None
        self._reads = {}
        self._attempts = itertools.count(1)

    def _clean_up(self):
        self._ops = []
        self._reads = {}
        self._id = None

    def _begin(self, retry_id=None):
        self._id = f"tx-{next(self._attempts)}".encode()

    def _record_read(self, ref, update_time):
        self._reads[(ref._collection, ref.id)] = update_time

    def _commit(self):
        hook = self._db.before_transaction_commit
        if hook is not None:
            self._db.before_transaction_commit = None
            hook()
        for (collection, doc_id), seen in self._reads.items():
            entry = self._db._data.get(collection, {}).get(doc_id)
            if (entry['update_time'] if entry else None) != seen:
                self._clean_up()
                raise Aborted("Transaction lock timeout: the document was modified")
        for op in self._ops:
            op()
        self._db.committed_transactions += 1
        self._clean_up()
        return []

    def _rollback(self):
        self._clean_up()


class FakeFirestore:
    def __init__(self):
        self._data = {}
        self._clock = itertools.count(1)
        self.listeners = {}
        self.committed_batches = []
        self.fail_batches = False
        self.committed_transactions = 0
        # Runs once just before the next transaction commit, to stage a concurrent write.
        self.before_transaction_commit = None

    def _tick(self):
        return _BASE_TIME + timedelta(microseconds=next(self._clock))

    def collection(self, name):
        return FakeCollection(self, name)

    def batch(self):
        return FakeWriteBatch(self)

    def transaction(self, **kwargs):
        return FakeTransaction(self, **kwargs)

    # --- test helpers ---

    def docs(self, name):
        return {doc_id: copy.deepcopy(entry['data']) for doc_id, entry in self._data.get(name, {}).items()}

    def deliver_snapshot(self, name, change_type='ADDED', doc_ids=None):
        """Sends the stored documents to the collection's listeners as `change_type` changes."""
        snapshots = [s for s in self.collection(name).stream() if doc_ids is None or s.id in doc_ids]
        changes = [SimpleNamespace(type=SimpleNamespace(name=change_type), document=s) for s in snapshots]
        for callback in list(self.listeners.get(name, [])):
            callback(snapshots, changes, self._tick())


@pytest.fixture
def db():
    return FakeFirestore()


@pytest.fixture
def app(db):
    return create_app('testing', db=db)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_profile(db):
    def _make(user_id, role='viewer', first_name=None, last_name=None, email=None):
        db.collection('profiles').document(user_id).set({
            'id': user_id,
            'email': email or f"{user_id}@example.org",
            'first_name': first_name if first_name is not None else user_id.capitalize(),
            'last_name': last_name if last_name is not None else "Member",
            'role': role,
            'created_at': _BASE_TIME,
        })
        return user_id
    return _make


@pytest.fixture
def auth_headers(app):
    def _headers(user_id, role='viewer'):
        with app.app_context():
            token = create_access_token(identity=user_id, additional_claims={'role': role})
        return {'Authorization': f'Bearer {token}'}
    return _headers
