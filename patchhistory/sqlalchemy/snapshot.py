'''Data projections and per instance snapshots.

The projection (`data()`) of a document is a plain dict of its mapped column
values without the primary key, the version counter and timestamp columns.
Columns which are None are left out, so a document created with only a title
projects to ``{'title': ...}``.

Each instance carries a `HistoryState` in its SQLAlchemy instance state
`info` dict. It holds the projection taken when the instance was last loaded
or saved; this is the base all diffs are computed against. What a flush
changes is only kept once the session commits.
'''
import copy

from sqlalchemy import event
from sqlalchemy.orm import attributes, Session

INFO_KEY = 'patchhistory'
PENDING_KEY = 'patchhistory.pending'


class Projection(object):
    '''Resolve the projected columns of a mapper once and project instances.
    '''
    def __init__(self, mapper, exclude=()):
        skip = set(exclude)
        if mapper.version_id_col is not None:
            skip.add(mapper.get_property_by_column(mapper.version_id_col).key)
        self.columns = {}
        for prop in mapper.column_attrs:
            col = prop.columns[0]
            if col.primary_key or prop.key in skip:
                continue
            self.columns[prop.key] = col

    def __call__(self, obj):
        out = {}
        for key in self.columns:
            # force expired attributes to load
            value = getattr(obj, key)
            if value is not None:
                out[key] = copy.deepcopy(value)
        return out

    def loaded(self, obj, keys=None):
        '''Project only what is already loaded, without touching the database.

        Safe to call from load and refresh events.
        '''
        loaded = attributes.instance_state(obj).dict
        out = {}
        for key in self.columns:
            if keys is not None and key not in keys:
                continue
            value = loaded.get(key)
            if value is not None:
                out[key] = copy.deepcopy(value)
        return out

    def committed(self, obj):
        '''Rebuild the last committed projection from attribute history.

        Used for persistent instances which never went through a load (and
        therefore have no snapshot).
        '''
        out = {}
        for key in self.columns:
            a, u, d = attributes.get_history(obj, key)
            if d:
                value = d[0]
            elif u:
                value = u[0]
            else:
                # no committed value, only what was added since
                value = None
            if value is not None:
                out[key] = copy.deepcopy(value)
        return out


class HistoryState(object):
    '''The snapshot and lifecycle phase of one document instance.

    Changes made while saving or removing are staged in the session's
    transaction: they become final when the session commits and are undone
    when the transaction (or the savepoint they were made in) rolls back, so
    the snapshot always matches the patches which were actually committed.
    '''

    class Phase(object):
        NEW = 'new'
        LOADED = 'loaded'
        SAVING = 'saving'
        COMMITTED = 'committed'
        REMOVING = 'removing'
        REMOVED = 'removed'

    def __init__(self):
        self.snapshot = None
        self.phase = self.Phase.NEW
        # (transaction, snapshot, phase) to go back to, oldest first
        self.staged = []

    @classmethod
    def of(cls, obj):
        info = attributes.instance_state(obj).info
        holder = info.get(INFO_KEY)
        if holder is None:
            holder = info[INFO_KEY] = cls()
        return holder

    def take(self, data, phase):
        '''Replace the snapshot (never merged).'''
        self.snapshot = data
        self.phase = phase

    def refresh(self, data, keys=None):
        '''Update the snapshot after attributes were reloaded.

        :param keys: the reloaded attribute names, None if all of them were.
        '''
        if self.snapshot is None:
            self.take(data, self.Phase.LOADED)
            return
        if keys is None:
            self.snapshot = data
            return
        for key in keys:
            if key in data:
                self.snapshot[key] = data[key]
            else:
                self.snapshot.pop(key, None)

    def stage(self, session, phase):
        '''Move to `phase` within the current transaction of `session`.'''
        transaction = session.get_nested_transaction() or \
                session.get_transaction()
        self.staged.append((transaction, self.snapshot, self.phase))
        session.info.setdefault(PENDING_KEY, {})[id(self)] = self
        self.phase = phase

    def unstage(self):
        '''Undo the latest `stage`.'''
        transaction, self.snapshot, self.phase = self.staged.pop()

    def discard(self, transaction):
        '''Undo everything staged within `transaction` (or below it).'''
        while self.staged and _within(self.staged[-1][0], transaction):
            self.unstage()

    def promote(self):
        '''The staged changes were committed.'''
        self.staged = []
        if self.phase == self.Phase.SAVING:
            self.phase = self.Phase.COMMITTED

    def __repr__(self):
        return '<HistoryState %s>' % self.phase


def _within(transaction, outer):
    while transaction is not None:
        if transaction is outer:
            return True
        transaction = transaction.parent
    return False


@event.listens_for(Session, 'after_commit')
def _after_commit(session):
    # releasing a savepoint commits nothing yet
    if session.get_nested_transaction() is not None:
        return
    for state in session.info.pop(PENDING_KEY, {}).values():
        state.promote()


@event.listens_for(Session, 'after_soft_rollback')
def _after_soft_rollback(session, previous_transaction):
    pending = session.info.get(PENDING_KEY, {})
    for key, state in list(pending.items()):
        state.discard(previous_transaction)
        if not state.staged:
            del pending[key]


@event.listens_for(Session, 'after_transaction_end')
def _after_transaction_end(session, transaction):
    # a root transaction ending without a commit (e.g. the session was
    # closed) takes whatever is still staged with it
    if transaction.parent is not None:
        return
    for state in session.info.pop(PENDING_KEY, {}).values():
        state.discard(transaction)
