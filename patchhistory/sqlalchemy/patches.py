'''The patch tables and the store used to read and write them.

There is one patch table per versioned type. Patch ids come from an
autoincrementing integer column so they are unique and ordered by creation;
all lists of patches are returned in id order.
'''
from contextlib import contextmanager
from datetime import datetime
import logging
logger = logging.getLogger('patchhistory')

from sqlalchemy import Table, Column, Integer, DateTime, select, func
from sqlalchemy.exc import SQLAlchemyError

from patchhistory.errors import PersistenceError
from patchhistory.patch import Patch
from .sqla import JsonType


def make_patch_table(metadata, name, ref_type, includes=()):
    '''Create the patch table `name` in `metadata`.

    :param ref_type: column type of the referenced document's primary key.
    :param includes: `Include` objects, one extra column each.
    '''
    table = Table(name, metadata,
            Column('id', Integer, primary_key=True, autoincrement=True),
            Column('date', DateTime, nullable=False, default=datetime.now),
            Column('ops', JsonType, nullable=False),
            Column('ref', ref_type, nullable=False, index=True),
            sqlite_autoincrement=True,
            )
    for include in includes:
        table.append_column(
                Column(include.name, include.type_,
                    nullable=not include.required)
                )
    return table


class PatchStore(object):
    '''Create, find, count and delete the patches of one versioned type.

    Methods which write take a `bind` which may be a Session or a Connection
    (the latter is what flush events hand us). Database errors are raised as
    PersistenceError.
    '''

    def __init__(self, table, model, required=()):
        self.table = table
        self.model = model
        self.required = tuple(required)

    @property
    def name(self):
        return self.table.name

    def create(self, bind, ref, ops, **included):
        '''Validate and insert a new patch.

        :return: the id of the new patch.
        '''
        patch = Patch(ref=ref, ops=ops, **included)
        patch.validate(self.required)
        values = dict(included, ref=ref, ops=patch.ops, date=patch.date)
        with self._guard('create', ref):
            result = bind.execute(self.table.insert().values(**values))
        patch_id = result.inserted_primary_key[0]
        logger.debug('Created patch %s for %s %s (%d ops)', patch_id,
                self.name, ref, len(ops))
        return patch_id

    def _filter(self, query, ref, since, until, start, end):
        model = self.model
        query = query.where(model.ref == ref)
        if since is not None:
            query = query.where(model.id >= since)
        if until is not None:
            query = query.where(model.id <= until)
        if start is not None:
            query = query.where(model.date >= start)
        if end is not None:
            query = query.where(model.date <= end)
        return query

    def find(self, session, ref, since=None, until=None, start=None, end=None,
            descending=False, limit=None):
        '''Get the patches of document `ref`.

        :param since, until: inclusive bounds on the patch id.
        :param start, end: inclusive bounds on the patch date.
        :param descending: youngest first if True.
        '''
        query = self._filter(select(self.model), ref, since, until, start, end)
        if descending:
            query = query.order_by(self.model.id.desc())
        else:
            query = query.order_by(self.model.id)
        if limit is not None:
            query = query.limit(limit)
        with self._guard('find', ref):
            return list(session.scalars(query))

    def get(self, session, patch_id, ref=None):
        '''Get a single patch, None if there is no such patch (for `ref`).'''
        query = select(self.model).where(self.model.id == patch_id)
        if ref is not None:
            query = query.where(self.model.ref == ref)
        with self._guard('get', ref):
            return session.scalars(query).first()

    def latest(self, session, ref):
        out = self.find(session, ref, descending=True, limit=1)
        return out[0] if out else None

    def count(self, session, ref, since=None, until=None, start=None,
            end=None):
        query = self._filter(select(func.count(self.model.id)), ref,
                since, until, start, end)
        with self._guard('count', ref):
            return session.scalar(query)

    def delete_all(self, bind, ref):
        '''Delete every patch of document `ref`.

        :return: the number of patches deleted (0 if there were none).
        '''
        stmt = self.table.delete().where(self.table.c.ref == ref)
        with self._guard('delete', ref):
            result = bind.execute(stmt)
        logger.debug('Deleted %s patches of %s %s', result.rowcount,
                self.name, ref)
        return result.rowcount

    @contextmanager
    def _guard(self, action, ref):
        '''Re-raise database errors as PersistenceError.'''
        try:
            yield
        except SQLAlchemyError as err:
            msg = 'could not %s patches in %s: %s' % (action, self.name, err)
            raise PersistenceError(msg, extra={'ref': ref, 'cause': err}) \
                    from err

    def __repr__(self):
        return '<PatchStore %s>' % self.name
