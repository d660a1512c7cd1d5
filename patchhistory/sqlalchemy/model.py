'''Patch histories for sqlalchemy model objects.

Based partially on:

http://www.sqlalchemy.org/trac/browser/examples/versioning/history_meta.py

Notes
=====

Patches are written from the mapper's after_insert and after_update events
rather than from a session before_flush listener because:

In before_flush pks will not be set on objects which have values autoset
(e.g. int autoincrement) so the patch `ref` would be unknown for new objects.
The mapper events also hand us the flush's connection, so the patch is
inserted in the same transaction as the document row and a failing patch
insert aborts the whole flush.

The snapshot an object is diffed against is staged along with the patch and
only becomes final when the session commits (see `HistoryState.stage`). A
rolled back transaction takes its patches with it, so it takes the snapshot
changes with it as well.
'''
import logging
logger = logging.getLogger('patchhistory')

from sqlalchemy import event
from sqlalchemy.orm import class_mapper, object_session
from sqlalchemy.orm.exc import UnmappedClassError

from patchhistory.diff import diff
from patchhistory.errors import ValidationError
from patchhistory.patch import Patch
from .patches import make_patch_table, PatchStore
from .rollback import rollback
from .snapshot import Projection, HistoryState
from .sqla import coerce

Phase = HistoryState.Phase


class Include(object):
    '''An extra patch column copied from the document when a patch is made.

    :param type_: sqlalchemy column type of the patch column.
    :param required: refuse to write patches when the value is None.
    :param source: attribute of the document to copy from (defaults to the
        include's own name). It does not have to be mapped, e.g. the user
        making a change can be set as a plain attribute before saving.
    '''
    def __init__(self, type_, required=False, source=None, name=None):
        self.type_ = type_
        self.required = required
        self.source = source
        self.name = name

    def bind(self, name):
        return Include(self.type_, self.required, self.source or name, name)

    def __repr__(self):
        return '<Include %s from %s>' % (self.name, self.source)


class _PatchesAccessor(object):
    '''`Cls.patches()` and `obj.patches` both give the type's PatchStore.'''
    def __init__(self, store):
        self.store = store

    def __get__(self, obj, owner):
        if obj is None:
            return self
        return self.store

    def __call__(self):
        return self.store


class PatchHistory(object):
    '''Version a mapped class by recording every change as a patch.

    Instantiating this installs the versioning on `cls`; the instance is the
    handle for the class's history (see also `Repository.version`).

    :param remove_patches: delete a document's patches when it is deleted.
    :param includes: dict of patch field name to `Include`.
    :param table_name: name of the patch table, `<tablename>_patches` by
        default.
    :param timestamps: column attributes which are not part of the data.
    :param exclude: further column attributes which are not versioned.
    '''
    RESERVED = ('id', 'date', 'ops', 'ref')

    def __init__(self, cls, remove_patches=True, includes=None,
            table_name=None, timestamps=('created_at', 'updated_at'),
            exclude=()):
        try:
            mapper = class_mapper(cls)
        except UnmappedClassError:
            raise ValidationError('%s is not a mapped class' % cls.__name__)
        if getattr(cls, '__patch_history__', None) is not None:
            raise ValidationError('%s is already versioned' % cls.__name__)
        if hasattr(cls, 'data'):
            raise ValidationError('conflicting instance method: `data`',
                    extra={'class': cls})
        pkcols = mapper.primary_key
        if len(pkcols) != 1:
            msg = 'Do not support versioning objects with multiple primary keys'
            raise ValidationError(msg, extra={'class': cls})

        self.cls = cls
        self.mapper = mapper
        self.remove_patches = remove_patches
        self.includes = [ include.bind(name)
                for name, include in (includes or {}).items() ]
        for include in self.includes:
            if include.name in self.RESERVED or hasattr(Patch, include.name):
                raise ValidationError('include name is reserved: %s'
                        % include.name, extra={'class': cls})
        self.projection = Projection(mapper, tuple(timestamps) + tuple(exclude))
        self.ref_key = mapper.get_property_by_column(pkcols[0]).key

        table = mapper.local_table
        self.table = make_patch_table(table.metadata,
                table_name or table.name + '_patches',
                pkcols[0].type, self.includes)
        model = type(cls.__name__ + 'Patches', (Patch,), {})
        mapper.registry.map_imperatively(model, self.table)
        self.patches = PatchStore(self.table, model,
                required=[ i.name for i in self.includes if i.required ])
        self._install()

    def _install(self):
        history = self
        cls = self.cls

        def data(self):
            '''Current data of this object, as recorded in patches.'''
            return history.projection(self)

        def rollback_(self, patch_id, data=None):
            '''Roll this object back to its state as of patch `patch_id`.

            :param data: extra attributes to set along with the old state.
            '''
            return rollback(history, self, patch_id, data)

        cls.__patch_history__ = self
        cls.data = data
        cls.rollback = rollback_
        cls.patches = _PatchesAccessor(self.patches)

        event.listen(cls, 'load', self.on_load, propagate=True)
        event.listen(cls, 'refresh', self.on_refresh, propagate=True)
        event.listen(cls, 'after_insert', self.on_insert, propagate=True)
        event.listen(cls, 'after_update', self.on_update, propagate=True)
        event.listen(cls, 'before_delete', self.on_delete, propagate=True)
        event.listen(cls, 'after_delete', self.on_deleted, propagate=True)
        logger.debug('Versioning %s in %s', cls.__name__, self.table.name)

    ## ------------------------
    ## Snapshots

    def on_load(self, target, context):
        HistoryState.of(target).take(self.projection.loaded(target),
                Phase.LOADED)

    def on_refresh(self, target, context, attrs):
        keys = None if attrs is None else set(attrs)
        HistoryState.of(target).refresh(
                self.projection.loaded(target, keys), keys)

    def before(self, target, state, is_new):
        '''The data to diff against when saving `target`.'''
        if is_new:
            return {}
        if state.snapshot is None:
            return self.projection.committed(target)
        return state.snapshot

    ## ------------------------
    ## Saving and removing

    def on_insert(self, mapper, connection, target):
        self.save(connection, target, is_new=True)

    def on_update(self, mapper, connection, target):
        self.save(connection, target, is_new=False)

    def save(self, connection, target, is_new):
        state = HistoryState.of(target)
        # copied as projecting may reload expired attributes into the snapshot
        before = dict(self.before(target, state, is_new))
        after = self.projection(target)
        ops = diff(before, after)
        state.stage(object_session(target), Phase.SAVING)
        try:
            # no changes, no patch
            if ops:
                self.patches.create(connection, getattr(target, self.ref_key),
                        ops, **self.included(target))
        except Exception:
            state.unstage()
            raise
        state.snapshot = after

    def included(self, target):
        return dict((include.name, getattr(target, include.source, None))
                for include in self.includes)

    def on_delete(self, mapper, connection, target):
        if not self.remove_patches:
            return
        state = HistoryState.of(target)
        state.stage(object_session(target), Phase.REMOVING)
        try:
            self.patches.delete_all(connection, getattr(target, self.ref_key))
        except Exception:
            state.unstage()
            raise

    def on_deleted(self, mapper, connection, target):
        HistoryState.of(target).stage(object_session(target), Phase.REMOVED)

    ## ------------------------
    ## Rollback support

    def restore(self, target, state):
        '''Set `target` to `state` (as produced by replaying patches).

        Versioned columns missing from `state` are set to None; keys which
        are not versioned columns are set as plain attributes.
        '''
        state = dict(state)
        for key, column in self.projection.columns.items():
            setattr(target, key, coerce(column, state.pop(key, None)))
        for key, value in state.items():
            setattr(target, key, value)

    def __repr__(self):
        return '<PatchHistory %s>' % self.cls.__name__
