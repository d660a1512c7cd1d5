from datetime import datetime

from .diff import replay, ADD, REPLACE, REMOVE
from .errors import ValidationError


class Patch(object):
    '''A recorded change to a single document.

    `ops` turns the state of the document `ref` before the change into its
    state after the change. Patches are never modified once stored.
    '''
    class Op(object):
        ADD = ADD
        REPLACE = REPLACE
        REMOVE = REMOVE

    def __init__(self, ref=None, ops=None, date=None, **included):
        self.id = None
        self.ref = ref
        self.ops = ops or []
        self.date = date or datetime.now()
        for name, value in included.items():
            setattr(self, name, value)

    def validate(self, required=()):
        if not self.ops:
            raise ValidationError('patch has no operations',
                    extra={'ref': self.ref})
        if self.ref is None:
            raise ValidationError('patch has no ref')
        for name in required:
            if getattr(self, name, None) is None:
                raise ValidationError('patch is missing required field: %s'
                        % name, extra={'ref': self.ref, 'field': name})

    def apply(self, state):
        '''Apply this patch's operations to `state` and return the result.'''
        return replay(self.ops, state)

    @property
    def paths(self):
        return [ op['path'] for op in self.ops ]

    def __repr__(self):
        return '<%s %s ref=%s ops=%d>' % (self.__class__.__name__, self.id,
                self.ref, len(self.ops or []))
