'''Errors raised by patchhistory.

All errors share one base class and carry a `kind` tag so callers can
dispatch on it without a chain of isinstance checks.
'''


class PatchHistoryError(Exception):
    kind = None

    def __init__(self, message, extra=None):
        super(PatchHistoryError, self).__init__(message)
        self.message = message
        self.extra = extra or {}

    def __repr__(self):
        return '<%s kind=%s %r>' % (self.__class__.__name__, self.kind,
                self.message)


class ValidationError(PatchHistoryError):
    '''Malformed patch data or a misconfigured versioned class.'''
    kind = 'validation'


class PersistenceError(PatchHistoryError):
    '''The database failed while reading or writing patches.

    The original exception is chained and also kept in `extra['cause']`.
    '''
    kind = 'persistence'


class RollbackError(PatchHistoryError):
    '''A rollback request was rejected.'''
    kind = 'rollback'
