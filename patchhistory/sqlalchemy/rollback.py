'''Roll documents back to an earlier state.

A rollback never rewrites history. The old state is rebuilt by replaying the
document's patches up to and including the target patch, set on the document
and flushed, which appends a new patch for the change back.
'''
import logging
logger = logging.getLogger('patchhistory')

from sqlalchemy.orm import object_session

from patchhistory.errors import RollbackError, ValidationError


def rollback(history, obj, patch_id, data=None):
    '''Roll `obj` back to its state as of patch `patch_id`.

    :param history: the `PatchHistory` of obj's class.
    :param data: dict of extra attributes set along with the old state
        (these win over the old state).
    :return: obj, flushed.
    '''
    session = object_session(obj)
    if session is None:
        raise ValidationError('%r is not attached to a session' % obj)
    store = history.patches
    ref = getattr(obj, history.ref_key)
    extra = {'ref': ref, 'patch_id': patch_id}
    try:
        # ids may come in as strings, e.g. from a request
        patch_id = store.table.c.id.type.python_type(patch_id)
    except (TypeError, ValueError):
        raise RollbackError("patch doesn't exist", extra=extra)

    # rolling back to the youngest patch would change nothing
    if store.count(session, ref, since=patch_id) == 1:
        raise RollbackError('rollback to latest patch', extra=extra)

    patches = store.find(session, ref, until=patch_id)
    if not [ patch for patch in patches if patch.id == patch_id ]:
        raise RollbackError("patch doesn't exist", extra=extra)

    state = {}
    for patch in patches:
        state = patch.apply(state)
    state.update(data or {})

    logger.info('Rolling back %s %s to patch %s (%d patches replayed)',
            history.cls.__name__, ref, patch_id, len(patches))
    history.restore(obj, state)
    session.flush()
    return obj
