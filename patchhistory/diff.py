'''Compute and apply JSON patches.

A patch is a list of operations in JSON patch vocabulary::

    {'op': 'add', 'path': '/title', 'value': 'foo'}
    {'op': 'replace', 'path': '/tags/0', 'value': 'geo'}
    {'op': 'remove', 'path': '/notes'}

Paths are JSON pointers. Only the add, replace and remove operations are
produced and understood.

diff() walks the keys of the old state from last to first (so list items are
removed from the end and the remaining indices stay valid), recursing into
containers of the same kind and replacing everything else that differs, and
then adds the keys only present in the new state.
'''
import copy

from .errors import ValidationError


ADD = 'add'
REPLACE = 'replace'
REMOVE = 'remove'
OPS = (ADD, REPLACE, REMOVE)


class PatchError(ValidationError):
    '''An operation could not be understood or applied.'''


def escape(token):
    return str(token).replace('~', '~0').replace('/', '~1')

def unescape(token):
    return token.replace('~1', '/').replace('~0', '~')

def pointer(*tokens):
    return ''.join('/' + escape(token) for token in tokens)


def _is_container(value):
    return isinstance(value, (dict, list))

def _same_kind(a, b):
    return isinstance(a, dict) == isinstance(b, dict)

def _equal(a, b):
    # json keeps true and 1 apart, python does not
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    return a == b

def _keys(container):
    if isinstance(container, dict):
        return list(container.keys())
    return list(range(len(container)))

def _has(container, key):
    if isinstance(container, dict):
        return key in container
    return key < len(container)


def diff(before, after):
    '''Return the operations which turn `before` into `after`.

    Neither argument is modified. Values in the returned operations are
    copies so the operations stay valid if `after` is changed later.
    '''
    if not (_is_container(before) and _is_container(after) and
            _same_kind(before, after)):
        if _equal(before, after):
            return []
        return [{'op': REPLACE, 'path': '', 'value': copy.deepcopy(after)}]
    ops = []
    _generate(before, after, ops, '')
    return ops

def _generate(old, new, ops, path):
    if old is new:
        return
    old_keys = _keys(old)
    new_keys = _keys(new)
    deleted = False
    for key in reversed(old_keys):
        old_value = old[key]
        here = path + '/' + escape(key)
        if _has(new, key):
            new_value = new[key]
            if _is_container(old_value) and _is_container(new_value) and \
                    _same_kind(old_value, new_value):
                _generate(old_value, new_value, ops, here)
            elif not _equal(old_value, new_value):
                ops.append({'op': REPLACE, 'path': here,
                    'value': copy.deepcopy(new_value)})
        else:
            ops.append({'op': REMOVE, 'path': here})
            deleted = True
    if not deleted and len(new_keys) == len(old_keys):
        return
    for key in new_keys:
        if not _has(old, key):
            ops.append({'op': ADD, 'path': path + '/' + escape(key),
                'value': copy.deepcopy(new[key])})


def _tokens(path):
    if path == '':
        return []
    if not isinstance(path, str) or not path.startswith('/'):
        raise PatchError('invalid path: %r' % (path,))
    return [ unescape(token) for token in path[1:].split('/') ]

def _index(container, token, path, allow_end=False):
    if allow_end and token == '-':
        return len(container)
    if not token.isdigit() or (token != '0' and token.startswith('0')):
        raise PatchError('invalid list index in path: %s' % path)
    index = int(token)
    limit = len(container) if allow_end else len(container) - 1
    if index > limit:
        raise PatchError('list index out of range in path: %s' % path)
    return index

def _parent(state, tokens, path):
    target = state
    for token in tokens[:-1]:
        if isinstance(target, dict):
            if token not in target:
                raise PatchError('path cannot be resolved: %s' % path)
            target = target[token]
        elif isinstance(target, list):
            target = target[_index(target, token, path)]
        else:
            raise PatchError('path cannot be resolved: %s' % path)
    if not _is_container(target):
        raise PatchError('path cannot be resolved: %s' % path)
    return target

def apply_op(state, op):
    '''Apply a single operation to `state` and return the resulting state.

    The state is changed in place unless the operation addresses the whole
    document, in which case the new document is returned.
    '''
    if not isinstance(op, dict) or op.get('op') not in OPS:
        raise PatchError('unknown operation: %r' % (op,))
    kind = op['op']
    if 'path' not in op:
        raise PatchError('operation without path: %r' % (op,))
    path = op['path']
    if kind != REMOVE and 'value' not in op:
        raise PatchError('operation without value: %r' % (op,))
    value = copy.deepcopy(op.get('value'))

    tokens = _tokens(path)
    if not tokens:
        if kind == REMOVE:
            raise PatchError('cannot remove the whole document')
        return value

    parent = _parent(state, tokens, path)
    key = tokens[-1]
    if isinstance(parent, dict):
        if kind != ADD and key not in parent:
            raise PatchError('path cannot be resolved: %s' % path)
        if kind == REMOVE:
            del parent[key]
        else:
            parent[key] = value
    else:
        if kind == ADD:
            parent.insert(_index(parent, key, path, allow_end=True), value)
        elif kind == REPLACE:
            parent[_index(parent, key, path)] = value
        else:
            del parent[_index(parent, key, path)]
    return state

def replay(ops, base=None):
    '''Apply `ops` in order to `base` (a new dict by default).'''
    state = {} if base is None else base
    for op in ops:
        state = apply_op(state, op)
    return state
