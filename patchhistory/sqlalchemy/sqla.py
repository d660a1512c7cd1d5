'''Generic sqlalchemy code (not specifically related to patch histories).
'''
import datetime
import decimal
import json
import uuid

from sqlalchemy.orm import class_mapper
from sqlalchemy import types


def json_default(value):
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, (uuid.UUID, decimal.Decimal)):
        return str(value)
    raise TypeError('%r is not JSON serializable' % (value,))


class JsonType(types.TypeDecorator):
    '''Store data as JSON serializing on save and unserializing on use.
    '''
    impl = types.UnicodeText
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None: # ensure we stores nulls in db not json "null"
            return None
        else:
            # ensure_ascii=False => allow unicode
            return json.dumps(value, ensure_ascii=False, sort_keys=True,
                    default=json_default)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        else:
            return json.loads(value)


_PARSERS = {
    datetime.datetime: datetime.datetime.fromisoformat,
    datetime.date: datetime.date.fromisoformat,
    datetime.time: datetime.time.fromisoformat,
    uuid.UUID: uuid.UUID,
    decimal.Decimal: decimal.Decimal,
    }

def coerce(column, value):
    '''Turn a JSON decoded `value` back into the python type of `column`.

    Values that already have the right type (and types we do not know how to
    parse) are returned unchanged.
    '''
    if value is None:
        return None
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return value
    if isinstance(value, python_type):
        return value
    parser = _PARSERS.get(python_type)
    if parser is None or not isinstance(value, str):
        return value
    return parser(value)


class SQLAlchemyMixin(object):
    def __init__(self, **kw):
        for k, v in kw.items():
            setattr(self, k, v)

    def __repr__(self):
        repr = '<%s' % self.__class__.__name__
        table = class_mapper(self.__class__).local_table
        for col in table.c:
            repr += ' %s=%s' % (col.key, getattr(self, col.key, None))
        repr += '>'
        return repr
