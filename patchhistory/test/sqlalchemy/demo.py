'''Demo of patchhistory for SQLAlchemy.

This module sets up a small domain model with some versioned objects. Code
that then uses these objects can be found in test_history.py and
test_rollback.py.
'''
from datetime import datetime

from sqlalchemy import MetaData, Table, Column, Integer, String, UnicodeText, \
        DateTime, JSON, create_engine
from sqlalchemy.orm import registry, scoped_session, sessionmaker

import patchhistory.sqlalchemy
from patchhistory.sqlalchemy import Include

engine = create_engine('sqlite://')
# a second database holding the same tables
engine2 = create_engine('sqlite://')

metadata = MetaData()

## Demo tables

post_table = Table('post', metadata,
        Column('id', Integer, primary_key=True),
        Column('title', String(100)),
        Column('notes', UnicodeText),
        Column('tags', JSON),
        Column('published', DateTime),
        Column('created_at', DateTime, default=datetime.now),
        Column('updated_at', DateTime, default=datetime.now,
            onupdate=datetime.now),
        )

comment_table = Table('comment', metadata,
        Column('id', Integer, primary_key=True),
        Column('text', UnicodeText),
        )

page_table = Table('page', metadata,
        Column('id', Integer, primary_key=True),
        Column('body', UnicodeText),
        Column('version_id', Integer, nullable=False),
        )


## -------------------
## Mapped classes

class Post(patchhistory.sqlalchemy.SQLAlchemyMixin):
    pass

class Comment(patchhistory.sqlalchemy.SQLAlchemyMixin):
    '''Comments record who changed them.

    Set `_user` to the id of the acting user before saving.
    '''
    _user = None

class Page(patchhistory.sqlalchemy.SQLAlchemyMixin):
    pass


## --------------------------------------------------------
## Mapper Stuff

Session = scoped_session(
            sessionmaker(bind=engine,
            autoflush=True,
            expire_on_commit=False,
            ))

Session2 = scoped_session(
            sessionmaker(bind=engine2,
            autoflush=True,
            expire_on_commit=False,
            ))

mapper_registry = registry(metadata=metadata)
mapper_registry.map_imperatively(Post, post_table)
mapper_registry.map_imperatively(Comment, comment_table)
mapper_registry.map_imperatively(Page, page_table,
        version_id_col=page_table.c.version_id)


## ------------------------
## Repository helper object

from patchhistory.sqlalchemy import Repository
repo = Repository(metadata, Session)

# Where we introduce the versioning
repo.version(Post)
repo.version(Comment,
        remove_patches=False,
        includes={
            'text': Include(UnicodeText),
            'user': Include(Integer, required=True, source='_user'),
            })
repo.version(Page)
