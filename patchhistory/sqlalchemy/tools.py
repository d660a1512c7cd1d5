'''Various useful tools for working with patch histories.

Primarily organized within a `Repository` object, which is also the registry
of the versioned classes of one model.
'''
import logging
logger = logging.getLogger('patchhistory')

from sqlalchemy import create_engine
from sqlalchemy.orm import scoped_session

from patchhistory.errors import ValidationError
from .model import PatchHistory


class Repository(object):
    def __init__(self, our_metadata, our_session, dburi=None):
        '''
        @param dburi: sqlalchemy dburi. If supplied will create engine and bind
        it to the session.
        '''
        self.metadata = our_metadata
        self.session = our_session
        self.dburi = dburi
        self.histories = {}
        self.have_scoped_session = isinstance(self.session, scoped_session)
        self.engine = None
        if self.dburi:
            self.engine = create_engine(dburi)
            if self.have_scoped_session:
                self.session.configure(bind=self.engine)
            else:
                self.session.bind = self.engine

    def version(self, cls, **options):
        '''Version `cls` (see `PatchHistory` for the options).

        @return the PatchHistory of cls.
        '''
        if cls in self.histories:
            raise ValidationError('%s is already versioned' % cls.__name__)
        history = PatchHistory(cls, **options)
        self.histories[cls] = history
        return history

    def history(self, cls):
        try:
            return self.histories[cls]
        except KeyError:
            raise ValidationError('%s is not versioned in this repository'
                    % cls.__name__)

    def patches(self, cls):
        return self.history(cls).patches

    def _bind(self):
        if self.engine is not None:
            return self.engine
        return self.session.get_bind()

    def create_db(self):
        self.metadata.create_all(bind=self._bind())

    def rebuild_db(self):
        logger.info('Rebuilding DB')
        self.metadata.drop_all(bind=self._bind())
        self.metadata.create_all(bind=self._bind())

    def commit(self, remove=True):
        self.session.commit()
        if remove and self.have_scoped_session:
            self.session.remove()
