'''SQLAlchemy patch history extension.

For general information about patch histories see the root patchhistory
package docstring.

Implementation Notes
====================

Versioning is installed per mapped class with `Repository.version` (or by
creating a `PatchHistory` directly). This adds a `<tablename>_patches` table
to the class's MetaData, a `<ClassName>Patches` mapped class for its rows and
listens to the class's load, refresh, insert, update and delete events.

Patches are written on the connection of the flush which saves the document,
so a document row and its patch are committed (or rolled back) together.

Concurrent writers are not serialized. Give the mapper a `version_id_col` to
have SQLAlchemy refuse updates made from a stale copy; the failed flush then
writes no patch either. The version column is never part of the data.
'''
from .tools import Repository
from .model import PatchHistory, Include
from .patches import PatchStore, make_patch_table
from .snapshot import HistoryState, Projection
from .sqla import SQLAlchemyMixin, JsonType
