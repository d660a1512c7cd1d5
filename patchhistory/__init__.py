'''
About
=====

patchhistory is a package which keeps a full, append-only change history for
your domain objects. Every time a versioned object is created or modified the
change is recorded as a JSON patch (a list of add/replace/remove operations)
in a patch table belonging to the object's type. Any earlier state of the
object can be reconstructed by replaying its patches, and an object can be
rolled back to such a state (which itself is recorded as a new patch).

At present the package is provided as an extension to SQLAlchemy.


Copyright and License
=====================

Licensed under the MIT license:

  <http://www.opensource.org/licenses/mit-license.php>


Overview
========

For each versioned domain object type we end up with 2 tables:

  * The document table: the original domain object, always holding the
    current state.
  * The patch table: one row per change to a document, referencing the
    document by its primary key (`ref`) and holding the operations (`ops`)
    that turn the previous state into the new one.

A user will normally never write patches explicitly. They are computed when a
document is flushed by diffing the document's data against a snapshot taken
when the document was loaded or last saved. Saving a document without changes
writes no patch.

To give a flavour of all of this here is an example::

    repo = Repository(metadata, Session)
    repo.version(Post)
    repo.create_db()

    post = Post(title='War and Peacee')
    Session.add(post)
    Session.commit()
    # typo!
    post.title = 'War and Peace'
    Session.commit()

    patches = post.patches.find(Session, post.id)
    assert patches[0].ops == [
        {'op': 'add', 'path': '/title', 'value': 'War and Peacee'}]
    assert patches[1].ops == [
        {'op': 'replace', 'path': '/title', 'value': 'War and Peace'}]

    # back to the typo, this appends a third patch
    post.rollback(patches[0].id)
    assert post.title == 'War and Peacee'


Code in Action
--------------

To see some real code in action take a look at::

    patchhistory/test/sqlalchemy/demo.py
    patchhistory/test/sqlalchemy/test_history.py
'''
__version__ = '0.1'
__description__ = 'Patch based change history and rollback for domain objects.'
