"""
.. py:module:: broker
   :synopsis: A CouchDB client over HTTP.

.. License: GNU Affero GPL v3 (http://www.gnu.org/licenses/agpl.html)

A simple usage example:

>>> from storecouch import Client
>>> couch = Client(db='python-tests')
>>> couch.createDb()
{'ok': True}
>>> doc_id, doc_rev = couch.putDoc({'type': 'Person', 'name': 'John Doe'})
>>> doc = couch.getDoc(doc_id)
>>> doc['name']
'John Doe'
>>> doc.rev == couch.headDoc(doc_id) == doc_rev
True
>>> couch.deleteDoc(doc_id)  #doctest: +ELLIPSIS
('...', '2-...')
>>> couch.getDoc(doc_id) is None, couch.err
(True, '404 Object Not Found')
>>> couch.deleteDb()
{'ok': True}

Operations never raise for failed requests: they return ``None`` and leave
the status line (or connection error message) in :attr:`.Client.err`.
Missing arguments are logged as warnings and return ``None``, too.
"""
from http import client
import logging
import mimetypes
import threading

from storecouch import config as configuration
from storecouch import network, serializer
from storecouch.views import ArrayRows, DesignPath, EncodeOptions, \
        KeyedRows, PostedRows

__all__ = ['Client', 'Document', 'DocPath']


def DocPath(db:str, id:str, *segments:[str]) -> str:
    """
    Return the path for the document *id* in database *db*, extended by any
    further *segments* (eg., an attachment's file name).

    All parts are percent-escaped, except that IDs starting with a reserved
    segment (starting with '_'), e.g. ``"_design/foo"``, are split at the
    first ``/``.

    >>> DocPath('billing', 'joe/doe', 'cv.pdf')
    'billing/joe%2Fdoe/cv.pdf'
    >>> DocPath('billing', '_design/prices')
    'billing/_design/prices'
    """
    parts = id.split('/', 1) if id[:1] == '_' else [id]
    parts.extend(segments)
    return '/'.join(network.quoteall(p) for p in [db] + parts)


def WithQuery(path:str, options:dict) -> str:
    """
    Append the *options* as a query string to *path* (if there are any).
    """
    if options:
        return '{}?{}'.format(path, EncodeOptions(options))

    return path


class Document(dict):
    """
    Representation of a document in the database.

    This is basically just a dictionary with the two additional properties
    `id` and `rev`, which contain the document ID and revision, respectively.
    """

    def __repr__(self):
        return '<{} {}@{}>'.format(type(self).__name__, self.id, self.rev)

    @property
    def id(self) -> str:
        """
        The document ID or ``None``.
        """
        return self.get('_id')

    @id.setter
    def id(self, _id:str):
        self['_id'] = _id

    @property
    def rev(self) -> str:
        """
        The document revision or ``None``.
        """
        return self.get('_rev')

    @rev.setter
    def rev(self, _rev:str):
        self['_rev'] = _rev

    @property
    def attachments(self) -> dict:
        """
        Any attachments the document has, as a dictionary of file names
        pointing to dictionaries describing the file; or an empty dictionary.
        """
        return self.get('_attachments', {})


class Client:
    """
    Representation of a CouchDB server and its default database.

    The configuration is held in :attr:`config`, a
    :class:`storecouch.config.Config` tuple; use :meth:`configure` to change
    any number of fields at once. All database operations accept a *db*
    argument that overrides the default database for that call only.

    The last request error is kept per thread in :attr:`err`.
    """

    def __init__(self, config:configuration.Config=None,
                 session:network.Session=None, **fields):
        """
        :param config: The initial :class:`storecouch.config.Config`; if
                       ``None``, it is created from the
                       :data:`storecouch.config.COUCHDB_URL`.
        :param session: A :class:`.network.Session` object; if ``None``, a
                        new `Session` is created.
        :param fields: Configuration fields to set (see :meth:`configure`).
        :raise ValueError: If any of the *fields* is unknown.
        """
        if config is None:
            config = configuration.FromUrl()

        self.config = configuration.Update(config, **fields)
        self.session = network.Session() if session is None else session
        self.L = logging.getLogger('storecouch')
        self._local = threading.local()

    def __repr__(self) -> str:
        return '<{} {}>'.format(type(self).__name__,
                                network.BuildUrl(self.config._replace(
                                    password=None
                                ), self.config.db))

    @property
    def err(self) -> str:
        """
        The error message of the last failed request made by this thread, or
        ``None`` if the last request succeeded.
        """
        return getattr(self._local, 'err', None)

    @err.setter
    def err(self, message:str):
        self._local.err = message

    @property
    def db(self) -> str:
        """
        The name of the default database.
        """
        return self.config.db

    def configure(self, **fields) -> configuration.Config:
        """
        Update the configuration fields given as keyword arguments: ``host``,
        ``port``, ``ssl``, ``db``, ``user``, ``password``, ``timeout``, and
        ``purge_limit``.

        :return: The new configuration.
        :raise ValueError: If any of the *fields* is unknown or its value
                           invalid.
        """
        self.config = configuration.Update(self.config, **fields)
        return self.config

    # TRANSPORT

    def _call(self, method:str, path:str, body:object=None,
              content_type:str=None):
        """
        Make one request and return the normalized response data (see
        :func:`.network.DecodeResponse`), or ``None`` if the request failed.

        The *body* is JSON-encoded unless a *content_type* is given, in which
        case it is sent as-is.
        """
        self.err = None
        config = self.config
        headers = {'Content-Type': content_type or network.JSON_TYPE}

        if body is not None and content_type is None:
            body = serializer.EncodeBytes(body)

        try:
            response = self.session.request(
                method, network.BuildUrl(config, path), body, headers,
                timeout=config.timeout
            )
        except network.HTTPError as e:
            self.err = str(e)
            self.L.info("%s %s failed: %s (%s)", method, path, e, e.error)
            return None
        except (OSError, client.HTTPException) as e:
            self.err = str(e) or type(e).__name__
            self.L.info("%s %s failed: %s", method, path, self.err)
            return None

        return network.DecodeResponse(method, response)

    def _database(self, db:str) -> str:
        name = db or self.config.db

        if not name:
            self.L.warning("database not defined")

        return name

    # DOCUMENT API

    def getDoc(self, id:str=None, db:str=None, **options) -> Document:
        """
        Return the document with the specified *id*.

        :param id: The document ID.
        :param db: The database, if not the default one.
        :param options: Query parameters, eg. ``rev='1-...'``.
        :return: A :class:`.Document` or ``None``.
        """
        if not id:
            self.L.warning("document ID not defined")
            return None

        db = self._database(db)
        if not db: return None
        data = self._call('GET', WithQuery(DocPath(db, id), options))
        return Document(data) if isinstance(data, dict) else data

    def headDoc(self, id:str=None, db:str=None) -> str:
        """
        Return the current revision of the document *id*, or ``None`` if it
        does not exist.
        """
        if not id:
            self.L.warning("document ID not defined")
            return None

        db = self._database(db)
        if not db: return None
        return self._call('HEAD', DocPath(db, id))

    def putDoc(self, doc:dict=None, db:str=None) -> (str, str):
        """
        **Create** a new document or **update** an existing document.

        If *doc* has no ``"_id"`` then the server will allocate a random
        ID and a new document will be created. Otherwise the document's ID
        will be used to identify the document to create or update, and an
        existing document's current ``"_rev"`` must be set.

        The *doc*'s ``_id`` and ``_rev`` are set to the stored values.

        :return: The ``(id, rev)`` tuple or ``None``.
        """
        if not isinstance(doc, dict):
            self.L.warning("document not defined")
            return None

        db = self._database(db)
        if not db: return None

        if doc.get('_id'):
            data = self._call('PUT', DocPath(db, doc['_id']), doc)
        else:
            data = self._call('POST', network.quoteall(db), doc)

        if not isinstance(data, dict) or 'id' not in data:
            return None

        doc['_id'] = data['id']
        doc['_rev'] = data['rev']
        return data['id'], data['rev']

    def deleteDoc(self, id:str=None, rev:str=None,
                  db:str=None) -> (str, str):
        """
        Delete the document *id*.

        Without a *rev*, the current revision is looked up first; note that
        a concurrent update between the lookup and the deletion makes the
        deletion fail with a conflict.

        :return: The ``(id, rev)`` tuple of the deletion or ``None``.
        """
        if not id:
            self.L.warning("document ID not defined")
            return None

        db = self._database(db)
        if not db: return None

        if not rev:
            rev = self.headDoc(id, db)

            if not rev:
                self.L.warning("document %s not found in %s", id, db)
                return None

        data = self._call('DELETE', WithQuery(DocPath(db, id), {'rev': rev}))

        if not isinstance(data, dict) or 'rev' not in data:
            return None

        return data.get('id', id), data['rev']

    def updateDoc(self, doc:dict=None, name:str=None,
                  db:str=None) -> (str, str):
        """
        Update the existing document with the ID *name* or the *doc*'s
        ``_id`` to the content of *doc*, using its current revision.

        Unlike :meth:`putDoc`, this never creates a new document.

        :return: The ``(id, rev)`` tuple or ``None``.
        """
        if not isinstance(doc, dict):
            self.L.warning("document not defined")
            return None

        if name:
            doc['_id'] = name

        if not doc.get('_id'):
            self.L.warning("document ID not defined")
            return None

        db = self._database(db)
        if not db: return None
        rev = self.headDoc(doc['_id'], db)

        if not rev:
            self.L.warning("document %s not found in %s", doc['_id'], db)
            return None

        doc['_rev'] = rev
        return self.putDoc(doc, db)

    def copyDoc(self, id:str=None, db:str=None) -> (str, str):
        """
        Copy the document *id* to a new document with a server-assigned ID.

        :return: The ``(id, rev)`` tuple of the copy or ``None``.
        """
        doc = self.getDoc(id, db)

        if not isinstance(doc, dict):
            return None

        doc.pop('_id', None)
        doc.pop('_rev', None)
        return self.putDoc(dict(doc), db)

    def showDoc(self, show:str=None, id:str=None, db:str=None, **options):
        r"""
        Call a **show function**, returning the result produced by it.

        Show functions are made available at:

        /\ **db**\ /\ _design/\ **design-doc**\ /\ _show/\ **show-name**\ [/\ **doc-id**\ ]

        :param show: The name of the show function in the format
                     ``design-doc/show-name``.
        :param id: Optional ID of a document to pass to the show function.
        :param options: Optional query parameters.
        :return: The decoded JSON or a :class:`.network.Attachment` with the
                 raw output, or ``None``.
        """
        if not show:
            self.L.warning("show function not defined")
            return None

        db = self._database(db)
        if not db: return None
        path = '{}/{}'.format(network.quoteall(db), DesignPath(show, '_show'))
        if id: path += '/' + network.quoteall(id)
        return self._call('GET', WithQuery(path, options))

    # VIEW API

    def _viewRows(self, view:str, db:str, options:dict) -> list:
        if not view:
            self.L.warning("view not defined")
            return None

        db = self._database(db)
        if not db: return None
        path = '{}/{}'.format(network.quoteall(db), DesignPath(view, '_view'))
        data = self._call('GET', WithQuery(path, options))

        if not isinstance(data, dict):
            return None

        return data.get('rows') or []

    def getView(self, view:str=None, db:str=None, **options) -> dict:
        """
        Query a view and return its rows as a mapping of the row keys to
        their values (or documents, with ``include_docs=True``).

        Query options with "key" in their name are JSON-encoded (eg.,
        ``key='foo'`` or ``startkey=['a', 1]``).

        Rows without a key are stored under a running number, and rows with
        a list key are nested one level per item of the key. When several
        rows share a key, only the last one is kept.

        :param view: The view's name as ``design-doc/view-name``.
        :param options: Optional query parameters.
        :return: The mapping, or ``None`` if there are no rows or the request
                 failed.
        """
        return KeyedRows(self._viewRows(view, db, options))

    def getGroupedView(self, view:str=None, db:str=None, **options) -> dict:
        """
        Query a reduce view grouped by its keys (unless another
        ``group_level`` is given), returning the nested mapping of
        :meth:`getView`.
        """
        if 'group_level' not in options:
            options.setdefault('group', True)

        return self.getView(view, db, **options)

    def getArrayView(self, view:str=None, db:str=None, **options) -> list:
        """
        Query a view and return its rows as a list, in server order.

        Items are the documents (with ``include_docs=True``), the values
        with the document ID as ``id`` added (for mapping values), or the
        entire rows (for anything else, like reduce results).

        :return: The list, or ``None`` if the request failed.
        """
        rows = self._viewRows(view, db, options)
        return None if rows is None else ArrayRows(rows)

    def getPostView(self, view:str=None, opts:dict=None, db:str=None,
                    **options) -> dict:
        """
        Query a view with a ``POST`` body, eg. ``opts={'keys': [...]}``, and
        return the rows as a mapping of keys to values, with the document ID
        added as ``id`` to mapping values.

        :param opts: The JSON body of the request.
        :param options: Optional query parameters.
        :return: The mapping or ``None``.
        """
        if not view:
            self.L.warning("view not defined")
            return None

        if not opts:
            self.L.warning("no options defined - use getView instead")
            return None

        db = self._database(db)
        if not db: return None
        path = '{}/{}'.format(network.quoteall(db), DesignPath(view, '_view'))
        data = self._call('POST', WithQuery(path, options), opts)

        if not isinstance(data, dict):
            return None

        return PostedRows(data.get('rows'))

    def listView(self, list:str=None, view:str=None, db:str=None,
                 **options):
        r"""
        Format a view using a **list function**, returning the result
        produced by it.

        List functions are made available at:

        /\ **db**\ /\ _design/\ **design-doc**\ /\ _list/\ **list-name**\ /\ **view-name**

        :param list: The name of the list function.
        :param view: The view as ``design-doc/view-name``; the list function
                     must be in the same design document.
        :param options: Optional query parameters.
        :return: The decoded JSON or a :class:`.network.Attachment` with the
                 raw output, or ``None``.
        """
        if not list:
            self.L.warning("list function not defined")
            return None

        if not view:
            self.L.warning("view not defined")
            return None

        db = self._database(db)
        if not db: return None
        view = view[1:] if view.startswith('/') else view
        design, _, name = view.partition('/')
        path = '{}/_design/{}/_list/{}/{}'.format(network.quoteall(db),
                                                  design, list, name)
        return self._call('GET', WithQuery(path, options))

    def getDesignDocs(self, db:str=None) -> [str]:
        """
        Return the names of all design documents (without the ``_design/``
        prefix), or ``None``.
        """
        db = self._database(db)
        if not db: return None
        path = '{}/_all_docs'.format(network.quoteall(db))
        data = self._call('GET', WithQuery(path, {'startkey': '_design/',
                                                  'endkey': '_design0'}))

        if not isinstance(data, dict):
            return None

        return [row['key'].split('/', 1)[1] for row in data.get('rows', ())]

    # ATTACHMENT API

    def putFile(self, content=None, filename:str=None, content_type:str=None,
                id:str=None, rev:str=None, db:str=None) -> (str, str):
        """
        Create or replace an attachment.

        :param content: The attachment as `bytes` or `str` (sent UTF-8
                        encoded).
        :param filename: The name of the attachment file.
        :param content_type: MIME type of the attachment; if omitted, it is
            guessed based on the *filename* extension.
        :param id: The document to attach the file to; if omitted, a new,
            empty document is created first.
        :param rev: The document's current revision; if omitted, it is looked
            up (and the document is created if it does not exist).
        :return: The document's ``(id, rev)`` tuple or ``None``.
        """
        if content is None:
            self.L.warning("file content not defined")
            return None

        if not filename:
            self.L.warning("file name not defined")
            return None

        db = self._database(db)
        if not db: return None

        if content_type is None:
            content_type = mimetypes.guess_type(filename)[0]

            if content_type is None:
                content_type = 'text/plain' if isinstance(content, str) \
                               else 'application/octet-stream'

        if isinstance(content, str):
            content = content.encode('utf-8')

            if 'charset' not in content_type:
                content_type += '; charset=utf-8'

        if not id:
            created = self.putDoc({}, db)
            if not created: return None
            id, rev = created
        elif not rev:
            rev = self.headDoc(id, db)

        path = DocPath(db, id, filename)
        if rev: path = WithQuery(path, {'rev': rev})
        data = self._call('PUT', path, content, content_type)

        if not isinstance(data, dict) or 'rev' not in data:
            return None

        return data.get('id', id), data['rev']

    def getFile(self, id:str=None, filename:str=None,
                db:str=None) -> network.Attachment:
        """
        Return an attachment as a :class:`.network.Attachment` with the raw
        data and its content type, or ``None``.

        Note that attachments containing JSON are returned decoded.
        """
        if not id:
            self.L.warning("document ID not defined")
            return None

        if not filename:
            self.L.warning("file name not defined")
            return None

        db = self._database(db)
        if not db: return None
        return self._call('GET', DocPath(db, id, filename))

    def deleteFile(self, id:str=None, filename:str=None, rev:str=None,
                   db:str=None) -> (str, str):
        """
        Delete an attachment, looking up the document's current revision if
        *rev* is not given.

        :return: The document's ``(id, rev)`` tuple or ``None``.
        """
        if not id:
            self.L.warning("document ID not defined")
            return None

        if not filename:
            self.L.warning("file name not defined")
            return None

        db = self._database(db)
        if not db: return None

        if not rev:
            rev = self.headDoc(id, db)

            if not rev:
                self.L.warning("document %s not found in %s", id, db)
                return None

        path = WithQuery(DocPath(db, id, filename), {'rev': rev})
        data = self._call('DELETE', path)

        if not isinstance(data, dict) or 'rev' not in data:
            return None

        return data.get('id', id), data['rev']

    # DATABASE API

    def createDb(self, name:str=None, use:bool=False) -> dict:
        """
        Create the database *name* (or the default database).

        :param use: Make *name* the default database first.
        :return: The server's response (``{'ok': True}``) or ``None``.
        """
        if name and use:
            self.configure(db=name)

        name = self._database(name)
        if not name: return None
        return self._call('PUT', network.quoteall(name))

    def deleteDb(self, name:str=None, use:bool=False) -> dict:
        """
        Delete the database *name* (or the default database).

        :param use: Make *name* the default database first.
        :return: The server's response (``{'ok': True}``) or ``None``.
        """
        if name and use:
            self.configure(db=name)

        name = self._database(name)
        if not name: return None
        return self._call('DELETE', network.quoteall(name))

    def allDbs(self) -> [str]:
        """
        Return the names of all databases, or ``None``.
        """
        return self._call('GET', '_all_dbs')

    def changes(self, db:str=None, **options) -> dict:
        """
        Retrieve the changes feed of the database.

        A **change** has the following fields:

         * ``seq`` -- The sequence number of the particular change.
         * ``id`` -- The ID of the changed document.
         * ``changes``-- A list of revisions as: ``[{"rev": "...."}]``.
         * ``deleted`` -- Only present, with a value of ``True``, if the
           document was deleted.

        :param options: Query parameters, eg. ``since=0`` or ``limit=10``.
        :return: The feed as ``{'results': [...], 'last_seq': ...}`` or
                 ``None``.
        """
        db = self._database(db)
        if not db: return None
        path = '{}/_changes'.format(network.quoteall(db))
        return self._call('GET', WithQuery(path, options))

    def purge(self, db:str=None) -> dict:
        """
        Purge deleted documents from the database; **experimental**.

        Reads up to :attr:`storecouch.config.Config.purge_limit` changes and
        purges the revision of each deleted document found, one request per
        document.

        :return: A mapping of the change sequence numbers to the purge
                 responses, or ``None``.
        """
        db = self._database(db)
        if not db: return None
        feed = self.changes(db, limit=self.config.purge_limit, since=0)

        if not isinstance(feed, dict):
            return None

        path = '{}/_purge'.format(network.quoteall(db))
        result = {}

        for change in feed.get('results', ()):
            if not change.get('deleted'):
                continue

            rev = change['changes'][0]['rev']
            result[change['seq']] = self._call('POST', path,
                                               {change['id']: [rev]})

        return result

    def viewCleanup(self, db:str=None) -> dict:
        """
        Remove index files no longer required by any design document.
        """
        db = self._database(db)
        if not db: return None
        return self._call('POST', '{}/_view_cleanup'.format(
            network.quoteall(db)
        ))

    def compactDesign(self, design:str=None, db:str=None) -> dict:
        """
        Compact the view indexes of the design document *design*.
        """
        if not design:
            self.L.warning("design document not defined")
            return None

        db = self._database(db)
        if not db: return None
        return self._call('POST', '{}/_compact/{}'.format(
            network.quoteall(db), network.quoteall(design)
        ))

    def compact(self, purge:bool=False, view_compact:bool=False,
                db:str=None) -> dict:
        """
        Compact the database, optionally purging deleted documents first
        and cleaning up and compacting all view indexes.

        :return: A mapping of the sub-results, under the keys ``purge``,
                 ``view_compact``, ``<design-doc>_compact`` (for every design
                 document) and ``compact``; or ``None``.
        """
        db = self._database(db)
        if not db: return None
        result = {}

        if purge:
            result['purge'] = self.purge(db)

        if view_compact:
            result['view_compact'] = self.viewCleanup(db)

            for design in self.getDesignDocs(db) or ():
                result[design + '_compact'] = self.compactDesign(design, db)

        result['compact'] = self._call('POST', '{}/_compact'.format(
            network.quoteall(db)
        ))
        return result
