"""
.. py:module:: storecouch
   :synopsis: A convenient CouchDB client for Python 3.

.. License: GNU Affero GPL v3 (http://www.gnu.org/licenses/agpl.html)
"""

from storecouch.broker import Client, Document
from storecouch.config import COUCHDB_URL, Config, FromUrl
from storecouch.network import Attachment, HTTPError, PreconditionFailed, \
        ResourceConflict, ResourceNotFound, ServerError, Unauthorized
from storecouch.views import Row
