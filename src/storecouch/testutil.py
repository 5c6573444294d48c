"""
.. py:module:: testutil
   :synopsis: A fake session and a database mixin for the TestCases.

.. License: GNU Affero GPL v3 (http://www.gnu.org/licenses/agpl.html)
"""
from collections import namedtuple
import random
import sys
from urllib.parse import unquote, urlsplit

from storecouch import broker, config, network, serializer


class Sent(namedtuple('Sent', 'method url body headers timeout')):
    """
    A request recorded by the :class:`.FakeSession`.
    """

    @property
    def path(self) -> str:
        """
        The (still escaped) path and query of the URL, without the leading
        slash.
        """
        parts = urlsplit(self.url)
        path = parts.path[1:]
        return '{}?{}'.format(path, parts.query) if parts.query else path

    @property
    def query(self) -> dict:
        """
        The unescaped query parameters.
        """
        query = urlsplit(self.url).query
        return dict((k, unquote(v)) for k, _, v in
                    (p.partition('=') for p in query.split('&') if p))

    @property
    def json(self) -> object:
        """
        The decoded JSON body.
        """
        return serializer.Decode(self.body)


def Json(data:object, status:int=200) -> network.Response:
    """
    A JSON response.
    """
    headers = network.Headers({'Content-Type': 'application/json'})
    return network.Response(status, headers, serializer.EncodeBytes(data))


def Etag(rev:str) -> network.Response:
    """
    A ``HEAD`` response for a document at revision *rev*.
    """
    headers = network.Headers({'ETag': '"{}"'.format(rev)})
    return network.Response(200, headers, b'')


def Raw(data:bytes, content_type:str) -> network.Response:
    """
    A response with a non-JSON body.
    """
    headers = network.Headers({'Content-Type': content_type})
    return network.Response(200, headers, data)


class FakeSession:
    """
    A stand-in for :class:`storecouch.network.Session` that records all
    requests and replays the given responses (or raises them, if they are
    exceptions) in order.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def request(self, method:str, url:str, body:bytes=None,
                headers:dict=None, timeout:float=None) -> network.Response:
        self.requests.append(Sent(method, url, body, headers, timeout))

        if not self.responses:
            raise AssertionError("unexpected request {} {}".format(method,
                                                                   url))

        response = self.responses.pop(0)

        if isinstance(response, Exception):
            raise response

        return response

    @property
    def methods(self) -> [str]:
        return [r.method for r in self.requests]

    @property
    def paths(self) -> [str]:
        return [r.path for r in self.requests]


class FakeClientMixin(object):
    """
    Creates a :class:`storecouch.broker.Client` for the database ``test`` on
    ``localhost`` that uses a :class:`.FakeSession` with the *responses*.
    """

    def fake(self, *responses, **fields) -> broker.Client:
        fields.setdefault('db', 'test')
        self.session = FakeSession(*responses)
        cfg = config.FromUrl('http://localhost:5984/')
        return broker.Client(cfg, self.session, **fields)


class TempDatabaseMixin(object):
    """
    Creates a client with a temporary database on the live server at
    :data:`storecouch.config.COUCHDB_URL`, removing the database afterwards.
    """

    def setUp(self):
        name = 'storecouch-python_%d' % random.randint(0, sys.maxsize)
        self.couch = broker.Client(db=name)
        self.assertEqual({'ok': True}, self.couch.createDb(), self.couch.err)

    def tearDown(self):
        self.couch.deleteDb()
