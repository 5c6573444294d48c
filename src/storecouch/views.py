"""
.. py:module:: views
   :synopsis: View paths, query options and view result shapes.

.. License: GNU Affero GPL v3 (http://www.gnu.org/licenses/agpl.html)

CouchDB returns view results as ``{"rows": [{"id": ..., "key": ...,
"value": ...}, ...]}``. The functions here turn the rows into the shapes the
client's view accessors return:

>>> rows = [{'id': 'a', 'key': 'x', 'value': 1},
...         {'id': 'b', 'key': ['y', 'z'], 'value': 2}]
>>> KeyedRows(rows)
{'x': 1, 'y': {'z': 2}}
>>> ArrayRows(rows)
[{'id': 'a', 'key': 'x', 'value': 1}, {'id': 'b', 'key': ['y', 'z'], 'value': 2}]
"""
from urllib.parse import quote

from storecouch import serializer

__all__ = ['Row', 'ArrayRows', 'DesignPath', 'EncodeOptions', 'InsertNested',
           'KeyedRows', 'PostedRows']


class Row(dict):
    """
    Representation of a row returned by database views.
    """

    def __repr__(self) -> str:
        keys = 'id', 'key', 'error', 'value'
        items = ['%s=%r' % (k, self[k]) for k in keys if k in self]
        return '<%s %s>' % (type(self).__name__, ', '.join(items))

    @property
    def id(self) -> str:
        """
        The associated Document ID if it exists or ``None`` when it
        doesn't (reduce results).
        """
        return self.get('id')

    @property
    def key(self) -> object:
        """
        The ``key`` of this row, or ``None`` if it doesn't exist.
        """
        return self.get('key')

    @property
    def value(self) -> object:
        """
        The ``value`` of this row, or ``None`` if it doesn't exist.
        """
        return self.get('value')

    @property
    def doc(self) -> dict:
        """
        The associated document for the row. This is only present when the
        view was accessed with ``include_docs=true`` as a query parameter,
        otherwise this property will be ``None``.
        """
        return self.get('doc')


def DesignPath(name:str, kind:str) -> str:
    """
    Expand a ``'design-doc/name'`` style *name* to the path of a design
    document function of the given *kind* (``_view``, ``_show``, ...).

    >>> DesignPath('/prices/usd', '_view')
    '_design/prices/_view/usd'

    Names without a slash are not validated and yield an incomplete path:

    >>> DesignPath('prices', '_view')
    '_design/prices/_view/'
    """
    if name.startswith('/'):
        name = name[1:]

    design, _, function = name.partition('/')
    return '_design/{}/{}/{}'.format(design, kind, function)


def EncodeOptions(options:dict) -> str:
    """
    Encode view query *options* as a query string.

    Values of options with "key" in their name (``key``, ``keys``,
    ``startkey``, ``endkey_docid``, ...) are JSON-encoded; all values are
    percent-escaped.

    >>> EncodeOptions({'key': 'foo'})
    'key=%22foo%22'
    >>> EncodeOptions({'startkey': ['a', 1], 'limit': 10, 'group': True})
    'startkey=%5B%22a%22%2C1%5D&limit=10&group=true'
    """
    pairs = []

    for name, value in options.items():
        if 'key' in name:
            value = serializer.Encode(value)
        elif value is True:
            value = 'true'
        elif value is False:
            value = 'false'

        pairs.append('{}={}'.format(name, quote(str(value), safe='')))

    return '&'.join(pairs)


def _hashable(key):
    if isinstance(key, (dict, list)):
        return serializer.Encode(key)

    return key


def InsertNested(result:dict, keys:list, value:object) -> dict:
    """
    Insert *value* into the *result* mapping, using every item of *keys* as
    one nesting level and the last item as the key of the *value*.

    Missing levels are created; a level that holds a value other than a
    mapping is replaced by a new mapping.

    >>> InsertNested({'a': {'x': 1}}, ['a', 'b', 'c'], 2)
    {'a': {'x': 1, 'b': {'c': 2}}}
    """
    node = result

    for key in keys[:-1]:
        key = _hashable(key)
        child = node.get(key)

        if not isinstance(child, dict):
            child = node[key] = {}

        node = child

    node[_hashable(keys[-1])] = value
    return result


def KeyedRows(rows:list) -> dict:
    """
    Map the view *rows* by their keys.

    The full ``doc`` of a row is used if present, its ``value`` otherwise;
    rows with neither are skipped. Rows without a (true) key are stored under
    a counter of the rows stored so far. Sequence keys store the value in
    nested mappings (see :func:`.InsertNested`).

    When several rows share a key, the last row wins.

    :return: The mapping, or ``None`` if there are no rows at all.
    """
    if not rows:
        return None

    result = {}
    count = 0

    for row in map(Row, rows):
        value = row.doc if row.doc is not None else row.value

        if value is None:
            continue

        key = row.key

        if isinstance(key, list) and key:
            InsertNested(result, key, value)
        else:
            result[_hashable(key) if key else count] = value

        count += 1

    return result


def ArrayRows(rows:list) -> list:
    """
    List the view *rows* in server order.

    Each item is the row's ``doc`` if present, or its ``value`` (with the
    row's document ID added as ``id``) if that is a mapping, or else the
    entire row (eg., for reduce results). Rows with neither a ``doc`` nor a
    ``value`` are skipped.
    """
    result = []

    for row in map(Row, rows or ()):
        if row.doc is not None:
            result.append(row.doc)
        elif row.value is None:
            continue
        elif isinstance(row.value, dict):
            row.value['id'] = row.id
            result.append(row.value)
        else:
            result.append(dict(row))

    return result


def PostedRows(rows:list) -> dict:
    """
    Map the view *rows* from a ``POST`` with multiple ``keys`` by their keys.

    Mapping values get the row's document ID added as ``id``. Rows without a
    value are skipped; rows without a key all end up under ``None``.
    """
    result = {}

    for row in map(Row, rows or ()):
        if row.value is None:
            continue

        if isinstance(row.value, dict):
            row.value['id'] = row.id

        result[_hashable(row.key)] = row.value

    return result
