"""
.. py:module:: serializer
   :synopsis: JSON bodies for CouchDB requests and responses.

.. License: GNU Affero GPL v3 (http://www.gnu.org/licenses/agpl.html)

Pre-configured encoder and decoder instances from the json package in the
standard library, producing the most compact request bodies.
"""

from json.decoder import JSONDecoder
from json.encoder import JSONEncoder

__all__ = ['Decode', 'Encode', 'EncodeBytes']


def IsoformatSerializer(obj):
    """
    Serialization of sets (as lists) and any object that has a `isoformat()`
    method, particularly date and time objects.
    """
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=repr)
    elif hasattr(obj, 'isoformat'):
        return obj.isoformat()
    else:
        raise TypeError(repr(obj) + " is not JSON serializable")


# No whitespace and no circular reference check; NaN is not valid JSON for
# the server, so it is rejected here already.
DECODER = JSONDecoder()

ENCODER = JSONEncoder(check_circular=False, separators=(',', ':'),
                      allow_nan=False, default=IsoformatSerializer)


def Decode(data) -> object:
    """
    Decode a JSON *data* string (or UTF-8 encoded `bytes`) to a Python object.

    :raise ValueError: If *data* is not valid JSON (or not valid UTF-8).
    """
    if isinstance(data, (bytes, bytearray)):
        data = data.decode('utf-8')

    return DECODER.decode(data)


def Encode(obj:object) -> str:
    """
    Encode basic Python objects as the most compact JSON strings.

    Date and time objects are iso-formatted according to
    `ISO 8601 <http://en.wikipedia.org/wiki/ISO_8601>`_.
    """
    return ENCODER.encode(obj)


def EncodeBytes(obj:object) -> bytes:
    """
    Encode *obj* like :func:`.Encode`, as UTF-8 `bytes` ready to be sent.
    """
    return Encode(obj).encode('utf-8')
