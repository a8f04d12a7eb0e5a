# This software is provided 'as-is', without any express or implied
# warranty.  In no event will the author be held liable for any damages
# arising from the use of this software.
#
# Permission is granted to anyone to use this software for any purpose,
# including commercial applications, and to alter it and redistribute it
# freely, subject to the following restrictions:
#
# 1. The origin of this software must not be misrepresented; you must not
#    claim that you wrote the original software. If you use this software
#    in a product, an acknowledgment in the product documentation would be
#    appreciated but is not required.
# 2. Altered source versions must be plainly marked as such, and must not be
#    misrepresented as being the original software.
# 3. This notice may not be removed or altered from any source distribution.
#
# Copyright (c) 2011 William Grant <me@williamgrant.id.au>

"""Typed DKIM-Signature and public key records.

Both records are read from a Tag=Value list (RFC6376 section 3.2) by
dispatching every tag to a setter in a static table, and written back by
walking a second static table of (tag, attribute, encoder).
"""

import base64
import binascii

from dkim.canonicalization import CanonicalizationPolicy
from dkim.crypto import HASH_ALGORITHMS
from dkim.util import (
    EmptyKey,
    MalformedTagValue,
    parse_tag_value,
    UnsupportedAlgorithm,
    UnsupportedQueryType,
    UnsupportedTag,
    UnsupportedVersion,
    )

__all__ = [
    'parse_public_key_record',
    'parse_signature',
    'PublicKeyRecord',
    'SignatureHeader',
    ]

SIGNATURE_VERSION = b"1"
KEY_VERSION = b"DKIM1"
QUERY_TYPE = b"dns/txt"


def decode_base64(tag, value):
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedTagValue(
            "%s= value is not valid base64 (%r): %s" % (tag, value, e))


def decode_int(tag, value):
    if not value.isdigit():
        raise MalformedTagValue(
            "%s= value is not a decimal integer (%r)" % (tag, value))
    return int(value)


def collapse_adjacent(names):
    """Drop names equal to the name right before them.

    Only immediate repeats are removed:

    >>> collapse_adjacent([b'From', b'From', b'To', b'From'])
    [b'From', b'To', b'From']
    """
    r = []
    for name in names:
        if not r or r[-1] != name:
            r.append(name)
    return r


class SignatureHeader(object):
    """Parsed value of a DKIM-Signature header field."""

    def __init__(self):
        self.version = None
        self.algorithm = None
        self.signature = None
        self.body_hash = None
        self.canonicalization = CanonicalizationPolicy.from_c_value(None)
        self.domain = None
        self.selector = None
        self.signed_headers = []
        self.identity = None
        self.length = None
        self.query_type = None
        self.timestamp = None
        self.expiration = None
        self.copied_headers = None
        #: Tag names in the order they appeared.
        self.tags = []

    def to_tag_value(self):
        """Serialize back to a Tag=Value list, omitting unset fields."""
        items = []
        for tag, attr, encode in SIGNATURE_FIELDS:
            value = getattr(self, attr)
            if value is None or value == []:
                continue
            items.append(tag + b"=" + encode(value))
        return b"; ".join(items)

    def __repr__(self):
        return "SignatureHeader(%r)" % self.to_tag_value()


def _set_version(sig, value):
    if value != SIGNATURE_VERSION:
        raise UnsupportedVersion("v= value is not 1 (%r)" % value)
    sig.version = value


def _set_algorithm(sig, value):
    if value not in HASH_ALGORITHMS:
        raise UnsupportedAlgorithm(
            "unsupported signature algorithm: %r" % value)
    sig.algorithm = value


def _set_signature(sig, value):
    sig.signature = decode_base64('b', value)


def _set_body_hash(sig, value):
    sig.body_hash = decode_base64('bh', value)


def _set_canonicalization(sig, value):
    sig.canonicalization = CanonicalizationPolicy.from_c_value(value)


def _set_domain(sig, value):
    sig.domain = value


def _set_signed_headers(sig, value):
    sig.signed_headers = value.split(b":")


def _set_identity(sig, value):
    sig.identity = value


def _set_length(sig, value):
    sig.length = decode_int('l', value)


def _set_query_type(sig, value):
    if value not in (b"dns", QUERY_TYPE):
        raise UnsupportedQueryType("q= value is not dns/txt (%r)" % value)
    sig.query_type = QUERY_TYPE


def _set_selector(sig, value):
    sig.selector = value


def _set_timestamp(sig, value):
    sig.timestamp = decode_int('t', value)


def _set_expiration(sig, value):
    sig.expiration = decode_int('x', value)


def _set_copied_headers(sig, value):
    copied = {}
    for item in value.split(b"|"):
        try:
            name, copy = item.split(b":", 1)
        except ValueError:
            raise MalformedTagValue("z= entry has no value (%r)" % item)
        copied[name] = copy
    sig.copied_headers = copied


SIGNATURE_SETTERS = {
    b'v': _set_version,
    b'a': _set_algorithm,
    b'b': _set_signature,
    b'bh': _set_body_hash,
    b'c': _set_canonicalization,
    b'd': _set_domain,
    b'h': _set_signed_headers,
    b'i': _set_identity,
    b'l': _set_length,
    b'q': _set_query_type,
    b's': _set_selector,
    b't': _set_timestamp,
    b'x': _set_expiration,
    b'z': _set_copied_headers,
    }


def _int(n):
    return str(n).encode('ascii')


SIGNATURE_FIELDS = (
    (b'v', 'version', bytes),
    (b'a', 'algorithm', bytes),
    (b'c', 'canonicalization', lambda c: c.to_c_value()),
    (b'd', 'domain', bytes),
    (b's', 'selector', bytes),
    (b'i', 'identity', bytes),
    (b'l', 'length', _int),
    (b'q', 'query_type', bytes),
    (b't', 'timestamp', _int),
    (b'x', 'expiration', _int),
    (b'h', 'signed_headers', lambda h: b":".join(h)),
    (b'z', 'copied_headers',
     lambda z: b"|".join(k + b":" + v for k, v in z.items())),
    (b'bh', 'body_hash', base64.b64encode),
    (b'b', 'signature', base64.b64encode),
    )


def parse_signature(value, collapse_repeated_headers=True):
    """Parse the value of a DKIM-Signature header field.

    Unknown tags are rejected.  No tag is mandatory here; callers decide
    what they require.

    @param value: the raw header field value (folding is fine)
    @param collapse_repeated_headers: drop h= entries that immediately
    repeat the previous entry
    @return: L{SignatureHeader}
    """
    sig = SignatureHeader()
    for tag, tag_value in parse_tag_value(value).items():
        try:
            setter = SIGNATURE_SETTERS[tag]
        except KeyError:
            raise UnsupportedTag("unsupported tag: %r" % tag)
        setter(sig, tag_value)
        sig.tags.append(tag)
    if collapse_repeated_headers:
        sig.signed_headers = collapse_adjacent(sig.signed_headers)
    return sig


class PublicKeyRecord(object):
    """Parsed DKIM public key TXT record."""

    def __init__(self, public_key, key_type=b'rsa', version=None, flags=None):
        self.public_key = public_key
        self.key_type = key_type
        self.version = version
        self.flags = flags

    def __repr__(self):
        return "PublicKeyRecord(k=%r, t=%r, %d key bytes)" % (
            self.key_type, self.flags, len(self.public_key))


def parse_public_key_record(txt, logger=None):
    """Parse a DKIM public key record.

    @param txt: the TXT record as bytes or str
    @param logger: optional logger told about ignored tags
    @return: L{PublicKeyRecord}
    """
    if isinstance(txt, str):
        try:
            txt = txt.encode('ascii')
        except UnicodeEncodeError:
            raise MalformedTagValue("public key record is not ASCII: %r" % txt)
    tags = parse_tag_value(txt)
    version = tags.get(b'v')
    if version is not None and version != KEY_VERSION:
        raise UnsupportedVersion("v= value is not DKIM1 (%r)" % version)
    if not tags.get(b'p'):
        raise EmptyKey("public key record has no key material: %r" % txt)
    public_key = decode_base64('p', tags[b'p'])
    if logger is not None:
        for tag in tags:
            if tag not in (b'v', b'k', b't', b'p'):
                logger.debug("ignoring key record tag %r" % tag)
    return PublicKeyRecord(
        public_key, key_type=tags.get(b'k', b'rsa'), version=version,
        flags=tags.get(b't'))
