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
# Copyright (c) 2008 Greg Hewgill http://hewgill.com
#
# This has been modified from the original software.
# Copyright (c) 2011 William Grant <me@williamgrant.id.au>

__all__ = [
    'DigestTooLargeError',
    'HASH_ALGORITHMS',
    'InvalidPublicKeyEncoding',
    'parse_public_key',
    'RSASSA_PKCS1_v1_5_verify',
    ]

import hashlib

from dkim.asn1 import (
    ASN1FormatError,
    asn1_build,
    asn1_parse,
    BIT_STRING,
    INTEGER,
    SEQUENCE,
    OBJECT_IDENTIFIER,
    OCTET_STRING,
    NULL,
    )
from dkim.util import KeyFormatError


ASN1_Object = [
    (SEQUENCE, [
        (SEQUENCE, [
            (OBJECT_IDENTIFIER,),
            (NULL,),
        ]),
        (BIT_STRING,),
    ])
]

ASN1_RSAPublicKey = [
    (SEQUENCE, [
        (INTEGER,),
        (INTEGER,),
    ])
]


# These values come from RFC 3447, section 9.2 Notes, page 43.
HASH_ID_MAP = {
    'sha1': b"\x2b\x0e\x03\x02\x1a",
    'sha256': b"\x60\x86\x48\x01\x65\x03\x04\x02\x01",
    }

HASH_ALGORITHMS = {
    b'rsa-sha1': hashlib.sha1,
    b'rsa-sha256': hashlib.sha256,
    }


class DigestTooLargeError(Exception):
    """The digest is too large to fit within the requested length."""
    pass


class InvalidPublicKeyEncoding(KeyFormatError):
    """The data could not be parsed as a public key."""
    pass


def parse_public_key(data):
    """Parse an RSA public key.

    @param data: DER-encoded X.509 subjectPublicKeyInfo
        containing an RFC3447 RSAPublicKey.
    @return: RSA public key
    """
    try:
        x = asn1_parse(ASN1_Object, data)
        # The first byte of the BIT STRING counts its unused bits.
        pkd = asn1_parse(ASN1_RSAPublicKey, x[0][1][1:])
    except ASN1FormatError as e:
        raise InvalidPublicKeyEncoding(str(e))
    pk = {
        'modulus': pkd[0][0],
        'publicExponent': pkd[0][1],
    }
    return pk


def EMSA_PKCS1_v1_5_encode(digest, hash_name, mlen):
    """Encode a digest with RFC3447 EMSA-PKCS1-v1_5.

    @param digest: digest bytes to encode
    @param hash_name: name of the hash that produced the digest
    @param mlen: desired message length
    @return: encoded digest byte string
    """
    dinfo = asn1_build(
        (SEQUENCE, [
            (SEQUENCE, [
                (OBJECT_IDENTIFIER, HASH_ID_MAP[hash_name]),
                (NULL, None),
            ]),
            (OCTET_STRING, digest),
        ]))
    if len(dinfo) + 11 > mlen:
        raise DigestTooLargeError()
    return b"\x00\x01" + b"\xff" * (mlen - len(dinfo) - 3) + b"\x00" + dinfo


def str2int(s):
    """Convert a byte string to an integer.

    @param s: byte string representing a positive integer to convert
    @return: converted integer
    """
    r = 0
    for c in s:
        r = (r << 8) | c
    return r


def int2str(n, length=-1):
    """Convert an integer to a byte string.

    @param n: positive integer to convert
    @param length: minimum length
    @return: converted bytestring, of at least the minimum length if it was
        specified
    """
    assert n >= 0
    r = bytearray()
    while length < 0 or len(r) < length:
        r.append(n & 0xff)
        n >>= 8
        if length < 0 and n == 0:
            break
    r.reverse()
    assert length < 0 or len(r) == length
    return bytes(r)


def perform_rsa(message, exponent, modulus, mlen):
    """Perform RSA signing or verification.

    @param message: byte string to operate on
    @param exponent: public or private key exponent
    @param modulus: key modulus
    @param mlen: desired output length
    @return: byte string result of the operation
    """
    return int2str(pow(str2int(message), exponent, modulus), mlen)


def RSASSA_PKCS1_v1_5_verify(digest, hash_name, signature, pk):
    """Verify a digest signed with RFC3447 RSASSA-PKCS1-v1_5.

    @param digest: digest bytes to check
    @param hash_name: name of the hash that produced the digest
    @param signature: signed digest byte string
    @param pk: public key, as returned by L{parse_public_key}
    @return: True if the signature is valid, False otherwise
    """
    modlen = len(int2str(pk['modulus']))
    encoded_digest = EMSA_PKCS1_v1_5_encode(digest, hash_name, modlen)
    signed_digest = perform_rsa(
        signature, pk['publicExponent'], pk['modulus'], modlen)
    return encoded_digest == signed_digest
