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

import logging

__all__ = [
    'DKIMException',
    'DuplicateTag',
    'EmptyKey',
    'InvalidTagSpec',
    'InvalidTagValueList',
    'KeyFormatError',
    'MalformedTagValue',
    'UnsupportedAlgorithm',
    'UnsupportedQueryType',
    'UnsupportedTag',
    'UnsupportedVersion',
    'get_default_logger',
    'parse_tag_value',
    ]


class DKIMException(Exception):
    """Base class for DKIM errors."""
    pass


class KeyFormatError(DKIMException):
    """Key format error while parsing an RSA public key."""
    pass


class InvalidTagValueList(DKIMException):
    pass


class MalformedTagValue(InvalidTagValueList):
    """A tag value could not be decoded (bad base64, integer, ...)."""
    pass


class DuplicateTag(MalformedTagValue):
    pass


class InvalidTagSpec(MalformedTagValue):
    pass


class UnsupportedTag(InvalidTagValueList):
    pass


class UnsupportedVersion(InvalidTagValueList):
    pass


class UnsupportedAlgorithm(InvalidTagValueList):
    pass


class UnsupportedQueryType(InvalidTagValueList):
    pass


class EmptyKey(InvalidTagValueList):
    """The public key record carries no key material."""
    pass


def get_default_logger():
    """Get the default dkimpy logger."""
    logger = logging.getLogger('dkimpy')
    if not logger.handlers:
        logger.addHandler(logging.NullHandler())
    return logger


def parse_tag_value(tag_list):
    """Parse a DKIM Tag=Value list.

    Interprets the syntax specified by RFC6376 section 3.2.  All whitespace
    is removed first, so folded header values are accepted as they are.

    @param tag_list: A byte string containing a DKIM Tag=Value list.
    @return: dict of tag to value, in the order the tags appeared.
    """
    tags = {}
    for tag_spec in b"".join(tag_list.split()).split(b';'):
        # Trailing (and doubled) semicolons are valid.
        if not tag_spec:
            continue
        try:
            key, value = tag_spec.split(b'=', 1)
        except ValueError:
            raise InvalidTagSpec(tag_spec)
        if key in tags:
            raise DuplicateTag(key)
        tags[key] = value
    return tags
