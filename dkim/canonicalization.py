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
    'CanonicalizationPolicy',
    'Relaxed',
    'Simple',
    ]


def compress_wsp(value):
    """Turn tabs into spaces and collapse every run of spaces to one.

    >>> compress_wsp(b' a \\t\\t b  ')
    b' a b '
    """
    value = value.replace(b"\t", b" ")
    while b"  " in value:
        value = value.replace(b"  ", b" ")
    return value


def normalize_line_ending(line):
    """Return line terminated by exactly one CRLF."""
    if line.endswith(b"\r\n"):
        return line
    if line.endswith(b"\n"):
        return line[:-1] + b"\r\n"
    return line + b"\r\n"


class Simple:
    """Class that represents the "simple" canonicalization algorithm."""

    name = b"simple"

    @staticmethod
    def canonicalize_header_value(value):
        # No changes to header values.
        return value

    @staticmethod
    def canonicalize_headers(headers):
        # No changes to headers.
        return headers

    @staticmethod
    def canonicalize_body_line(line):
        # Only the line ending is normalized.
        return normalize_line_ending(line)


class Relaxed:
    """Class that represents the "relaxed" canonicalization algorithm."""

    name = b"relaxed"

    @staticmethod
    def canonicalize_header_value(value):
        # Compress WSP to single space, then drop WSP before a line break.
        return compress_wsp(value).replace(b" \r\n", b"\r\n")

    @staticmethod
    def canonicalize_headers(headers):
        # Convert all header field names to lowercase.
        # Unfold all header lines.
        # Compress WSP to single space.
        # Remove all WSP at the start or end of the field value (strip).
        return [
            (name.rstrip().lower(),
             Relaxed.canonicalize_header_value(
                 value.replace(b"\r\n", b"")).strip(b" ") + b"\r\n")
            for name, value in headers]

    @staticmethod
    def canonicalize_body_line(line):
        # Remove all trailing WSP (and the line ending) and compress the rest.
        line = compress_wsp(line.rstrip(b" \t\r\n"))
        return line + b"\r\n"


algorithms = dict((c.name, c) for c in (Simple, Relaxed))


class CanonicalizationPolicy(object):
    """Pair of header and body canonicalization algorithms."""

    def __init__(self, header_algorithm, body_algorithm):
        self.header_algorithm = header_algorithm
        self.body_algorithm = body_algorithm

    @classmethod
    def from_c_value(cls, c):
        """Construct the policy from the value of a c= tag.

        The header side is relaxed when the value starts with "relaxed",
        the body side when it ends with "/relaxed"; anything else is simple.

        >>> CanonicalizationPolicy.from_c_value(b'relaxed').to_c_value()
        b'relaxed/simple'
        >>> CanonicalizationPolicy.from_c_value(None).to_c_value()
        b'simple/simple'
        """
        if c is None:
            c = b''
        header_algorithm = Simple
        body_algorithm = Simple
        if c.startswith(Relaxed.name):
            header_algorithm = Relaxed
        if c.endswith(b"/" + Relaxed.name):
            body_algorithm = Relaxed
        return cls(header_algorithm, body_algorithm)

    def to_c_value(self):
        return b'/'.join(
            (self.header_algorithm.name, self.body_algorithm.name))

    def canonicalize_headers(self, headers):
        return self.header_algorithm.canonicalize_headers(headers)

    def canonicalize_body_line(self, line):
        return self.body_algorithm.canonicalize_body_line(line)

    def __eq__(self, other):
        if not isinstance(other, CanonicalizationPolicy):
            return NotImplemented
        return (self.header_algorithm is other.header_algorithm and
                self.body_algorithm is other.body_algorithm)

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __repr__(self):
        return "CanonicalizationPolicy(%s)" % self.to_c_value().decode('ascii')
