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
#
# This has been modified from the original software.
# Copyright (c) 2016 Google, Inc.
# Contact: Brandon Long <blong@google.com>
#
# This has been modified from the original software.
# Copyright (c) 2016 Scott Kitterman <scott@kitterman.com>
#


import base64
import io
import re

from dkim.canonicalization import (
    CanonicalizationPolicy,
    Relaxed,
    Simple,
    )
from dkim.crypto import (
    DigestTooLargeError,
    HASH_ALGORITHMS,
    InvalidPublicKeyEncoding,
    parse_public_key,
    RSASSA_PKCS1_v1_5_verify,
    )
from dkim.dnsplug import (
    get_txt,
    KeyResolver,
    MemoryCache,
    )
from dkim.signature import (
    parse_public_key_record,
    parse_signature,
    PublicKeyRecord,
    SignatureHeader,
    )
from dkim.util import (
    DKIMException,
    DuplicateTag,
    EmptyKey,
    get_default_logger,
    InvalidTagSpec,
    InvalidTagValueList,
    KeyFormatError,
    MalformedTagValue,
    UnsupportedAlgorithm,
    UnsupportedQueryType,
    UnsupportedTag,
    UnsupportedVersion,
    )

__all__ = [
    "DKIMException",
    "InternalError",
    "KeyFormatError",
    "MessageFormatError",
    "MissingTag",
    "SignatureHeaderNotFound",
    "NoPublicKeyFound",
    "InvalidPublicKeyEncoding",
    "InvalidTagValueList",
    "MalformedTagValue",
    "DuplicateTag",
    "InvalidTagSpec",
    "UnsupportedAlgorithm",
    "UnsupportedQueryType",
    "UnsupportedTag",
    "UnsupportedVersion",
    "EmptyKey",
    "Relaxed",
    "Simple",
    "CanonicalizationPolicy",
    "DKIM",
    "KeyResolver",
    "MemoryCache",
    "Message",
    "PublicKeyRecord",
    "SignatureHeader",
    "VerificationStatus",
    "get_txt",
    "verify",
]

def bitsize(x):
    """Return size of long in bits."""
    return len(bin(x)) - 2

class InternalError(DKIMException):
    """Internal error in dkim module. Should never happen."""
    pass

class MessageFormatError(DKIMException):
    """RFC822 message format error."""
    pass

class SignatureHeaderNotFound(MessageFormatError):
    """The message carries no signature header to verify."""
    pass

class MissingTag(MessageFormatError):
    """A tag required for verification is absent from the signature."""
    pass

class NoPublicKeyFound(KeyFormatError):
    """Neither the key cache nor DNS produced a public key record."""
    pass

class HashThrough(object):
    def __init__(self, hasher, debug=False):
        self.data = []
        self.hasher = hasher
        self.name = hasher.name
        self.debug = debug

    def update(self, data):
        if self.debug:
            self.data.append(data)
        return self.hasher.update(data)

    def digest(self):
        return self.hasher.digest()

    def hexdigest(self):
        return self.hasher.hexdigest()

    def hashed(self):
        return b''.join(self.data)

def select_headers(headers, include_headers):
    """Select message header fields to be verified.

    >>> h = [('from','biz'),('foo','bar'),('from','baz'),('subject','boring')]
    >>> i = ['from','subject','to','from']
    >>> select_headers(h,i)
    [('from', 'baz'), ('subject', 'boring'), ('from', 'biz')]
    >>> h = [('From','biz'),('Foo','bar'),('Subject','Boring')]
    >>> i = ['from','subject','to','from']
    >>> select_headers(h,i)
    [('From', 'biz'), ('Subject', 'Boring')]
    """
    sign_headers = []
    lastindex = {}
    for h in include_headers:
        assert h == h.lower()
        i = lastindex.get(h, len(headers))
        while i > 0:
            i -= 1
            if h == headers[i][0].lower():
                sign_headers.append(headers[i])
                break
        lastindex[h] = i
    return sign_headers

# FWS  =  ([*WSP CRLF] 1*WSP) /  obs-FWS ; Folding white space  [RFC5322]
FWS = br'(?:(?:\s*\r?\n)?\s+)?'
RE_BTAG = re.compile(br'((?:^|[;\s])b'+FWS+br'=)(?:'+FWS+br'[a-zA-Z0-9+/=])*(?:\r?\n\Z)?')

def hash_headers(hasher, canon_policy, headers, include_headers, sigheader):
    """Update hash for signed message header fields.

    @param headers: the message headers, already canonicalized by
    canon_policy
    @param include_headers: lower-cased names from the h= tag
    @param sigheader: (name, raw value) of the signature header field
    @return: the selected header fields
    """
    sign_headers = select_headers(headers, include_headers)
    # The b= value is removed before the signature header is hashed.  This
    # assumes that b= only appears once in the signature header.
    cheaders = canon_policy.canonicalize_headers(
        [(sigheader[0], RE_BTAG.sub(b'\\1', sigheader[1]))])
    for x, y in sign_headers:
        hasher.update(x)
        hasher.update(b":")
        hasher.update(y)
    # the dkim sig is hashed with no trailing crlf, even if the
    # canonicalization algorithm would add one.
    for x, y in cheaders:
        if y.endswith(b"\r\n"):
            y = y[:-2]
        hasher.update(x)
        hasher.update(b":")
        hasher.update(y)
    return sign_headers

def hash_body(hasher, canon_policy, body, length=None):
    """Update hash with the canonicalized message body.

    The body is read once, a line at a time.  Empty lines are held back
    until a non-empty line follows, so trailing empty lines are never
    hashed.

    @param body: iterable of body lines (a binary file object)
    @param length: hash at most this many canonicalized bytes (l= tag)
    @return: number of bytes hashed
    """
    blank = 0
    hashed = 0
    for line in body:
        line = canon_policy.canonicalize_body_line(line)
        if line == b"\r\n":
            blank += 1
            continue
        chunk = b"\r\n" * blank + line
        blank = 0
        if length is not None:
            chunk = chunk[:length - hashed]
        hasher.update(chunk)
        hashed += len(chunk)
        if length is not None and hashed >= length:
            break
    return hashed

def rfc822_parse(message):
    """Parse a message in RFC822 format.

    @param message: The message in RFC822 format. Either CRLF or LF is an accepted line separator.
    @return: Returns a tuple of (headers, body) where headers is a list of (name, value) pairs.
    The body is a CRLF-separated string.
    """
    headers = []
    lines = re.split(b"\r?\n", message)
    i = 0
    while i < len(lines):
        if len(lines[i]) == 0:
            # End of headers, return what we have plus the body, excluding the blank line.
            i += 1
            break
        if lines[i][:1] in (b"\t", b" "):
            if not headers:
                raise MessageFormatError("Continuation line before first header: %r" % lines[i])
            headers[-1][1] += lines[i]+b"\r\n"
        else:
            m = re.match(br"([\x21-\x7e]+?):", lines[i])
            if m is not None:
                headers.append([m.group(1), lines[i][m.end(0):]+b"\r\n"])
            elif lines[i].startswith(b"From "):
                pass
            else:
                raise MessageFormatError("Unexpected characters in RFC822 header: %r" % lines[i])
        i += 1
    return ([tuple(h) for h in headers], b"\r\n".join(lines[i:]))

class Message(object):
  """A parsed message: ordered raw header fields and a body stream.

  Header values are kept raw (leading whitespace, folding and the trailing
  CRLF included).  The body is a binary file object that is read once.
  """

  def __init__(self, headers, body):
    self.headers = headers
    self.body = body

  @classmethod
  def from_bytes(cls, message):
    headers, body = rfc822_parse(message)
    return cls(headers, io.BytesIO(body))

  def get_header(self, name):
    """Return the topmost (name, value) field called name, or None."""
    name = name.lower()
    for x, y in self.headers:
      if x.lower() == name:
        return (x, y)
    return None

  def get(self, name):
    h = self.get_header(name)
    if h is None:
      return None
    return h[1]

class VerificationStatus(object):
  """The three results of a verification run.

  Each flag may be set once; unset flags read as False.
  """

  FLAGS = ('body_hash_valid', 'signature_valid', 'public_key_found')

  def __init__(self):
    self._flags = {}

  def set(self, flag, value):
    if flag not in self.FLAGS:
      raise InternalError("unknown status flag: %s" % flag)
    if flag in self._flags:
      raise InternalError("status flag %s already set" % flag)
    self._flags[flag] = bool(value)

  @property
  def body_hash_valid(self):
    return self._flags.get('body_hash_valid', False)

  @property
  def signature_valid(self):
    return self._flags.get('signature_valid', False)

  @property
  def public_key_found(self):
    return self._flags.get('public_key_found', False)

  @property
  def valid(self):
    return all(self._flags.get(f, False) for f in self.FLAGS)

  def __repr__(self):
    return "VerificationStatus(%s)" % ", ".join(
        "%s=%s" % (f, self._flags.get(f)) for f in self.FLAGS)

# Verification states, in order.
INIT = 'init'
HEADER_PARSED = 'header-parsed'
BODY_HASH_CHECKED = 'body-hash-checked'
KEY_RESOLVED = 'key-resolved'
SIGNATURE_CHECKED = 'signature-checked'
DONE = 'done'

#: Verify one DKIM signature on an rfc5322 message.
class DKIM(object):
  # NOTE - the first 2 indentation levels are 2 instead of 4
  # to minimize changed lines from the function only version.

  #: Header fields searched for a signature when no name is given.
  SIGNATURE_HEADERS = (b'DKIM-Signature', b'X-Google-DKIM-Signature')

  #: Tags that must be present for verification to be attempted.
  REQUIRED_TAGS = (b'v', b'a', b'b', b'bh', b'd', b'h', b's')

  #: Create a verification context for one signature of a message.
  #:
  #: @param message: a L{Message}, or an RFC822 formatted message
  #: (with either \\n or \\r\\n line endings)
  #: @param header_name: name of the signature header field to verify
  #: (default: the first of SIGNATURE_HEADERS present)
  #: @param logger: a logger to which debug info will be written (default None)
  #: @param resolver: the L{KeyResolver} used to find the public key
  #: @param public_key: a L{PublicKeyRecord} to use instead of resolving one
  #: @param minkey: the minimum key size to accept
  #: @param collapse_repeated_headers: drop h= entries that repeat the
  #: entry right before them
  #: @param debug_content: log the exact bytes that are hashed
  #: @raise SignatureHeaderNotFound: no signature header on the message
  #: @raise InvalidTagValueList: the signature header could not be parsed
  #: @raise MissingTag: a tag in REQUIRED_TAGS is absent
  def __init__(self, message, header_name=None, logger=None, resolver=None,
        public_key=None, minkey=1024, collapse_repeated_headers=True,
        debug_content=False):
    if logger is None:
        logger = get_default_logger()
    self.logger = logger
    if not isinstance(message, Message):
        message = Message.from_bytes(message)
    self.message = message
    if resolver is None:
        resolver = KeyResolver(logger=logger)
    self.resolver = resolver
    self.public_key = public_key
    #: Minimum public key size.  Shorter keys fail the signature check.
    self.minkey = minkey
    self.debug_content = debug_content
    self.status = VerificationStatus()
    #: The public key size last verified.
    self.keysize = 0
    #: The header fields that went into the header hash.
    self.signed_headers = []
    self._body_hash = None
    self._header_hash = None
    self.state = INIT

    self.sigheader = self.find_signature_header(header_name)
    self.signature = parse_signature(self.sigheader[1],
        collapse_repeated_headers=collapse_repeated_headers)
    logger.debug("sig: %r" % self.signature)
    for tag in self.REQUIRED_TAGS:
        if tag not in self.signature.tags:
            raise MissingTag("signature missing %s=" % tag.decode('ascii'))
    self.domain = self.signature.domain
    self.selector = self.signature.selector
    self._transition(HEADER_PARSED)

  def _transition(self, state):
    self.logger.debug("%s -> %s" % (self.state, state))
    self.state = state

  def find_signature_header(self, header_name=None):
    if header_name is not None:
        if isinstance(header_name, str):
            header_name = header_name.encode('ascii')
        names = (header_name,)
    else:
        names = self.SIGNATURE_HEADERS
    for name in names:
        h = self.message.get_header(name)
        if h is not None:
            return h
    raise SignatureHeaderNotFound(
        "no %s header found" % b" or ".join(names).decode('ascii'))

  def get_hasher(self):
    try:
        return HASH_ALGORITHMS[self.signature.algorithm]
    except KeyError:
        raise InternalError(
            "no hash for signature algorithm %r" % self.signature.algorithm)

  def query_name(self):
    return self.signature.selector + b"._domainkey." + self.signature.domain + b"."

  def body_hash(self):
    """Return the digest of the canonicalized body, computing it once."""
    if self._body_hash is None:
        h = HashThrough(self.get_hasher()(), self.debug_content)
        hash_body(h, self.signature.canonicalization, self.message.body,
            self.signature.length)
        if self.debug_content:
            self.logger.debug("body hashed: %r" % h.hashed())
        self._body_hash = h.digest()
        self.logger.debug("bh: %s" % base64.b64encode(self._body_hash))
    return self._body_hash

  def header_hash(self):
    """Return the digest of the signed header fields, computing it once."""
    if self._header_hash is None:
        canon_policy = self.signature.canonicalization
        headers = canon_policy.canonicalize_headers(self.message.headers)
        include_headers = [x.lower() for x in self.signature.signed_headers]
        h = HashThrough(self.get_hasher()(), self.debug_content)
        self.signed_headers = hash_headers(
            h, canon_policy, headers, include_headers, self.sigheader)
        if self.debug_content:
            self.logger.debug("signed for %s: %r" % (self.sigheader[0], h.hashed()))
        self._header_hash = h.digest()
    return self._header_hash

  def get_public_key(self):
    """Return the public key record, resolving it if none was given.

    @raise NoPublicKeyFound: the resolver found no record
    @raise InvalidTagValueList: the record could not be parsed
    """
    if self.public_key is not None:
        return self.public_key
    name = self.query_name()
    s = self.resolver.resolve(name)
    if not s:
        raise NoPublicKeyFound("missing public key: %r" % name)
    return parse_public_key_record(s, self.logger)

  def check_signature(self):
    """Check the b= signature over the header hash with the public key."""
    try:
        pk = parse_public_key(self.public_key.public_key)
    except InvalidPublicKeyEncoding as e:
        self.logger.error("could not parse public key: %s" % e)
        return False
    if self.public_key.key_type != b'rsa':
        self.logger.error("unsupported key type: %r" % self.public_key.key_type)
        return False
    self.keysize = bitsize(pk['modulus'])
    if self.keysize < self.minkey:
        self.logger.error("public key too small: %d" % self.keysize)
        return False
    try:
        res = RSASSA_PKCS1_v1_5_verify(self.header_hash(),
            self.get_hasher()().name, self.signature.signature, pk)
    except DigestTooLargeError:
        self.logger.error("digest too large for modulus: %d" % self.keysize)
        return False
    self.logger.debug("%s valid: %s" % (self.sigheader[0], res))
    return res

  def verify(self):
    """Run the verification and return the verdict.

    The signature is checked even when the body hash does not match, so
    all three flags in L{status} are filled in.

    @return: True if body hash, public key and signature are all good
    @raise NoPublicKeyFound: no public key record could be found
    @raise InvalidTagValueList: the public key record could not be parsed
    """
    if self.state == DONE:
        return self.status.valid

    bodyhash = self.body_hash()
    self.status.set('body_hash_valid', bodyhash == self.signature.body_hash)
    if not self.status.body_hash_valid:
        self.logger.error("body hash mismatch (got %s, expected %s)" %
            (base64.b64encode(bodyhash), base64.b64encode(self.signature.body_hash)))
    self._transition(BODY_HASH_CHECKED)

    try:
        self.public_key = self.get_public_key()
    except DKIMException:
        self.status.set('public_key_found', False)
        self._transition(DONE)
        raise
    self.status.set('public_key_found', True)
    self._transition(KEY_RESOLVED)

    self.status.set('signature_valid', self.check_signature())
    self._transition(SIGNATURE_CHECKED)
    self._transition(DONE)
    return self.status.valid

def verify(message, logger=None, dnsfunc=None, cache=None, minkey=1024,
        timeout=5):
    """Verify the first (topmost) DKIM signature on an RFC822 formatted message.
    @param message: an RFC822 formatted message (with either \\n or \\r\\n line endings)
    @param logger: a logger to which debug info will be written (default None)
    @param dnsfunc: function used to fetch TXT records (default L{get_txt})
    @param cache: key cache with get(name) and set(name, txt) (default None)
    @param minkey: the minimum key size to accept
    @param timeout: number of seconds for DNS lookup timeout (default = 5)
    @return: True if signature verifies or False otherwise
    """
    if logger is None:
        logger = get_default_logger()
    resolver = KeyResolver(dnsfunc=dnsfunc, cache=cache, timeout=timeout,
        logger=logger)
    try:
        d = DKIM(message, logger=logger, resolver=resolver, minkey=minkey)
        return d.verify()
    except DKIMException as x:
        logger.error("%s" % x)
        return False
