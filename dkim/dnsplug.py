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
# Copyright (c) 2011 Scott Kitterman <scott@kitterman.com>

import threading

import dns.exception
import dns.rdatatype
import dns.resolver

from dkim.util import get_default_logger

__all__ = [
    'get_txt',
    'KeyResolver',
    'MemoryCache',
    ]


def get_txt(name, timeout=5):
    """Return a TXT record associated with a DNS name.

    For DKIM we can assume there is only one.  Returns None when the name
    does not resolve.

    @param name: query name as bytes or str
    @param timeout: DNS lifetime in seconds
    """
    if isinstance(name, bytes):
        try:
            name = name.decode('ascii')
        except UnicodeDecodeError:
            return None
    try:
        a = dns.resolver.resolve(name, dns.rdatatype.TXT,
            raise_on_no_answer=False, lifetime=timeout)
    except dns.exception.DNSException:
        return None
    for r in a.response.answer:
        if r.rdtype == dns.rdatatype.TXT:
            return b"".join(list(r.items)[0].strings)
    return None


class MemoryCache(object):
    """In-process key cache that may be shared between verifications.

    A concurrent set simply replaces the previous value.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._records = {}

    def get(self, name):
        with self._lock:
            return self._records.get(name)

    def set(self, name, txt):
        with self._lock:
            self._records[name] = txt


class KeyResolver(object):
    """Look up DKIM public key records, consulting a cache first.

    @param dnsfunc: callable(name, timeout=...) returning the TXT record
    bytes or None (default L{get_txt})
    @param cache: object with get(name) and set(name, txt), or None
    @param timeout: seconds passed to dnsfunc
    @param logger: a logger to which debug info will be written
    """

    def __init__(self, dnsfunc=None, cache=None, timeout=5, logger=None):
        if dnsfunc is None:
            dnsfunc = get_txt
        if logger is None:
            logger = get_default_logger()
        self.dnsfunc = dnsfunc
        self.cache = cache
        self.timeout = timeout
        self.logger = logger

    def cache_get(self, name):
        """Return the cached record for name, or None.

        A failing cache counts as a miss.
        """
        if self.cache is None:
            return None
        try:
            return self.cache.get(name)
        except Exception as e:
            self.logger.warning("key cache lookup for %r failed: %s" % (name, e))
            return None

    def cache_set(self, name, txt):
        if self.cache is None:
            return
        try:
            self.cache.set(name, txt)
        except Exception as e:
            self.logger.warning("key cache store for %r failed: %s" % (name, e))

    def fetch(self, name):
        """Return the TXT record for name from dnsfunc, or None.

        A failing lookup counts as no record.
        """
        try:
            return self.dnsfunc(name, timeout=self.timeout)
        except Exception as e:
            self.logger.warning("key lookup for %r failed: %s" % (name, e))
            return None

    def resolve(self, name):
        """Return the public key record text for name, or None."""
        txt = self.cache_get(name)
        if txt:
            self.logger.debug("key cache hit: %r" % name)
            return txt
        txt = self.fetch(name)
        if not txt:
            self.logger.debug("no key record for %r" % name)
            return None
        self.cache_set(name, txt)
        return txt
