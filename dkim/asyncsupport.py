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
# Copyright (c) 2016, 2017, 2018, 2019 Scott Kitterman <scott@kitterman.com>
#
# This has been modified from the original software.
# Copyright (c) 2017 Valimail Inc
# Contact: Gene Shuman <gene@valimail.com>

import aiodns
import dkim

__all__ = [
    'get_txt_async',
    'load_pk_async',
    'verify_async'
    ]


async def get_txt_async(name, timeout=5):
    """Return a TXT record associated with a DNS name in an asnyc loop. For
    DKIM we can assume there is only one."""

    if isinstance(name, bytes):
        try:
            name = name.decode('ascii')
        except UnicodeDecodeError:
            return None
    resolver = aiodns.DNSResolver(timeout=timeout)

    try:
        result = await resolver.query(name, 'TXT')
    except aiodns.error.DNSError:
        result = None

    if not result:
        return None
    text = result[0].text
    if isinstance(text, str):
        text = text.encode('ascii')
    return text


async def load_pk_async(resolver, name, dnsfunc):
    """Resolve the public key record for name without blocking the loop.

    The resolver's cache is consulted and filled in the same way
    L{dkim.KeyResolver.resolve} does it.
    """
    s = resolver.cache_get(name)
    if s:
        return s
    try:
        s = await dnsfunc(name, timeout=resolver.timeout)
    except Exception as e:
        resolver.logger.warning("key lookup for %r failed: %s" % (name, e))
        return None
    if s:
        resolver.cache_set(name, s)
    return s


async def verify_async(message, logger=None, dnsfunc=None, cache=None,
        minkey=1024, timeout=5):
    """Verify the first (topmost) DKIM signature on an RFC822 formatted message in an asyncio contxt.
    @param message: an RFC822 formatted message (with either \\n or \\r\\n line endings)
    @param logger: a logger to which debug info will be written (default None)
    @param dnsfunc: coroutine used to fetch TXT records (default L{get_txt_async})
    @param cache: key cache with get(name) and set(name, txt) (default None)
    @param minkey: the minimum key size to accept
    @param timeout: number of seconds for DNS lookup timeout (default = 5)
    @return: True if signature verifies or False otherwise
    """
    if logger is None:
        logger = dkim.get_default_logger()
    if dnsfunc is None:
        dnsfunc = get_txt_async
    resolver = dkim.KeyResolver(cache=cache, timeout=timeout, logger=logger)
    try:
        d = dkim.DKIM(message, logger=logger, resolver=resolver, minkey=minkey)
        name = d.query_name()
        s = await load_pk_async(resolver, name, dnsfunc)
        if not s:
            raise dkim.NoPublicKeyFound("missing public key: %r" % name)
        d.public_key = dkim.parse_public_key_record(s, logger)
        return d.verify()
    except dkim.DKIMException as x:
        logger.error("%s" % x)
        return False
