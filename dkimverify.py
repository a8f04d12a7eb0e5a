#!/usr/bin/env python

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

import argparse
import logging
import sys

import dkim


def main():
    parser = argparse.ArgumentParser(
        description='Verify DKIM signature for email messages.',
        epilog="message to be verified follows commands on stdin")
    parser.add_argument('--header', default=None,
        help='Name of the signature header field to verify: default=DKIM-Signature')
    parser.add_argument('--minkey', type=int, default=1024,
        help='Minimum public key size in bits: default=1024')
    parser.add_argument('--timeout', type=float, default=5,
        help='DNS lookup timeout in seconds: default=5')
    parser.add_argument('-v', '--verbose', action='store_true',
        help='Log each verification step to stderr.')
    args = parser.parse_args()

    logger = dkim.get_default_logger()
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)
        logger.setLevel(logging.DEBUG)

    message = sys.stdin.buffer.read()
    resolver = dkim.KeyResolver(timeout=args.timeout, logger=logger)
    try:
        d = dkim.DKIM(message, header_name=args.header, logger=logger,
            resolver=resolver, minkey=args.minkey)
        res = d.verify()
    except dkim.DKIMException as e:
        print(e, file=sys.stderr)
        print("signature verification failed")
        sys.exit(1)
    if not res:
        print("signature verification failed: %r" % d.status)
        sys.exit(1)
    print("signature ok")


if __name__ == "__main__":
    main()
