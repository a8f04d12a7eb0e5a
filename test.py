import unittest
import doctest
import dkim
import dkim.asn1
import dkim.canonicalization
import dkim.signature
from dkim.tests import test_suite

for module in (dkim, dkim.asn1, dkim.canonicalization, dkim.signature):
    doctest.testmod(module)
unittest.TextTestRunner().run(test_suite())
