import unittest
from poremat.fmt.cssr import parse_cssr_file, parse_cssr_string
from poremat.exceptions import ParseError
from poremat.tests import TEST_FILES

_NO_CHARGES = """  5.0 5.0 5.0
  90.0 90.0 90.0
  2   0
 0 argon pair
  1 Ar1 0.0 0.0 0.0
  2 Ar2 0.5 0.5 0.5 0 0 0 0 0 0 0 0
"""


class CssrTestCase(unittest.TestCase):
    def test_parse_file(self):
        data = parse_cssr_file(TEST_FILES["p1_sio2.cssr"])
        self.assertEqual(data["lengths"], (10.0, 10.0, 10.0))
        self.assertEqual(data["angles"], (90.0, 90.0, 90.0))
        self.assertEqual(data["labels"], ["Si1", "O1", "O2"])
        self.assertEqual(data["charges"], [1.2, -0.6, -0.6])
        self.assertEqual(data["coordinates"][1], [0.5, 0.0, 0.0])
        self.assertTrue(data["is_p1"])
        self.assertEqual(data["space_group"], "P1")

    def test_missing_charges(self):
        data = parse_cssr_string(_NO_CHARGES)
        self.assertEqual(data["charges"], [0.0, 0.0])
        self.assertEqual(data["labels"], ["Ar1", "Ar2"])

    def test_errors(self):
        with self.assertRaises(ParseError):
            parse_cssr_string("5.0 5.0 5.0\n90 90 90\n")
        with self.assertRaises(ParseError):
            parse_cssr_string(_NO_CHARGES.replace("  2   0", "  3   0"))
        with self.assertRaises(ParseError):
            parse_cssr_string(_NO_CHARGES.replace("0.5 0.5 0.5", "0.5 half 0.5"))
        with self.assertRaises(ParseError):
            parse_cssr_string(_NO_CHARGES.replace("  5.0 5.0 5.0", "  5.0 5.0"))
