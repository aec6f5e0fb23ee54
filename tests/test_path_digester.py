"""
Tests for AS path digestion.
"""

import unittest

from ris_live.models import RisMessageData
from ris_live.processors.path_digester import (
    ASSet, PathNumber, digest_message, digest_path, parse_path_element
)
from ris_live.utils.error_handling import DigestError


class TestDigestPath(unittest.TestCase):
    """Test flattening of raw RIS Live paths."""

    def test_plain_path(self):
        self.assertEqual(digest_path([1, 2, 3, 4, 5, 6, 7, 8]), [1, 2, 3, 4, 5, 6, 7, 8])

    def test_word_path_fails(self):
        with self.assertRaises(DigestError):
            digest_path(["An", "ASN", "LIST", "HERE"])

    def test_as_set_flattened_one_level(self):
        self.assertEqual(
            digest_path([2497, 6453, 18705, 26281, [13340]]),
            [2497, 6453, 18705, 26281, 13340]
        )

    def test_as_set_keeps_member_order(self):
        self.assertEqual(digest_path([1, 2, 3, [5, 4]]), [1, 2, 3, 5, 4])

    def test_as_set_in_middle(self):
        self.assertEqual(digest_path([1, [2, 3], 4]), [1, 2, 3, 4])

    def test_fractional_numbers_truncated(self):
        self.assertEqual(digest_path([57695.0, 12.7, 2332]), [57695, 12, 2332])

    def test_empty_path(self):
        self.assertEqual(digest_path([]), [])

    def test_word_after_numbers_fails(self):
        with self.assertRaises(DigestError) as ctx:
            digest_path([1, 2, "three"])
        self.assertEqual(ctx.exception.element, "three")

    def test_word_inside_as_set_fails(self):
        with self.assertRaises(DigestError):
            digest_path([1, [2, "x"]])

    def test_nested_as_set_fails(self):
        with self.assertRaises(DigestError):
            digest_path([1, [2, [3]]])

    def test_numeric_string_fails(self):
        with self.assertRaises(DigestError):
            digest_path([1, "701"])

    def test_boolean_and_null_fail(self):
        with self.assertRaises(DigestError):
            digest_path([1, True])
        with self.assertRaises(DigestError):
            digest_path([1, None])

    def test_out_of_range_fails(self):
        with self.assertRaises(DigestError):
            digest_path([1, 4294967296])
        with self.assertRaises(DigestError):
            digest_path([-1])

    def test_four_byte_asn_accepted(self):
        self.assertEqual(digest_path([4200000000, 1]), [4200000000, 1])

    def test_non_finite_fails(self):
        with self.assertRaises(DigestError):
            digest_path([float("inf")])
        with self.assertRaises(DigestError):
            digest_path([float("nan")])


class TestParsePathElement(unittest.TestCase):
    """Test classification of individual path elements."""

    def test_number(self):
        self.assertEqual(parse_path_element(701), PathNumber(701))

    def test_as_set(self):
        self.assertEqual(parse_path_element([64512, 65001]), ASSet((64512, 65001)))


class TestDigestMessage(unittest.TestCase):
    """Test in-place digestion of message data."""

    def test_populates_digested_path(self):
        data = RisMessageData(path=[1, 2, 3, [4, 5]], origin="9")
        result = digest_message(data)
        self.assertEqual(result, [1, 2, 3, 4, 5])
        self.assertEqual(data.digested_path, [1, 2, 3, 4, 5])
        self.assertEqual(data.path, [1, 2, 3, [4, 5]])

    def test_failure_leaves_no_partial_result(self):
        data = RisMessageData(path=[1, 2, "word", 4])
        data.digested_path = [9, 9]
        with self.assertRaises(DigestError):
            digest_message(data)
        self.assertEqual(data.digested_path, [])

    def test_deterministic(self):
        data = RisMessageData(path=[3356, [1, 2], 174])
        self.assertEqual(digest_message(data), digest_message(data))


if __name__ == '__main__':
    unittest.main()
