from django.test import TestCase

from bucketkv.exceptions import KeyTooLong, StorageError
from bucketkv.models import Record
from bucketkv.services import BucketKV
from bucketkv.tallies import TALLY_KEY_PREFIX, tally_key


class TallyTests(TestCase):
    def setUp(self):
        self.kv = BucketKV()
        self.addCleanup(self.kv.close)

    def test_tally_key_uses_reserved_prefix(self):
        self.assertEqual(tally_key("x"), "_______#tally-x")
        self.assertTrue(tally_key("x").startswith(TALLY_KEY_PREFIX))

    def test_tally_initializes_to_offset(self):
        self.assertEqual(self.kv.tally("x", 5), 5)
        self.assertEqual(self.kv.get(tally_key("x")), b"5")

    def test_tally_is_idempotent_once_initialized(self):
        self.kv.tally("x", 5)
        self.assertEqual(self.kv.tally("x", 99), 5)

    def test_increment_from_uninitialized(self):
        values = [self.kv.tally_incr("x") for _ in range(10)]
        self.assertEqual(values, list(range(1, 11)))

    def test_decrement_after_increments(self):
        for _ in range(10):
            self.kv.tally_incr("x")
        values = [self.kv.tally_decr("x") for _ in range(10)]
        self.assertEqual(values, list(range(9, -1, -1)))

    def test_decrement_goes_negative(self):
        self.assertEqual(self.kv.tally_decr("x"), -1)
        self.assertEqual(self.kv.tally_decr("x"), -2)

    def test_increment_continues_from_offset(self):
        self.kv.tally("x", 41)
        self.assertEqual(self.kv.tally_incr("x"), 42)

    def test_reset_sets_zero_regardless_of_state(self):
        self.kv.tally_reset("fresh")
        self.assertEqual(self.kv.tally("fresh", 7), 0)

        self.kv.tally("x", 12)
        self.kv.tally_reset("x")
        self.assertEqual(self.kv.tally("x", 99), 0)

    def test_tallies_are_scoped_to_bucket(self):
        self.kv.tally_incr("x")
        self.kv.set_bucket("other")
        self.assertEqual(self.kv.tally("x", 0), 0)
        self.assertTrue(Record.objects.filter(bucket="other", key=tally_key("x")).exists())

    def test_tallies_show_up_as_keys(self):
        self.kv.tally_incr("x")
        self.assertEqual(self.kv.list_keys(TALLY_KEY_PREFIX), [tally_key("x")])

    def test_non_integer_value_raises_storage_error(self):
        self.kv.set(tally_key("bad"), b"abc")
        with self.assertRaises(StorageError):
            self.kv.tally_incr("bad")
        self.assertEqual(self.kv.get(tally_key("bad")), b"abc")

    def test_loosely_formatted_numbers_are_rejected(self):
        for raw in (b" 7 ", b"1_000", b"+3"):
            with self.subTest(raw=raw):
                self.kv.set(tally_key("loose"), raw)
                with self.assertRaises(StorageError):
                    self.kv.tally_incr("loose")
                self.assertEqual(self.kv.get(tally_key("loose")), raw)

    def test_tally_name_counts_towards_key_limit(self):
        with self.assertRaises(KeyTooLong):
            self.kv.tally("x" * (300 - len(TALLY_KEY_PREFIX) + 1), 0)
