import hashlib
import hmac
import unittest

from mailrelay.canonicalization import canonicalize_payload
from mailrelay.signing import compute_signature, sign_payload, verify_signature


KEY = "relay-secret"
TS = 1700000000000
PAYLOAD = {"firstName": "Jane", "agreeToTerms": True}


class TestSignatures(unittest.TestCase):

    def setUp(self):
        self.canonical = canonicalize_payload(PAYLOAD, TS)
        self.signature = compute_signature(self.canonical, KEY)

    def test_hmac_sha256_hex(self):
        expected = hmac.new(KEY.encode(), self.canonical, hashlib.sha256).hexdigest()
        self.assertEqual(self.signature, expected)
        self.assertEqual(len(self.signature), 64)

    def test_valid_signature_verifies(self):
        self.assertTrue(verify_signature(self.canonical, self.signature, KEY))

    def test_sign_payload_matches(self):
        self.assertEqual(sign_payload(PAYLOAD, TS, KEY), self.signature)
        self.assertEqual(sign_payload(PAYLOAD, str(TS), KEY), self.signature)

    def test_payload_change_fails(self):
        other = canonicalize_payload({"firstName": "Jano", "agreeToTerms": True}, TS)
        self.assertFalse(verify_signature(other, self.signature, KEY))

    def test_timestamp_change_fails(self):
        other = canonicalize_payload(PAYLOAD, TS + 1)
        self.assertFalse(verify_signature(other, self.signature, KEY))

    def test_key_change_fails(self):
        self.assertFalse(verify_signature(self.canonical, self.signature, KEY + "x"))

    def test_flipped_digit_fails(self):
        flipped = ("0" if self.signature[0] != "0" else "1") + self.signature[1:]
        self.assertFalse(verify_signature(self.canonical, flipped, KEY))

    def test_malformed_signatures_return_false(self):
        for bad in ("", "zz", self.signature[:-2], "é" * 64, None, 123):
            self.assertFalse(verify_signature(self.canonical, bad, KEY))


if __name__ == "__main__":
    unittest.main()
