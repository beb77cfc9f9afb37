"""Unit tests for payment callback signatures"""

import hashlib
import hmac

from rental_gateway.domain.signatures import is_valid_signature, sign_payment

SECRET = "test_secret"


def test_signature_matches_hmac_sha256_hex():
    expected = hmac.new(SECRET.encode(), b"order_1|pay_1", hashlib.sha256).hexdigest()
    assert sign_payment("order_1", "pay_1", SECRET) == expected


def test_valid_signature_round_trip():
    signature = sign_payment("order_abc", "pay_xyz", SECRET)
    assert is_valid_signature("order_abc", "pay_xyz", signature, SECRET) is True


def test_any_mutated_character_is_rejected():
    signature = sign_payment("order_abc", "pay_xyz", SECRET)

    for i in range(len(signature)):
        replacement = "0" if signature[i] != "0" else "1"
        mutated = signature[:i] + replacement + signature[i + 1:]
        assert is_valid_signature("order_abc", "pay_xyz", mutated, SECRET) is False


def test_signature_bound_to_order_and_payment():
    signature = sign_payment("order_abc", "pay_xyz", SECRET)

    assert is_valid_signature("order_other", "pay_xyz", signature, SECRET) is False
    assert is_valid_signature("order_abc", "pay_other", signature, SECRET) is False
    assert is_valid_signature("order_abc", "pay_xyz", signature, "other_secret") is False


def test_empty_or_non_ascii_signature_rejected():
    assert is_valid_signature("order_abc", "pay_xyz", "", SECRET) is False
    assert is_valid_signature("order_abc", "pay_xyz", "signé", SECRET) is False
    assert is_valid_signature("order_abc", "pay_xyz", "abc", "") is False
