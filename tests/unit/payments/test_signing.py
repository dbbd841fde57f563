import hashlib
import hmac

import pytest

from modules.payments.signing import sign_payload, verify_signature

pytestmark = pytest.mark.unit

SECRET = "segredo"
BODY = b'{"correlationId":"PREF-1","status":"approved","revision":1}'


def test_sign_is_hex_hmac_sha256():
    expected = hmac.new(SECRET.encode(), BODY, hashlib.sha256).hexdigest()
    assert sign_payload(SECRET, BODY) == expected


def test_valid_signature():
    assert verify_signature(SECRET, BODY, sign_payload(SECRET, BODY))


def test_prefixed_signature():
    assert verify_signature(SECRET, BODY, "sha256=" + sign_payload(SECRET, BODY))


def test_tampered_body():
    signature = sign_payload(SECRET, BODY)
    assert not verify_signature(SECRET, BODY.replace(b"approved", b"rejected"), signature)


@pytest.mark.parametrize("signature", [None, "", "deadbeef"])
def test_missing_or_wrong_signature(signature):
    assert not verify_signature(SECRET, BODY, signature)


def test_unset_secret_rejects_everything():
    assert not verify_signature("", BODY, sign_payload("", BODY))
