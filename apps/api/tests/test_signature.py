import pytest

from services.errors import SignatureInvalid
from services.signature import compute_signature, verify_signature, verify_subscription


SECRET = "app-secret-for-tests"
BODY = b'{"object":"instagram","entry":[{"id":"1","messaging":[]}]}'


def test_valid_signature_is_accepted():
    verify_signature(BODY, compute_signature(BODY, SECRET), SECRET)


def test_signature_header_is_case_insensitive_on_method():
    header = compute_signature(BODY, SECRET).replace("sha256=", "SHA256=")
    verify_signature(BODY, header, SECRET)


def test_single_byte_change_is_rejected():
    header = compute_signature(BODY, SECRET)
    tampered = BODY.replace(b'"1"', b'"2"')
    with pytest.raises(SignatureInvalid, match="mismatch"):
        verify_signature(tampered, header, SECRET)


def test_reserialized_body_does_not_verify():
    header = compute_signature(BODY, SECRET)
    spaced = b'{"object": "instagram", "entry": [{"id": "1", "messaging": []}]}'
    with pytest.raises(SignatureInvalid):
        verify_signature(spaced, header, SECRET)


@pytest.mark.parametrize("header", [None, "", "   "])
def test_missing_header_is_rejected(header):
    with pytest.raises(SignatureInvalid, match="Missing"):
        verify_signature(BODY, header, SECRET)


@pytest.mark.parametrize("header", ["abcdef", "sha1=abcdef", "sha256=", "sha256=not-hex-at-all"])
def test_malformed_header_is_rejected(header):
    with pytest.raises(SignatureInvalid, match="Malformed"):
        verify_signature(BODY, header, SECRET)


def test_wrong_secret_is_rejected():
    with pytest.raises(SignatureInvalid):
        verify_signature(BODY, compute_signature(BODY, "another-secret"), SECRET)


def test_unconfigured_secret_rejects_everything():
    with pytest.raises(SignatureInvalid, match="not configured"):
        verify_signature(BODY, compute_signature(BODY, ""), "")


def test_subscription_handshake_returns_challenge():
    assert verify_subscription("subscribe", "verify-me", "1158201444", "verify-me") == "1158201444"


@pytest.mark.parametrize(
    "mode,token",
    [("subscribe", "wrong"), ("unsubscribe", "verify-me"), (None, "verify-me"), ("subscribe", None)],
)
def test_subscription_handshake_rejects_bad_requests(mode, token):
    with pytest.raises(SignatureInvalid):
        verify_subscription(mode, token, "challenge", "verify-me")


def test_subscription_handshake_requires_configured_token():
    with pytest.raises(SignatureInvalid):
        verify_subscription("subscribe", "", "challenge", "")
