from unittest.mock import patch

import pytest

from services.crypto import decrypt_access_token, encrypt_access_token


def test_access_token_round_trip_hides_plaintext():
    encrypted = encrypt_access_token("IGQVJ-live-token")

    assert "IGQVJ-live-token" not in encrypted
    assert decrypt_access_token(encrypted) == "IGQVJ-live-token"


def test_tokens_under_a_retired_key_stay_readable():
    with patch("services.crypto.settings.ENCRYPTION_KEY", "an-old-encryption-key-that-was-rotated"):
        encrypted = encrypt_access_token("IGQVJ-old-token")

    with patch("services.crypto.settings.ENCRYPTION_KEY", "the-new-encryption-key-after-rotation"), patch(
        "services.crypto.settings.ENCRYPTION_KEY_PREVIOUS", ["an-old-encryption-key-that-was-rotated"]
    ):
        assert decrypt_access_token(encrypted) == "IGQVJ-old-token"


def test_unknown_key_or_empty_value_raises_value_error():
    with patch("services.crypto.settings.ENCRYPTION_KEY", "some-other-key-entirely-unrelated"):
        encrypted = encrypt_access_token("IGQVJ-token")

    with pytest.raises(ValueError):
        decrypt_access_token(encrypted)
    with pytest.raises(ValueError):
        decrypt_access_token("")
