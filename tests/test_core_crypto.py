"""
Unit tests for the Core Crypto engine.

Tests:
- AES-256-CBC encryption/decryption
- RSA-OAEP key wrapping and its size bound
- HMAC-SHA256 computation and verification
- Key / IV generation
"""

import pytest
import os

from hybridvault.core_crypto.engine import (
    KeyPair, DecryptionError,
    generate_symmetric_key, generate_iv, generate_mac_key,
    symmetric_encrypt, symmetric_decrypt,
    generate_asymmetric_key_pair, max_wrap_size,
    asymmetric_encrypt, asymmetric_decrypt,
    load_public_key, load_private_key,
    compute_mac, verify_mac,
    AES_KEY_SIZE, AES_BLOCK_SIZE, MAC_SIZE,
)


KEY_PAIR = generate_asymmetric_key_pair()


class TestKeyGeneration:
    """Tests for random key material."""

    def test_symmetric_key_size(self):
        """AES keys should be 32 bytes."""
        assert len(generate_symmetric_key()) == AES_KEY_SIZE

    def test_iv_size(self):
        """IVs should be 16 bytes."""
        assert len(generate_iv()) == AES_BLOCK_SIZE

    def test_mac_key_size(self):
        """HMAC keys should be 32 bytes."""
        assert len(generate_mac_key()) == 32

    def test_keys_are_random(self):
        """Repeated generation should not repeat keys."""
        keys = {generate_symmetric_key() for _ in range(20)}
        assert len(keys) == 20

    def test_ivs_are_random(self):
        """Repeated generation should not repeat IVs."""
        ivs = {generate_iv() for _ in range(20)}
        assert len(ivs) == 20


class TestSymmetric:
    """Tests for AES-256-CBC."""

    def test_encrypt_decrypt(self):
        """Encryption/decryption roundtrip should work."""
        key = generate_symmetric_key()
        iv = generate_iv()
        plaintext = b"Hello, hybrid transfer!"

        ciphertext = symmetric_encrypt(plaintext, key, iv)
        assert symmetric_decrypt(ciphertext, key, iv) == plaintext

    def test_empty_plaintext(self):
        """Empty plaintext pads to one full block."""
        key = generate_symmetric_key()
        iv = generate_iv()

        ciphertext = symmetric_encrypt(b"", key, iv)
        assert len(ciphertext) == AES_BLOCK_SIZE
        assert symmetric_decrypt(ciphertext, key, iv) == b""

    def test_block_aligned_plaintext_gets_extra_block(self):
        """PKCS7 adds a whole block when input is block aligned."""
        key = generate_symmetric_key()
        iv = generate_iv()

        ciphertext = symmetric_encrypt(b"A" * 32, key, iv)
        assert len(ciphertext) == 48

    def test_same_plaintext_different_iv(self):
        """Different IVs should give different ciphertexts."""
        key = generate_symmetric_key()
        plaintext = b"same message"

        ct1 = symmetric_encrypt(plaintext, key, generate_iv())
        ct2 = symmetric_encrypt(plaintext, key, generate_iv())
        assert ct1 != ct2

    def test_wrong_key_fails_or_garbles(self):
        """Wrong key should not recover the plaintext."""
        iv = generate_iv()
        plaintext = b"confidential data" * 4
        ciphertext = symmetric_encrypt(plaintext, generate_symmetric_key(), iv)

        try:
            result = symmetric_decrypt(ciphertext, generate_symmetric_key(), iv)
        except DecryptionError:
            return
        assert result != plaintext

    def test_bad_length_rejected(self):
        """Ciphertext not a multiple of 16 should be rejected."""
        with pytest.raises(DecryptionError):
            symmetric_decrypt(b"x" * 17, generate_symmetric_key(), generate_iv())

    def test_empty_ciphertext_rejected(self):
        """Empty ciphertext should be rejected."""
        with pytest.raises(DecryptionError):
            symmetric_decrypt(b"", generate_symmetric_key(), generate_iv())

    def test_invalid_key_length(self):
        """Short keys should raise ValueError."""
        with pytest.raises(ValueError):
            symmetric_encrypt(b"data", b"short", generate_iv())

    def test_invalid_iv_length(self):
        """Short IVs should raise ValueError."""
        with pytest.raises(ValueError):
            symmetric_encrypt(b"data", generate_symmetric_key(), b"short")


class TestAsymmetric:
    """Tests for RSA-OAEP key wrapping."""

    def test_wrap_unwrap(self):
        """RSA roundtrip should recover the AES key."""
        key = generate_symmetric_key()
        wrapped = asymmetric_encrypt(key, KEY_PAIR.public_key)
        assert asymmetric_decrypt(wrapped, KEY_PAIR.private_key) == key

    def test_wrapped_size(self):
        """Wrapped output is one RSA modulus long."""
        wrapped = asymmetric_encrypt(generate_symmetric_key(), KEY_PAIR.public_key)
        assert len(wrapped) == 256

    def test_max_wrap_size(self):
        """OAEP-SHA256 with 2048-bit keys allows 190 bytes."""
        assert max_wrap_size(KEY_PAIR.public_key) == 190

    def test_max_size_accepted(self):
        """Input of exactly the bound should be accepted."""
        data = os.urandom(190)
        wrapped = asymmetric_encrypt(data, KEY_PAIR.public_key)
        assert asymmetric_decrypt(wrapped, KEY_PAIR.private_key) == data

    def test_oversized_rejected(self):
        """Input above the bound should raise ValueError."""
        with pytest.raises(ValueError):
            asymmetric_encrypt(os.urandom(191), KEY_PAIR.public_key)

    def test_wrong_private_key(self):
        """Another private key should not unwrap."""
        other = generate_asymmetric_key_pair()
        wrapped = asymmetric_encrypt(generate_symmetric_key(), KEY_PAIR.public_key)
        with pytest.raises(DecryptionError):
            asymmetric_decrypt(wrapped, other.private_key)

    def test_garbage_rejected(self):
        """Random bytes should not unwrap."""
        with pytest.raises(DecryptionError):
            asymmetric_decrypt(os.urandom(256), KEY_PAIR.private_key)


class TestPem:
    """Tests for PEM serialization."""

    def test_public_pem_roundtrip(self):
        """Public key should survive PEM export/import."""
        pem = KEY_PAIR.public_pem()
        assert pem.startswith("-----BEGIN PUBLIC KEY-----")
        loaded = load_public_key(pem)
        assert loaded.public_numbers() == KEY_PAIR.public_key.public_numbers()

    def test_private_pem_roundtrip(self):
        """Private key should survive PEM export/import."""
        loaded = load_private_key(KEY_PAIR.private_pem())
        assert loaded.private_numbers() == KEY_PAIR.private_key.private_numbers()

    def test_public_only_pair(self):
        """Public-only pair has no private PEM."""
        pair = KeyPair.from_public_pem(KEY_PAIR.public_pem())
        assert pair.private_key is None
        with pytest.raises(ValueError):
            pair.private_pem()

    def test_invalid_pem(self):
        """Garbage PEM should raise ValueError."""
        with pytest.raises(ValueError):
            load_public_key("not a key")

    def test_repr_hides_key(self):
        """repr should not contain key material."""
        assert "BEGIN" not in repr(KEY_PAIR)


class TestMac:
    """Tests for HMAC-SHA256."""

    def test_mac_size(self):
        """Tag should be 32 bytes."""
        assert len(compute_mac(b"data", generate_mac_key())) == MAC_SIZE

    def test_verify_valid(self):
        """Correct tag should verify."""
        key = generate_mac_key()
        tag = compute_mac(b"data", key)
        assert verify_mac(b"data", key, tag)

    def test_verify_modified_data(self):
        """Modified data should not verify."""
        key = generate_mac_key()
        tag = compute_mac(b"data", key)
        assert not verify_mac(b"datA", key, tag)

    def test_verify_wrong_key(self):
        """Another key should not verify."""
        tag = compute_mac(b"data", generate_mac_key())
        assert not verify_mac(b"data", generate_mac_key(), tag)

    def test_truncated_tag(self):
        """Truncated tag should not verify."""
        key = generate_mac_key()
        tag = compute_mac(b"data", key)
        assert not verify_mac(b"data", key, tag[:16])

    def test_empty_tag(self):
        """Empty tag should not verify."""
        assert not verify_mac(b"data", generate_mac_key(), b"")

    def test_non_bytes_tag(self):
        """Hex string tag should fail instead of raising."""
        key = generate_mac_key()
        tag = compute_mac(b"data", key)
        assert not verify_mac(b"data", key, tag.hex())
