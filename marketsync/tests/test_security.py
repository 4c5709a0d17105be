"""
凭证保险库测试 (AES-256-GCM)
"""
import base64
import unittest

from marketsync.core.components.security import CredentialVault
from marketsync.core.sys.exceptions import (
    InvalidCiphertextError,
    InvalidKeyLengthError,
    VaultError,
    VaultNotInitializedError,
)

KEY = b"k" * 32


class CredentialVaultTest(unittest.TestCase):

    def setUp(self):
        self.vault = CredentialVault(KEY)

    def test_round_trip(self):
        for plain in ["", "hello", '{"client_id": "42", "api_key": "ключ"}']:
            self.assertEqual(self.vault.decrypt(self.vault.encrypt(plain)), plain)

    def test_document_round_trip(self):
        doc = {"client_id": "123", "api_key": "abc-def"}
        self.assertEqual(self.vault.decrypt_document(self.vault.encrypt_document(doc)), doc)

    def test_nonce_is_random(self):
        self.assertNotEqual(self.vault.encrypt("same"), self.vault.encrypt("same"))

    def test_rejects_wrong_key_length(self):
        for size in (31, 33):
            with self.assertRaises(InvalidKeyLengthError):
                CredentialVault(b"x" * size)

    def test_string_key_accepted(self):
        vault = CredentialVault("s" * 32)
        self.assertTrue(vault.initialized)

    def test_key_is_frozen_after_initialize(self):
        with self.assertRaises(VaultError):
            self.vault.initialize(b"z" * 32)

    def test_not_initialized(self):
        vault = CredentialVault()
        self.assertFalse(vault.initialized)
        with self.assertRaises(VaultNotInitializedError):
            vault.encrypt("x")
        with self.assertRaises(VaultNotInitializedError):
            vault.decrypt("x")

    def test_truncated_ciphertext_fails(self):
        token = self.vault.encrypt("secret")
        raw = base64.b64decode(token)
        with self.assertRaises(InvalidCiphertextError):
            self.vault.decrypt(base64.b64encode(raw[:-1]).decode())
        with self.assertRaises(InvalidCiphertextError):
            self.vault.decrypt(base64.b64encode(raw[:5]).decode())

    def test_tampered_ciphertext_fails(self):
        raw = bytearray(base64.b64decode(self.vault.encrypt("secret")))
        raw[-1] ^= 0x01
        with self.assertRaises(InvalidCiphertextError):
            self.vault.decrypt(base64.b64encode(bytes(raw)).decode())

    def test_other_key_cannot_decrypt(self):
        token = self.vault.encrypt("secret")
        with self.assertRaises(InvalidCiphertextError):
            CredentialVault(b"q" * 32).decrypt(token)

    def test_not_base64(self):
        with self.assertRaises(InvalidCiphertextError):
            self.vault.decrypt("not base64 !!")

    def test_document_must_be_json_object(self):
        with self.assertRaises(InvalidCiphertextError):
            self.vault.decrypt_document(self.vault.encrypt("plain text"))
        with self.assertRaises(InvalidCiphertextError):
            self.vault.decrypt_document(self.vault.encrypt("[1, 2]"))

    def test_mask_value(self):
        self.assertEqual(CredentialVault.mask_value("abcdef123456"), "********3456")
        self.assertEqual(CredentialVault.mask_value("abc"), "***")
        self.assertEqual(CredentialVault.mask_value(""), "")
