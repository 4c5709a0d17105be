# core/components/security.py
"""
文件说明: 凭证加密保险库 (Credential Vault)
主要功能:
1. AES-256-GCM 加密平台账户凭证 (随机 12 字节 nonce 前置，整体 Base64)。
2. 凭证文档 (JSON key/value) 的加解密。
3. 凭证脱敏展示 (仅保留末 4 位)。

密钥只能初始化一次，之后冻结。
"""

import base64
import binascii
import json
import os
import threading
from typing import Dict, Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from marketsync.core.sys.exceptions import (
    InvalidCiphertextError,
    InvalidKeyLengthError,
    VaultError,
    VaultNotInitializedError,
)

KEY_LENGTH = 32
NONCE_LENGTH = 12


class CredentialVault:
    """
    [底层组件] 凭证保险库

    用法:
        vault = CredentialVault(settings.CREDENTIAL_SECRET_KEY)
        token = vault.encrypt('{"client_id": "1"}')
        vault.decrypt(token)
    """

    def __init__(self, key: Optional[Union[bytes, str]] = None):
        self._aead: Optional[AESGCM] = None
        self._lock = threading.Lock()
        if key:
            self.initialize(key)

    @property
    def initialized(self) -> bool:
        return self._aead is not None

    def initialize(self, key: Union[bytes, str]) -> None:
        """设置密钥 (32 字节)，只允许一次"""
        raw = key.encode("utf-8") if isinstance(key, str) else bytes(key)
        if len(raw) != KEY_LENGTH:
            raise InvalidKeyLengthError(len(raw))
        with self._lock:
            if self._aead is not None:
                raise VaultError("Credential vault key is already set")
            self._aead = AESGCM(raw)

    def _require(self) -> AESGCM:
        if self._aead is None:
            raise VaultNotInitializedError()
        return self._aead

    def encrypt(self, plaintext: str) -> str:
        aead = self._require()
        nonce = os.urandom(NONCE_LENGTH)
        sealed = aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(nonce + sealed).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        aead = self._require()
        try:
            data = base64.b64decode(ciphertext.encode("ascii"), validate=True)
        except (binascii.Error, ValueError, UnicodeEncodeError):
            raise InvalidCiphertextError("Ciphertext is not valid base64")

        if len(data) < NONCE_LENGTH:
            raise InvalidCiphertextError("Ciphertext too short")

        nonce, sealed = data[:NONCE_LENGTH], data[NONCE_LENGTH:]
        try:
            plain = aead.decrypt(nonce, sealed, None)
        except InvalidTag:
            raise InvalidCiphertextError("Ciphertext failed authentication")
        return plain.decode("utf-8")

    # --- 凭证文档 ---

    def encrypt_document(self, document: Dict[str, str]) -> str:
        return self.encrypt(json.dumps(document, ensure_ascii=False))

    def decrypt_document(self, ciphertext: str) -> Dict[str, str]:
        """
        解密并解析为 dict。
        JSON 不合法时抛 InvalidCiphertextError (调用方统一转为 InvalidCredentials)。
        """
        plain = self.decrypt(ciphertext)
        try:
            document = json.loads(plain)
        except json.JSONDecodeError:
            raise InvalidCiphertextError("Credential payload is not valid JSON")
        if not isinstance(document, dict):
            raise InvalidCiphertextError("Credential payload must be a JSON object")
        return document

    @staticmethod
    def mask_value(value: str, visible: int = 4) -> str:
        """脱敏: 'abcdef123456' -> '********3456'"""
        if not value:
            return ""
        if len(value) <= visible:
            return "*" * len(value)
        return "*" * (len(value) - visible) + value[-visible:]
