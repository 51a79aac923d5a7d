"""Encrypted storage for the access token, refresh token and cached user record."""

from __future__ import annotations

import asyncio
import base64
import hashlib
import json
import logging
from typing import Any, Dict, Optional, Tuple

from cryptography.fernet import Fernet, InvalidToken

from taxease.clients import SQLiteKeyValueStore

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"
USER_DATA_KEY = "user_data"


class CredentialError(RuntimeError):
    """Raised when stored credentials cannot be decrypted with the current secret."""


class CredentialVault:
    """Fernet-encrypt credentials before they reach the key-value store."""

    def __init__(self, store: SQLiteKeyValueStore, *, secret: str) -> None:
        if not secret:
            raise ValueError("Credential encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))
        self._store = store

    def _encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def _decrypt(self, ciphertext: str) -> str:
        try:
            return self._fernet.decrypt(ciphertext.encode("utf-8")).decode("utf-8")
        except InvalidToken as exc:
            raise CredentialError(
                "Failed to decrypt stored credentials; the secret may have changed."
            ) from exc

    async def _write(self, key: str, plaintext: str) -> None:
        await asyncio.to_thread(self._store.set_item, key, self._encrypt(plaintext))

    async def _read(self, key: str) -> Optional[str]:
        ciphertext = await asyncio.to_thread(self._store.get_item, key)
        if ciphertext is None:
            return None
        return self._decrypt(ciphertext)

    async def store_tokens(
        self, access_token: str, refresh_token: Optional[str] = None
    ) -> None:
        await self._write(ACCESS_TOKEN_KEY, access_token)
        if refresh_token:
            await self._write(REFRESH_TOKEN_KEY, refresh_token)

    async def get_tokens(self) -> Tuple[Optional[str], Optional[str]]:
        return await self._read(ACCESS_TOKEN_KEY), await self._read(REFRESH_TOKEN_KEY)

    async def store_user(self, user: Dict[str, Any]) -> None:
        await self._write(USER_DATA_KEY, json.dumps(user))

    async def get_user(self) -> Optional[Dict[str, Any]]:
        raw = await self._read(USER_DATA_KEY)
        if raw is None:
            return None
        return json.loads(raw)

    async def clear(self) -> None:
        await asyncio.to_thread(
            self._store.multi_remove,
            [ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, USER_DATA_KEY],
        )
        logger.info("Stored credentials cleared")


__all__ = ["CredentialError", "CredentialVault"]
