"""Field-level encryption for rows crossing the connector boundary.

Encrypted values are stored as ``iv:authTag:ciphertext`` in lowercase hex,
sealed with AES-256-GCM under a 16-byte random IV.
"""

import hashlib
import json
import os
import re
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic_core import to_json

from schemafx.errors import DecryptionError
from schemafx.models.enums import FieldKind
from schemafx.models.schema import AppField, AppTable, Row

IV_LENGTH = 16
TAG_LENGTH = 16

_HEX_KEY = re.compile(r"[0-9a-fA-F]{64}")
_ENCRYPTABLE_KINDS = (FieldKind.TEXT, FieldKind.JSON)


def derive_key(secret: str) -> bytes:
    """Use a 64-character hex secret as the raw key, otherwise hash it to 32 bytes."""
    if _HEX_KEY.fullmatch(secret):
        return bytes.fromhex(secret)
    return hashlib.sha256(secret.encode("utf-8")).digest()


def encrypt_text(aesgcm: AESGCM, plaintext: str) -> str:
    iv = os.urandom(IV_LENGTH)
    sealed = aesgcm.encrypt(iv, plaintext.encode("utf-8"), None)
    ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
    return f"{iv.hex()}:{tag.hex()}:{ciphertext.hex()}"


def decrypt_text(aesgcm: AESGCM, composite: str) -> str:
    parts = composite.split(":")
    if len(parts) != 3:
        raise DecryptionError("Encrypted value is not in iv:authTag:ciphertext form.")
    try:
        iv, tag, ciphertext = (bytes.fromhex(part) for part in parts)
    except ValueError:
        raise DecryptionError("Encrypted value is not valid hex.") from None
    if len(iv) != IV_LENGTH or len(tag) != TAG_LENGTH:
        raise DecryptionError("Encrypted value has a malformed IV or auth tag.")
    try:
        plaintext = aesgcm.decrypt(iv, ciphertext + tag, None)
    except InvalidTag:
        raise DecryptionError("Encrypted value failed authentication.") from None
    return plaintext.decode("utf-8")


def _is_encrypted(field: AppField) -> bool:
    return field.encrypted and field.type in _ENCRYPTABLE_KINDS


class FieldCodec:
    """Encrypts and decrypts the ``encrypted`` Text and JSON fields of rows.

    Without a key the codec is the identity.
    """

    def __init__(self, key: str | None = None) -> None:
        self._aesgcm = AESGCM(derive_key(key)) if key else None

    @property
    def enabled(self) -> bool:
        return self._aesgcm is not None

    def encode_value(self, field: AppField, value: Any) -> str:
        if field.type == FieldKind.JSON:
            plaintext = to_json(value).decode("utf-8")
        else:
            plaintext = value if isinstance(value, str) else str(value)
        return encrypt_text(self._aesgcm, plaintext)

    def decode_value(self, field: AppField, value: Any) -> Any:
        if not isinstance(value, str):
            raise DecryptionError(f"Encrypted field '{field.id}' does not hold text.")
        plaintext = decrypt_text(self._aesgcm, value)
        if field.type == FieldKind.JSON:
            return json.loads(plaintext)
        return plaintext

    def stored_table(self, table: AppTable) -> AppTable:
        """``table`` as its values sit in storage; without a key encrypted fields hold plaintext."""
        if self.enabled or not any(field.encrypted for field in table.fields):
            return table
        fields = [field.model_copy(update={"encrypted": False}) for field in table.fields]
        return table.model_copy(update={"fields": fields})

    def encode_row(self, row: Row, table: AppTable) -> Row:
        return self._transform(row, table, self.encode_value)

    def decode_row(self, row: Row, table: AppTable) -> Row:
        return self._transform(row, table, self.decode_value)

    def _transform(self, row: Row, table: AppTable, convert) -> Row:
        if self._aesgcm is None:
            return row
        result = dict(row)
        for field in table.fields:
            if not _is_encrypted(field):
                continue
            # falsy values such as False, 0 and "" are still encrypted
            if result.get(field.id) is not None:
                result[field.id] = convert(field, result[field.id])
        return result
