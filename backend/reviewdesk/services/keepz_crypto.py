"""Keepz hybrid envelope encryption.

Keepz expects every request body and sends every callback as:

    {"identifier": ..., "encryptedData": b64(AES-256-CBC(json)),
     "encryptedKeys": b64(RSA(b64(key) + "." + b64(iv))), "aes": true}

The AES key and IV are fresh per message. The vendor's public key encrypts
outgoing keys and the integrator's private key decrypts incoming ones. Key
material arrives either as PEM text or as bare base64 DER.
"""

import base64
import json
import logging
import os
from enum import Enum
from typing import Any

from cryptography.hazmat.primitives import hashes, padding, serialization
from cryptography.hazmat.primitives.asymmetric import padding as asym_padding
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey, RSAPublicKey
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from reviewdesk.core.errors import ConfigurationError, EnvelopeError

logger = logging.getLogger(__name__)

AES_KEY_BYTES = 32
AES_IV_BYTES = 16


class RSAPadding(str, Enum):
    OAEP = "oaep"
    PKCS1 = "pkcs1"


def _rsa_padding(mode: RSAPadding) -> asym_padding.AsymmetricPadding:
    if mode == RSAPadding.OAEP:
        return asym_padding.OAEP(
            mgf=asym_padding.MGF1(algorithm=hashes.SHA256()),
            algorithm=hashes.SHA256(),
            label=None,
        )
    return asym_padding.PKCS1v15()


def _wrap_pem(b64_body: str, label: str) -> bytes:
    body = "".join(b64_body.split())
    lines = [body[i : i + 64] for i in range(0, len(body), 64)]
    return (f"-----BEGIN {label}-----\n" + "\n".join(lines) + f"\n-----END {label}-----\n").encode()


def load_public_key(key: str) -> RSAPublicKey:
    """Load an RSA public key from PEM text or base64 DER."""
    if not key:
        raise ConfigurationError("Keepz public key is not configured")
    candidates: list[bytes] = []
    if "-----BEGIN" in key:
        candidates.append(key.encode())
    else:
        candidates.append(_wrap_pem(key, "PUBLIC KEY"))
    for pem in candidates:
        try:
            loaded = serialization.load_pem_public_key(pem)
        except ValueError:
            continue
        if isinstance(loaded, RSAPublicKey):
            return loaded
    # Fall back to raw DER for keys that do not survive PEM wrapping
    try:
        loaded = serialization.load_der_public_key(base64.b64decode(key))
    except ValueError as e:
        raise ConfigurationError(f"Keepz public key could not be loaded: {e}") from e
    if not isinstance(loaded, RSAPublicKey):
        raise ConfigurationError("Keepz public key is not an RSA key")
    return loaded


def load_private_key(key: str) -> RSAPrivateKey:
    """Load an RSA private key from PEM text or base64 PKCS8 DER."""
    if not key:
        raise ConfigurationError("Keepz private key is not configured")
    pem = key.encode() if "-----BEGIN" in key else _wrap_pem(key, "PRIVATE KEY")
    try:
        loaded = serialization.load_pem_private_key(pem, password=None)
    except ValueError:
        try:
            loaded = serialization.load_der_private_key(base64.b64decode(key), password=None)
        except ValueError as e:
            raise ConfigurationError(f"Keepz private key could not be loaded: {e}") from e
    if not isinstance(loaded, RSAPrivateKey):
        raise ConfigurationError("Keepz private key is not an RSA key")
    return loaded


def _aes_encrypt(plaintext: bytes, key: bytes, iv: bytes) -> bytes:
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return encryptor.update(padded) + encryptor.finalize()


def _aes_decrypt(ciphertext: bytes, key: bytes, iv: bytes) -> bytes:
    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()
    unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
    return unpadder.update(padded) + unpadder.finalize()


def encrypt_envelope(
    payload: Any,
    public_key: str,
    identifier: str,
    rsa_padding: RSAPadding = RSAPadding.OAEP,
) -> dict[str, Any]:
    """Encrypt a JSON payload into a Keepz request envelope."""
    rsa_key = load_public_key(public_key)
    aes_key = os.urandom(AES_KEY_BYTES)
    iv = os.urandom(AES_IV_BYTES)

    encrypted_data = _aes_encrypt(json.dumps(payload).encode("utf-8"), aes_key, iv)
    key_material = (
        base64.b64encode(aes_key).decode() + "." + base64.b64encode(iv).decode()
    ).encode("utf-8")
    encrypted_keys = rsa_key.encrypt(key_material, _rsa_padding(rsa_padding))

    return {
        "identifier": identifier,
        "encryptedData": base64.b64encode(encrypted_data).decode(),
        "encryptedKeys": base64.b64encode(encrypted_keys).decode(),
        "aes": True,
    }


def _unwrap_keys(rsa_key: RSAPrivateKey, wrapped_keys: bytes, mode: RSAPadding) -> tuple[bytes, bytes]:
    key_material = rsa_key.decrypt(wrapped_keys, _rsa_padding(mode))
    # PKCS1v15 may return random bytes instead of failing; the key.iv
    # framing is what confirms a successful unwrap
    encoded_key, encoded_iv = key_material.decode("utf-8").split(".", 1)
    aes_key = base64.b64decode(encoded_key, validate=True)
    iv = base64.b64decode(encoded_iv, validate=True)
    if len(aes_key) != AES_KEY_BYTES or len(iv) != AES_IV_BYTES:
        raise ValueError("Unexpected AES key or IV length")
    return aes_key, iv


def decrypt_envelope(
    encrypted_data: str,
    encrypted_keys: str,
    private_key: str,
) -> Any:
    """Decrypt a Keepz envelope, trying OAEP-SHA256 then PKCS1v15 for the key.

    Returns whatever JSON value was encrypted; callers that expect an object
    check the shape themselves.
    """
    rsa_key = load_private_key(private_key)
    try:
        wrapped_keys = base64.b64decode(encrypted_keys)
        ciphertext = base64.b64decode(encrypted_data)
    except ValueError as e:
        raise EnvelopeError("Envelope is not valid base64") from e

    unwrapped: tuple[bytes, bytes] | None = None
    for mode in (RSAPadding.OAEP, RSAPadding.PKCS1):
        try:
            unwrapped = _unwrap_keys(rsa_key, wrapped_keys, mode)
            break
        except ValueError:
            logger.debug("Keepz key unwrap failed with %s padding", mode.value)
    if unwrapped is None:
        raise EnvelopeError("Unable to decrypt Keepz envelope keys")

    aes_key, iv = unwrapped
    try:
        plaintext = _aes_decrypt(ciphertext, aes_key, iv)
        return json.loads(plaintext.decode("utf-8"))
    except ValueError as e:
        raise EnvelopeError(f"Unable to decode Keepz envelope: {e}") from e
