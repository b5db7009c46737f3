"""
Author signatures for template archives.

A keystore is a PKCS#12 file holding the author's private key and
certificate. The signature covers ``template_hash + timestamp``; the
certificate travels in the signature block, so verifying needs nothing but
the archive itself.

Supported keys: RSA (PKCS#1 v1.5, SHA-256), EC (ECDSA, SHA-256) and Ed25519.
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, padding, rsa
from cryptography.hazmat.primitives.serialization import pkcs12

from pactum.core.errors import AuthorSignatureError
from pactum.core.ir import AuthorSignature
from pactum.core.model_manager import format_datetime

logger = logging.getLogger(__name__)

INVALID_SIGNATURE = "Template's author signature is invalid!"

ALGORITHM_RSA = "RSA-SHA256"
ALGORITHM_ECDSA = "ECDSA-SHA256"
ALGORITHM_ED25519 = "Ed25519"

SigningKey = rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey | ed25519.Ed25519PrivateKey


@dataclass
class Keystore:
    """A PKCS#12 keystore file and its passphrase."""

    path: Path
    passphrase: str = ""


@dataclass
class SigningCredentials:
    key: SigningKey
    certificate: x509.Certificate


def load_keystore(keystore: Keystore) -> SigningCredentials:
    """
    Read the private key and certificate from a PKCS#12 file.

    Raises:
        AuthorSignatureError: If the file cannot be read or decrypted, or
        holds no usable key and certificate.
    """
    try:
        data = Path(keystore.path).read_bytes()
    except OSError as e:
        raise AuthorSignatureError(f"Cannot read keystore {keystore.path}: {e}") from e
    password = keystore.passphrase.encode("utf-8") if keystore.passphrase else None
    try:
        key, certificate, _ = pkcs12.load_key_and_certificates(data, password)
    except ValueError as e:
        raise AuthorSignatureError(f"Cannot open keystore {keystore.path}: {e}") from e
    if key is None or certificate is None:
        raise AuthorSignatureError(f"Keystore {keystore.path} must hold a key and a certificate")
    if not isinstance(key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey, ed25519.Ed25519PrivateKey)):
        raise AuthorSignatureError(f"Unsupported key type in keystore: {type(key).__name__}")
    return SigningCredentials(key=key, certificate=certificate)


def _sign_bytes(key: SigningKey, message: bytes) -> tuple[str, bytes]:
    if isinstance(key, rsa.RSAPrivateKey):
        return ALGORITHM_RSA, key.sign(message, padding.PKCS1v15(), hashes.SHA256())
    if isinstance(key, ec.EllipticCurvePrivateKey):
        return ALGORITHM_ECDSA, key.sign(message, ec.ECDSA(hashes.SHA256()))
    return ALGORITHM_ED25519, key.sign(message)


def sign_hash(
    template_hash: str,
    credentials: SigningCredentials,
    timestamp: str | None = None,
) -> AuthorSignature:
    """Sign a template content hash."""
    timestamp = timestamp or format_datetime(datetime.now(UTC))
    message = (template_hash + timestamp).encode("utf-8")
    algorithm, signature = _sign_bytes(credentials.key, message)
    pem = credentials.certificate.public_bytes(serialization.Encoding.PEM).decode("ascii")
    logger.info(
        "Signed template hash %s as %s",
        template_hash[:12],
        credentials.certificate.subject.rfc4514_string(),
    )
    return AuthorSignature(
        template_hash=template_hash,
        timestamp=timestamp,
        algorithm=algorithm,
        signature=base64.b64encode(signature).decode("ascii"),
        certificate=pem,
    )


def verify_signature(signature: AuthorSignature, template_hash: str) -> None:
    """
    Check a signature block against a recomputed content hash.

    Every kind of mismatch raises the same error.

    Raises:
        AuthorSignatureError: If the hash, the signature or the certificate
        does not check out.
    """
    if signature.template_hash != template_hash:
        logger.debug("Content hash mismatch: signed %s, found %s", signature.template_hash, template_hash)
        raise AuthorSignatureError(INVALID_SIGNATURE)
    try:
        certificate = x509.load_pem_x509_certificate(signature.certificate.encode("ascii"))
        raw = base64.b64decode(signature.signature, validate=True)
    except (ValueError, binascii.Error) as e:
        logger.debug("Malformed signature block: %s", e)
        raise AuthorSignatureError(INVALID_SIGNATURE) from e

    public_key = certificate.public_key()
    message = signature.signed_message
    try:
        if signature.algorithm == ALGORITHM_RSA and isinstance(public_key, rsa.RSAPublicKey):
            public_key.verify(raw, message, padding.PKCS1v15(), hashes.SHA256())
        elif signature.algorithm == ALGORITHM_ECDSA and isinstance(
            public_key, ec.EllipticCurvePublicKey
        ):
            public_key.verify(raw, message, ec.ECDSA(hashes.SHA256()))
        elif signature.algorithm == ALGORITHM_ED25519 and isinstance(
            public_key, ed25519.Ed25519PublicKey
        ):
            public_key.verify(raw, message)
        else:
            logger.debug("Algorithm %s does not match the certificate key", signature.algorithm)
            raise AuthorSignatureError(INVALID_SIGNATURE)
    except InvalidSignature as e:
        raise AuthorSignatureError(INVALID_SIGNATURE) from e
    logger.debug("Signature by %s verified", certificate.subject.rfc4514_string())
