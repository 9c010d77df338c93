"""Cosign bundles and ECDSA signature verification."""

from __future__ import annotations

import base64
import binascii
import hashlib
import re
from dataclasses import dataclass, field
from typing import Any

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, utils


class CosignError(ValueError):
    """Raised when a key, certificate or signature cannot be decoded."""


@dataclass
class Payload:
    """The transparency log entry recorded for a signature."""

    body: str = ""
    integrated_time: int = 0
    log_index: int = 0
    log_id: str = ""


@dataclass
class Rekor:
    """The transparency log part of a bundle."""

    signed_entry_timestamp: str = ""
    payload: Payload = field(default_factory=Payload)


@dataclass
class Bundle:
    """A signature bundle: signature, signing certificate and log entry."""

    signature: str = ""
    certificate: str = ""
    rekor_bundle: Rekor = field(default_factory=Rekor)

    @staticmethod
    def from_dict(data: dict[str, Any]) -> Bundle:
        """Build a bundle from its decoded JSON form."""
        if not isinstance(data, dict):
            raise CosignError("bundle must be a JSON object")
        rekor = data.get("rekorBundle") or {}
        payload = rekor.get("Payload") or {}
        return Bundle(
            signature=data.get("base64Signature", "") or "",
            certificate=data.get("cert", "") or "",
            rekor_bundle=Rekor(
                signed_entry_timestamp=rekor.get("SignedEntryTimestamp", "") or "",
                payload=Payload(
                    body=payload.get("body", "") or "",
                    integrated_time=int(payload.get("integratedTime", 0) or 0),
                    log_index=int(payload.get("logIndex", 0) or 0),
                    log_id=payload.get("logID", "") or "",
                ),
            ),
        )


_PEM_BLOCK = re.compile(
    rb"-----BEGIN (?P<type>[^\r\n-]*)-----\r?\n(?P<body>.*?)-----END (?P=type)-----",
    re.DOTALL,
)

_PREHASH_BY_LENGTH = {
    20: hashes.SHA1,
    28: hashes.SHA224,
    32: hashes.SHA256,
    48: hashes.SHA384,
    64: hashes.SHA512,
}


def _decode_pem(pem_data: bytes) -> tuple[str, bytes] | None:
    match = _PEM_BLOCK.search(pem_data)
    if match is None:
        return None
    lines = [line.strip() for line in match.group("body").splitlines()]
    body = b"".join(line for line in lines if line and b":" not in line)
    try:
        der = base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError):
        return None
    return match.group("type").decode("ascii", errors="replace"), der


def parse_public_key(pem_data: bytes) -> ec.EllipticCurvePublicKey:
    """Return the ECDSA public key from a PEM public key or certificate."""
    block = _decode_pem(pem_data)
    if block is None or block[0] not in ("PUBLIC KEY", "CERTIFICATE"):
        raise CosignError("failed to decode PEM block containing public key or certificate")

    block_type, der = block
    try:
        if block_type == "PUBLIC KEY":
            key = serialization.load_der_public_key(der)
        else:
            key = x509.load_der_x509_certificate(der).public_key()
    except (ValueError, UnsupportedAlgorithm) as exc:
        raise CosignError(str(exc)) from exc

    if not isinstance(key, ec.EllipticCurvePublicKey):
        raise CosignError("not ECDSA public key")
    return key


def hash_data(data: bytes) -> bytes:
    """Return the SHA-256 digest of data."""
    return hashlib.sha256(data).digest()


def verify_signature(public_key: ec.EllipticCurvePublicKey, digest: bytes, signature: bytes) -> bool:
    """Check a base64 encoded ASN.1 ECDSA signature over a precomputed digest."""
    encoded = signature.decode("ascii", errors="strict") if isinstance(signature, bytes) else signature
    encoded = encoded.replace("\r", "").replace("\n", "")
    try:
        raw = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CosignError(f"illegal base64 data in signature: {exc}") from exc

    algorithm = _PREHASH_BY_LENGTH.get(len(digest))
    if algorithm is None:
        return False
    try:
        public_key.verify(raw, digest, ec.ECDSA(utils.Prehashed(algorithm())))
    except (InvalidSignature, ValueError):
        return False
    return True