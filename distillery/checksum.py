"""Computing file hashes and checking them against checksum files."""

from __future__ import annotations

import hashlib
import logging
import os

from distillery.common import TRACE

log = logging.getLogger(__name__)

_HASH_BY_LENGTH = {
    32: "md5",
    40: "sha1",
    64: "sha256",
    128: "sha512",
}


class UnsupportedHashLengthError(ValueError):
    """Raised when the hash length in a checksum file matches no known algorithm."""

    def __init__(self, length: int) -> None:
        super().__init__(f"unsupported hash length: {length}")
        self.length = length


class ChecksumFileError(ValueError):
    """Raised when a checksum file has no usable content."""


def compute_file_hash(file_path: str, hash_name: str) -> str:
    """Return the lowercase hex digest of a file using the named hash algorithm."""
    digest = hashlib.new(hash_name)
    with open(file_path, "rb") as fh:
        for chunk in iter(lambda: fh.read(1 << 16), b""):
            digest.update(chunk)
    return digest.hexdigest()


def determine_hash_func(checksum_file_path: str) -> str:
    """Return the hash algorithm name implied by the first hash in a checksum file."""
    with open(checksum_file_path, encoding="utf-8", errors="replace") as fh:
        first_line = fh.readline()
    fields = first_line.split()
    if not fields:
        raise ChecksumFileError("unable to find hash in checksum file")
    length = len(fields[0])
    log.log(TRACE, "hashLength: %d", length)
    try:
        return _HASH_BY_LENGTH[length]
    except KeyError:
        raise UnsupportedHashLengthError(length) from None


def compare_hash_with_checksum_file(src_filename: str, src_file_path: str, checksum_file_path: str) -> bool:
    """Return True if the checksum file lists the file's hash under its name."""
    hash_name = determine_hash_func(checksum_file_path)
    computed = compute_file_hash(src_file_path, hash_name)

    with open(checksum_file_path, encoding="utf-8", errors="replace") as fh:
        for line in fh:
            parts = line.split()
            if len(parts) > 1:
                file_hash, hash_filename = parts[0], parts[1]
            elif parts:
                file_hash, hash_filename = parts[0], src_filename
            else:
                raise ChecksumFileError("unable to find hash and filename in checksum file")

            log.log(TRACE, "fileHash: %s", file_hash)
            log.log(TRACE, "filename: %s", hash_filename)
            # binary-mode entries carry a leading "*"
            hash_filename = hash_filename.removeprefix("*")

            name_matches = hash_filename == src_filename or os.path.basename(hash_filename) == src_filename
            if name_matches and file_hash == computed:
                return True
    return False