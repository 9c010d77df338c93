"""Release assets: classification, extraction and installability checks."""

from __future__ import annotations

import base64
import binascii
import bz2
import enum
import gzip
import io
import logging
import lzma
import os
import shutil
import tarfile
import tempfile
import zipfile
from dataclasses import dataclass, field

import zstandard

from distillery.common import NAME, TRACE

log = logging.getLogger(__name__)

LINUX = "linux"

IGNORE_FILE_EXTENSIONS = (".txt", ".sbom", ".json")

EXECUTABLE_MIMETYPES = (
    "application/x-mach-binary",
    "application/x-executable",
    "application/x-elf",
    "application/vnd.microsoft.portable-executable",
)

_CHECKSUM_SUFFIXES = (
    ".sha512",
    ".sha512sum",
    ".sha256",
    ".sha256sum",
    ".md5",
    ".md5sum",
    ".sha1",
    ".sha1sum",
    ".shasum",
)


class AssetError(Exception):
    """Raised when an asset cannot be extracted or inspected."""


class AssetType(enum.IntEnum):
    """The kind of file a release asset is."""

    UNKNOWN = 0
    ARCHIVE = 1
    BINARY = 2
    INSTALLER = 3
    CHECKSUM = 4
    SIGNATURE = 5
    KEY = 6
    SBOM = 7
    DATA = 8

    def __str__(self) -> str:
        return self.name.lower()


class ChecksumKind(str, enum.Enum):
    """How a checksum asset lists its hashes."""

    NONE = "none"
    FILE = "single"
    MULTI = "multi"


_TYPE_BY_EXTENSION = {
    **dict.fromkeys(("deb", "rpm", "msi", "apk", "pkg"), AssetType.INSTALLER),
    **dict.fromkeys(("gz", "zip", "xz", "tar", "bz2", "tgz", "zst"), AssetType.ARCHIVE),
    "exe": AssetType.BINARY,
    **dict.fromkeys(("sig", "asc"), AssetType.SIGNATURE),
    **dict.fromkeys(("pem", "pub", "cert", "crt"), AssetType.KEY),
    **dict.fromkeys(("sbom", "bom"), AssetType.SBOM),
    "json": AssetType.DATA,
}


def _ext(name: str) -> str:
    """Return the extension including the dot, looking only past the last slash."""
    dot = name.rfind(".")
    if dot > name.rfind("/"):
        return name[dot:]
    return ""


def classify(name: str) -> AssetType:
    """Determine the type of an asset from its file name."""
    kind = AssetType.UNKNOWN
    ext = _ext(name).removeprefix(".")
    if ext:
        kind = _TYPE_BY_EXTENSION.get(ext, AssetType.UNKNOWN)
        if kind is AssetType.DATA and (".sbom" in name or ".bom" in name):
            kind = AssetType.SBOM

    if kind is AssetType.UNKNOWN:
        log.log(TRACE, "classifying asset based on name: %s", name)
        name = name.lower()
        if name.endswith(_CHECKSUM_SUFFIXES) or "checksums" in name or "sums" in name:
            kind = AssetType.CHECKSUM

    if kind is AssetType.UNKNOWN:
        if "-pivkey-" in name or ("pkcs" in name and "key" in name):
            kind = AssetType.KEY

    log.log(TRACE, "classified: %s - %s (type: %d)", name, kind, kind)
    return kind


_MACHO_MAGICS = (
    b"\xfe\xed\xfa\xce",
    b"\xce\xfa\xed\xfe",
    b"\xfe\xed\xfa\xcf",
    b"\xcf\xfa\xed\xfe",
    b"\xca\xfe\xba\xbe",
)


def detect_mimetype(path: str) -> tuple[str, str]:
    """Return the mimetype and usual extension of a file from its content."""
    with open(path, "rb") as fh:
        head = fh.read(3072)

    if head.startswith(b"\x7fELF"):
        if len(head) > 16:
            elf_type = head[16]
            if elf_type == 1:
                return "application/x-object", ""
            if elf_type == 2:
                return "application/x-executable", ""
            if elf_type == 3:
                return "application/x-sharedlib", ".so"
            if elf_type == 4:
                return "application/x-coredump", ""
        return "application/x-elf", ""
    if head[:4] in _MACHO_MAGICS:
        return "application/x-mach-binary", ""
    if head.startswith(b"MZ"):
        return "application/vnd.microsoft.portable-executable", ".exe"
    if head.startswith(b"PK\x03\x04") or head.startswith(b"PK\x05\x06"):
        return "application/zip", ".zip"
    if head.startswith(b"\x1f\x8b"):
        return "application/gzip", ".gz"
    if not head:
        return "text/plain", ".txt"
    try:
        text = head.decode("utf-8")
    except UnicodeDecodeError:
        if len(head) == 3072:
            try:
                head[:-3].decode("utf-8")
                text = head[:-3].decode("utf-8")
            except UnicodeDecodeError:
                return "application/octet-stream", ""
        else:
            return "application/octet-stream", ""
    if "\x00" in text:
        return "application/octet-stream", ""
    if text.lstrip().startswith(("{", "[")):
        return "application/json", ".json"
    return "text/plain", ".txt"


def is_elf(path: str) -> bool:
    """Return True if the file starts with the ELF magic number."""
    try:
        with open(path, "rb") as fh:
            return fh.read(4) == b"\x7fELF"
    except OSError as exc:
        log.log(TRACE, "unable to open file for elf determination: %s: %s", path, exc)
        return False


@dataclass
class AssetFile:
    """A file that came out of an asset."""

    name: str
    alias: str = ""
    installable: bool = False


def _decompress(head: bytes, fh) -> bytes | None:
    if head.startswith(b"\x1f\x8b"):
        return gzip.GzipFile(fileobj=fh).read()
    if head.startswith(b"BZh"):
        return bz2.BZ2File(fh).read()
    if head.startswith(b"\xfd7zXZ\x00"):
        return lzma.LZMAFile(fh).read()
    if head.startswith(b"\x28\xb5\x2f\xfd"):
        return zstandard.ZstdDecompressor().stream_reader(fh).read()
    return None


def _is_tar(data: bytes) -> bool:
    return len(data) >= 262 and data[257:262] == b"ustar"


@dataclass
class Asset:
    """A file attached to a release."""

    name: str
    display_name: str = ""
    os: str = ""
    arch: str = ""
    version: str = ""
    type: AssetType = AssetType.UNKNOWN
    parent_type: AssetType = AssetType.UNKNOWN
    matched_asset: Asset | None = None
    extension: str = ""
    download_path: str = ""
    hash: str = ""
    temp_dir: str = ""
    files: list[AssetFile] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.type = classify(self.name)
        if self.type in (AssetType.KEY, AssetType.SIGNATURE, AssetType.CHECKSUM):
            ext = _ext(self.name)
            parent = self.name.replace(ext, "") if ext else self.name
            self.parent_type = classify(parent.removesuffix("-keyless"))

    @property
    def id(self) -> str:
        return self.name

    def base_name(self) -> str:
        """Return the name with its short extensions removed."""
        filename = self.name
        while True:
            ext = _ext(filename)
            if len(ext) > 5 or "_" in ext:
                return filename
            stripped = filename.removesuffix(ext)
            if stripped == filename:
                return filename
            filename = stripped

    def checksum_kind(self) -> ChecksumKind:
        """Return whether the asset is a single-file or multi-file checksum list."""
        name = self.name.lower()
        if name.endswith(_CHECKSUM_SUFFIXES):
            return ChecksumKind.FILE
        if "checksum" in name or "sums" in name:
            return ChecksumKind.MULTI
        return ChecksumKind.NONE

    def download(self) -> None:
        """Fetch the asset; a plain asset has no location to fetch from."""
        raise AssetError(f"asset {self.name} has no download source")

    def extract(self) -> list[AssetFile]:
        """Unpack the downloaded file into a new temporary directory."""
        with open(self.download_path, "rb") as fh:
            self.temp_dir = tempfile.mkdtemp(prefix=NAME)
            log.debug("opened and extracting file: %s", self.download_path)
            head = fh.read(512)
            fh.seek(0)

            if head.startswith(b"PK\x03\x04"):
                self._extract_zip(fh)
                return self.files

            try:
                data = _decompress(head, fh)
            except (OSError, EOFError, lzma.LZMAError, zstandard.ZstdError) as exc:
                raise AssetError(f"unable to decompress {self.download_path}: {exc}") from exc
            compressed = data is not None
            if data is None:
                data = fh.read()

        if _is_tar(data):
            self._extract_tar(data)
        elif not compressed and self.type is AssetType.ARCHIVE:
            log.warning("unable to identify archive format")
            raise AssetError("unable to identify or invalid archive format")
        else:
            self._write_direct(data)
        return self.files

    def _target(self, member: str) -> str:
        root = os.path.realpath(self.temp_dir)
        target = os.path.realpath(os.path.join(root, member))
        if target != root and not target.startswith(root + os.sep):
            raise AssetError(f"archive entry escapes extraction directory: {member}")
        return target

    def _write_direct(self, data: bytes) -> None:
        log.log(TRACE, "processing direct file")
        base = os.path.basename(self.download_path)
        with open(os.path.join(self.temp_dir, base), "wb") as out:
            out.write(data)
        self.files.append(AssetFile(name=base, alias=self.name))

    def _write_member(self, name: str, content: bytes, mode: int) -> None:
        target = self._target(name)
        os.makedirs(os.path.dirname(target), exist_ok=True)
        with open(target, "wb") as out:
            out.write(content)
        if mode:
            os.chmod(target, mode & 0o7777)
        self.files.append(AssetFile(name=name))
        log.log(TRACE, "archive > create file %s", target)

    def _extract_tar(self, data: bytes) -> None:
        try:
            with tarfile.open(fileobj=io.BytesIO(data), mode="r:") as tar:
                for member in tar:
                    if member.isdir():
                        os.makedirs(self._target(member.name), mode=0o755, exist_ok=True)
                    elif member.isfile():
                        src = tar.extractfile(member)
                        content = src.read() if src else b""
                        self._write_member(member.name, content, member.mode)
        except tarfile.TarError as exc:
            raise AssetError(f"invalid tar archive: {exc}") from exc

    def _extract_zip(self, fh) -> None:
        try:
            with zipfile.ZipFile(fh) as archive:
                for info in archive.infolist():
                    if info.is_dir():
                        os.makedirs(self._target(info.filename), mode=0o755, exist_ok=True)
                        continue
                    self._write_member(info.filename, archive.read(info), info.external_attr >> 16)
        except zipfile.BadZipFile as exc:
            raise AssetError(f"invalid zip archive: {exc}") from exc

    def mark_installable(self) -> None:
        """Flag extracted files that are executables for the asset's platform."""
        log.log(TRACE, "files to process: %d", len(self.files))
        for file in self.files:
            full_path = os.path.join(self.temp_dir, file.name)
            try:
                mime, ext = detect_mimetype(full_path)
            except OSError as exc:
                log.warning("unable to determine mimetype: %s", exc)
                continue
            log.debug("found mimetype: %s", mime)
            if ext in IGNORE_FILE_EXTENSIONS:
                log.log(TRACE, "ignoring file: %s", file.name)
                continue
            if mime in EXECUTABLE_MIMETYPES:
                file.installable = True
            if not file.installable and self.os == LINUX and mime == "application/x-sharedlib":
                file.installable = is_elf(full_path)

    def cleanup(self) -> None:
        """Remove the temporary extraction directory."""
        if not self.temp_dir:
            return
        log.log(TRACE, "cleaning up temp dir: %s", self.temp_dir)
        shutil.rmtree(self.temp_dir, ignore_errors=False) if os.path.exists(self.temp_dir) else None

    def gpg_key_id(self) -> int:
        """Return the issuer key id of an OpenPGP signature asset."""
        if self.type is not AssetType.SIGNATURE:
            raise AssetError(f"asset is not a signature: {self.name}")
        try:
            with open(self.download_path, "rb") as fh:
                content = fh.read()
        except OSError as exc:
            raise AssetError(f"failed to read signature: {exc}") from exc
        packet = _dearmor(content)
        if packet is None:
            packet = content
        ids = _signature_key_ids(packet)
        if not ids:
            raise AssetError("signature does not contain a key ID")
        return ids[0]


def _dearmor(content: bytes) -> bytes | None:
    try:
        lines = content.decode("ascii").splitlines()
    except UnicodeDecodeError:
        return None
    start = next((i for i, line in enumerate(lines) if line.startswith("-----BEGIN PGP")), None)
    if start is None:
        return None
    body: list[str] = []
    in_headers = True
    for line in lines[start + 1 :]:
        if line.startswith("-----END PGP"):
            break
        stripped = line.strip()
        if in_headers:
            if not stripped:
                in_headers = False
            elif ":" not in stripped:
                in_headers = False
                body.append(stripped)
            continue
        if stripped.startswith("=") and len(stripped) == 5:
            continue
        body.append(stripped)
    try:
        return base64.b64decode("".join(body), validate=True)
    except (binascii.Error, ValueError):
        return None


def _subpacket_ids(area: bytes) -> list[int]:
    ids: list[int] = []
    pos = 0
    while pos < len(area):
        first = area[pos]
        if first < 192:
            length, pos = first, pos + 1
        elif first < 255:
            length, pos = ((first - 192) << 8) + area[pos + 1] + 192, pos + 2
        else:
            length, pos = int.from_bytes(area[pos + 1 : pos + 5], "big"), pos + 5
        if length == 0:
            break
        kind = area[pos] & 0x7F
        data = area[pos + 1 : pos + length]
        if kind == 16 and len(data) == 8:
            ids.append(int.from_bytes(data, "big"))
        elif kind == 33 and len(data) >= 9:
            ids.append(int.from_bytes(data[-8:], "big"))
        pos += length
    return ids


def _signature_key_ids(data: bytes) -> list[int]:
    if len(data) < 2 or not data[0] & 0x80:
        raise AssetError("signature is not an OpenPGP packet")
    first = data[0]
    if first & 0x40:
        tag = first & 0x3F
        l0 = data[1]
        if l0 < 192:
            length, pos = l0, 2
        elif l0 < 224:
            length, pos = ((l0 - 192) << 8) + data[2] + 192, 3
        elif l0 == 255:
            length, pos = int.from_bytes(data[2:6], "big"), 6
        else:
            length, pos = len(data) - 2, 2
    else:
        tag = (first >> 2) & 0x0F
        size = {0: 1, 1: 2, 2: 4}.get(first & 0x03)
        if size is None:
            length, pos = len(data) - 1, 1
        else:
            length, pos = int.from_bytes(data[1 : 1 + size], "big"), 1 + size
    if tag != 2:
        raise AssetError("signature does not contain a signature packet")
    body = data[pos : pos + length]
    if not body:
        raise AssetError("empty signature packet")
    version = body[0]
    if version == 3:
        return [int.from_bytes(body[7:15], "big")] if len(body) >= 15 else []
    if version in (4, 5):
        hashed_len = int.from_bytes(body[4:6], "big")
        hashed = body[6 : 6 + hashed_len]
        rest = body[6 + hashed_len :]
        unhashed_len = int.from_bytes(rest[0:2], "big")
        unhashed = rest[2 : 2 + unhashed_len]
        return _subpacket_ids(hashed) + _subpacket_ids(unhashed)
    raise AssetError(f"unsupported signature version: {version}")