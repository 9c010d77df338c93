import base64
import bz2
import gzip
import io
import lzma
import tarfile
import zipfile

import pytest

from distillery.asset import (
    Asset,
    AssetError,
    AssetType,
    ChecksumKind,
    classify,
    detect_mimetype,
    is_elf,
)

ELF4 = b"\x7fELF"


def _tar_bytes(files):
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w", format=tarfile.USTAR_FORMAT) as tar:
        for name, mode, content in files:
            if "/" in name:
                d = tarfile.TarInfo(name.split("/")[0] + "/")
                d.type = tarfile.DIRTYPE
                d.mode = 0o755
                tar.addfile(d)
            info = tarfile.TarInfo(name)
            info.mode = mode
            info.size = len(content)
            tar.addfile(info, io.BytesIO(content))
    return buf.getvalue()


def _write(tmp_path, name, data):
    p = tmp_path / name
    p.write_bytes(data)
    return str(p)


@pytest.mark.parametrize(
    "name,expected",
    [
        ("test", AssetType.UNKNOWN),
        ("test.tar.gz", AssetType.ARCHIVE),
        ("test.tar.gz.asc", AssetType.SIGNATURE),
        ("dist.tar.gz.sig", AssetType.SIGNATURE),
        ("dist-linux-amd64.deb", AssetType.INSTALLER),
        ("dist-linux-amd64.rpm", AssetType.INSTALLER),
        ("dist-linux-amd64.exe", AssetType.BINARY),
        ("dist-linux-amd64", AssetType.UNKNOWN),
        ("dist-linux-amd64.tar.gz.pem", AssetType.KEY),
        ("checksums.txt", AssetType.CHECKSUM),
        ("dist-linux.SHASUMS", AssetType.CHECKSUM),
        ("dist-linux-amd64.tar.gz.sha256", AssetType.CHECKSUM),
        ("dist-linux.nse", AssetType.UNKNOWN),
        ("dist-windows.msi", AssetType.INSTALLER),
        ("dist-linux-amd64.sbom.json", AssetType.SBOM),
        ("dist-linux-amd64.json", AssetType.DATA),
        ("dist-linux-amd64.sbom", AssetType.SBOM),
    ],
)
def test_asset_types(name, expected):
    asset = Asset(name, name, "linux", "amd64", "1.0.0")
    assert asset.type is expected
    assert classify(name) is expected


def test_asset_defaults():
    asset = Asset("dist-linux-amd64.tar.gz", "dist-linux-amd64.tar.gz", "linux", "amd64", "1.0.0")
    with pytest.raises(AssetError):
        asset.download()
    assert asset.type is AssetType.ARCHIVE
    assert asset.display_name == "dist-linux-amd64.tar.gz"
    assert asset.download_path == ""
    assert asset.temp_dir == ""
    assert asset.files == []


def test_parent_type():
    assert Asset("dist.tar.gz.sig").parent_type is AssetType.ARCHIVE


def test_base_name_and_checksum_kind():
    assert Asset("dist-linux-amd64.tar.gz").base_name() == "dist-linux-amd64"
    assert Asset("x.sha256").checksum_kind() is ChecksumKind.FILE
    assert Asset("checksums.txt").checksum_kind() is ChecksumKind.MULTI
    assert Asset("dist.tar.gz").checksum_kind() is ChecksumKind.NONE


MULTI = [("bin1", 0o755, ELF4), ("bin2", 0o755, ELF4), ("docs/readme.md", 0o600, b"this is a readme")]


@pytest.mark.parametrize(
    "name,data,expected",
    [
        ("dist-linux-amd64.tar.gz", gzip.compress(_tar_bytes([("test-file", 0o755, ELF4)])), ["test-file"]),
        ("dist-linux-amd64.tar.bz2", bz2.compress(_tar_bytes([("test-file", 0o755, ELF4)])), ["test-file"]),
        ("dist-linux-amd64.tar.xz", lzma.compress(_tar_bytes([("test-file", 0o644, b"content")])), ["test-file"]),
        ("dist-linux-multi-amd64.tar.gz", gzip.compress(_tar_bytes(MULTI)), ["bin1", "bin2", "docs/readme.md"]),
    ],
)
def test_extract_archives(tmp_path, name, data, expected):
    asset = Asset(name, name, "linux", "amd64", "1.0.0")
    asset.download_path = _write(tmp_path, "download", data)
    try:
        asset.extract()
        assert [f.name for f in asset.files] == expected
    finally:
        asset.cleanup()


def test_extract_zip(tmp_path):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr("test-file", ELF4)
        zf.writestr("docs/", b"")
        zf.writestr("docs/README.md", b"This is a README file.")
    asset = Asset("dist-linux-amd64.zip")
    asset.download_path = _write(tmp_path, "d.zip", buf.getvalue())
    asset.extract()
    assert [f.name for f in asset.files] == ["test-file", "docs/README.md"]
    asset.cleanup()


def test_extract_direct(tmp_path):
    asset = Asset("dist-linux-amd64")
    asset.download_path = _write(tmp_path, "test-abc", b"This is a test file content")
    asset.extract()
    assert [(f.name, f.alias) for f in asset.files] == [("test-abc", "dist-linux-amd64")]
    asset.cleanup()


def test_extract_empty_zip_errors(tmp_path):
    buf = io.BytesIO()
    zipfile.ZipFile(buf, "w").close()
    asset = Asset("empty.zip")
    asset.download_path = _write(tmp_path, "e.zip", buf.getvalue())
    with pytest.raises(AssetError):
        asset.extract()
    assert asset.files == []
    asset.cleanup()


def test_extract_empty_tar_gz_is_direct(tmp_path):
    asset = Asset("empty.tar.gz")
    asset.download_path = _write(tmp_path, "test-1.tar.gz", gzip.compress(_tar_bytes([])))
    asset.extract()
    assert [f.name for f in asset.files] == ["test-1.tar.gz"]
    asset.cleanup()


PIE = (
    b"\x7fELF\x02\x01\x01\x00\x00" + b"\x00" * 7 + b"\x03\x00\x3e\x00\x01\x00\x00\x00" + b"\x00" * 40
)


def test_mark_installable(tmp_path):
    asset = Asset("dist-linux-multi-amd64.tar.gz", os="linux", arch="amd64")
    asset.download_path = _write(tmp_path, "d", gzip.compress(_tar_bytes(MULTI + [("pie", 0o755, PIE)])))
    asset.extract()
    asset.mark_installable()
    assert {f.name: f.installable for f in asset.files} == {
        "bin1": True,
        "bin2": True,
        "docs/readme.md": False,
        "pie": True,
    }
    asset.cleanup()


def test_detect_mimetype(tmp_path):
    assert detect_mimetype(_write(tmp_path, "a", ELF4))[0] == "application/x-elf"
    assert detect_mimetype(_write(tmp_path, "b", b"\xfe\xed\xfa\xce"))[0] == "application/x-mach-binary"
    assert detect_mimetype(_write(tmp_path, "c", PIE))[0] == "application/x-sharedlib"
    assert detect_mimetype(_write(tmp_path, "d", b"hello"))[1] == ".txt"
    assert is_elf(_write(tmp_path, "e", PIE)) is True
    assert is_elf(_write(tmp_path, "f", b"MZ")) is False


def _signature_packet(key_id):
    hashed = bytes([5, 2, 0, 0, 0, 1])
    unhashed = bytes([9, 16]) + key_id.to_bytes(8, "big")
    body = (
        bytes([4, 0, 1, 8]) + len(hashed).to_bytes(2, "big") + hashed
        + len(unhashed).to_bytes(2, "big") + unhashed + b"\x00\x00\x00\x01\x01"
    )
    return bytes([0xC2, len(body)]) + body


def test_gpg_key_id_binary_and_armored(tmp_path):
    packet = _signature_packet(0x0123456789ABCDEF)
    asset = Asset("dist.tar.gz.sig")
    asset.download_path = _write(tmp_path, "s.sig", packet)
    assert asset.gpg_key_id() == 0x0123456789ABCDEF

    armored = (
        "-----BEGIN PGP SIGNATURE-----\n\n"
        + base64.b64encode(packet).decode()
        + "\n=abcd\n-----END PGP SIGNATURE-----\n"
    )
    asset.download_path = _write(tmp_path, "s.asc", armored.encode())
    assert asset.gpg_key_id() == 0x0123456789ABCDEF


def test_gpg_key_id_requires_signature():
    with pytest.raises(AssetError):
        Asset("dist.tar.gz").gpg_key_id()