# distillery

Building blocks for working with prebuilt binaries published on release
pages: asset classification and extraction, checksum and cosign
signature checks, Distfile parsing, configuration handling, and small
clients for the GitLab, HashiCorp and Homebrew release APIs.

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## Command line

Binaries live in `$HOME/.distillery/bin`. Over time that directory can
collect regular files that no symlink in it points to any more. List
them with:

```
distillery-clean
```

Nothing is removed by default. To delete the orphaned files:

```
distillery-clean --no-dry-run
```

Logging options: `-l/--log-level` (`trace`, `debug`, `info`, `warn`,
`error`; default `info`, or `$LOG_LEVEL`), `--log-caller`,
`--log-disable-color` and `--log-full-timestamp`.

The same work is available from Python: `distillery.commands.clean.scan_bin_dir(bin_dir)`
returns a `CleanReport` whose `orphans` property lists the unreferenced
files, and `execute(bin_dir, no_dry_run)` reports and optionally removes
them.

## Library

### Configuration

```python
from distillery.config import load_config

cfg = load_config("distillery.yaml")
print(cfg.home_dir(), cfg.opt_dir(), cfg.cache_dir())
alias = cfg.get_alias("dist")
```

Configuration files may be YAML (`.yaml`) or TOML (`.toml`); any other
suffix raises `ConfigError`. A missing file is not an error and the
defaults are filled in: language `en`, default source `github`, home
`$HOME/.distillery`, bin path `<home>/bin`, the user cache directory,
and `warn` for every setting in `Settings`. The directory accessors
(`home_dir`, `cache_dir`, `metadata_dir`, `downloads_dir`, `opt_dir`)
expand environment variables such as `$HOME` and return clean absolute
paths with forward slashes; `process_path` does the same for any path.
`mkdir_all()` creates the bin, opt, cache, metadata and downloads
directories. The `dist` alias is always available unless the
configuration defines its own. An alias may be written as
`name@version` or as a mapping with `name`, `version` and `flags`.

### Checksums

```python
from distillery.checksum import compare_hash_with_checksum_file

ok = compare_hash_with_checksum_file(
    "tool-linux-amd64.tar.gz",
    "/tmp/downloads/tool-linux-amd64.tar.gz",
    "/tmp/downloads/checksums.txt",
)
```

The hash algorithm (MD5, SHA-1, SHA-256 or SHA-512) is chosen from the
length of the first hash in the checksum file; any other length raises
`UnsupportedHashLengthError`. Lines with only a hash apply to the file
being checked, and a leading `*` on a file name is ignored.
`compute_file_hash(path, "sha256")` gives the hex digest of a file.

### Cosign signatures

```python
from distillery.cosign import parse_public_key, hash_data, verify_signature

public_key = parse_public_key(open("checksums.txt.pem", "rb").read())
digest = hash_data(open("checksums.txt", "rb").read())
valid = verify_signature(public_key, digest, open("checksums.txt.sig", "rb").read())
```

`parse_public_key` accepts a PEM `PUBLIC KEY` or `CERTIFICATE` holding
an ECDSA key; anything else raises `CosignError`. The signature is a
base64 encoded ASN.1 ECDSA signature. `Bundle.from_dict` reads the JSON
of a cosign bundle.

### Distfiles

A Distfile lists binaries to install, one per line:

```
# tools
install ekristen/aws-nuke
install ekristen/azure-nuke@1.0.0
file other/Distfile
```

```python
from distillery.distfile import parse

for command in parse("Distfile"):
    print(command.action, command.args)
```

`distill`, `install` and `dist` all become `install` commands; `file`
and `distfile` include another Distfile, whose path is opened as given.
Unknown commands, a `file` line without exactly one argument, and
circular inclusion raise `DistfileError`.

### Assets

```python
from distillery.asset import Asset, classify

print(classify("tool-linux-amd64.tar.gz"))   # archive
print(classify("checksums.txt"))             # checksum

asset = Asset("tool-linux-amd64.tar.gz", os="linux", arch="amd64", version="1.0.0")
asset.download_path = "/tmp/downloads/tool-linux-amd64.tar.gz"
asset.extract()
asset.mark_installable()
print([f.name for f in asset.files if f.installable])
asset.cleanup()
```

`classify` tells archives, binaries, installers, checksums, signatures,
keys, SBOMs and data files apart by name. `Asset.extract` unpacks zip
archives and tar archives (plain, gzip, bzip2, xz or zstd) into a
temporary directory, or copies a plain file there; `mark_installable`
flags files whose content is an executable. `base_name`,
`checksum_kind` and `gpg_key_id` (the issuer key id of an OpenPGP
signature) are also available.

### Release API clients

`distillery.clients.gitlab.GitLabClient` (`list_releases`,
`get_latest_release`, `get_release`; optional `base_url` and `token`),
`distillery.clients.hashicorp.HashicorpClient` (`list_products`,
`list_releases`, `get_version`) and
`distillery.clients.homebrew.HomebrewClient` (`get_formula`) fetch
release metadata with `requests` and return plain dataclasses. Failed
requests and undecodable responses raise `GitLabError`,
`HashicorpError` or `HomebrewError`.

## What this package does not do

It does not install anything. There is no install, uninstall, list or
run command, no GitHub client, and nothing that picks an asset for a
platform. `Asset.download` raises `AssetError`, since a plain asset has
no location to fetch from, and the commands returned by the Distfile
parser are not carried out by anything in the package. The only
command-line tool is `distillery-clean`.