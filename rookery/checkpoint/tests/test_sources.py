"""Tests for source tarball lookup and hashing."""
from __future__ import annotations

import hashlib
from pathlib import Path

from rookery.checkpoint.sources import find_source_tarball, source_hash


def test_find_tar_xz(tmp_path: Path):
    (tmp_path / "gcc-15.2.0.tar.xz").write_bytes(b"gcc")
    assert find_source_tarball("gcc", tmp_path) == tmp_path / "gcc-15.2.0.tar.xz"


def test_find_tgz(tmp_path: Path):
    (tmp_path / "tzdata-2025b.tgz").write_bytes(b"tz")
    assert find_source_tarball("tzdata", tmp_path) == tmp_path / "tzdata-2025b.tgz"


def test_find_is_top_level_only(tmp_path: Path):
    nested = tmp_path / "patches"
    nested.mkdir()
    (nested / "bash-5.3.tar.gz").write_bytes(b"bash")
    assert find_source_tarball("bash", tmp_path) is None


def test_find_picks_first_sorted(tmp_path: Path):
    (tmp_path / "perl-5.42.0.tar.xz").write_bytes(b"b")
    (tmp_path / "perl-5.40.0.tar.xz").write_bytes(b"a")
    assert find_source_tarball("perl", tmp_path).name == "perl-5.40.0.tar.xz"


def test_find_missing_dir(tmp_path: Path):
    assert find_source_tarball("gcc", tmp_path / "nope") is None


def test_hash_is_md5(tmp_path: Path):
    (tmp_path / "m4-1.4.20.tar.xz").write_bytes(b"m4 source")
    assert source_hash("m4", tmp_path) == hashlib.md5(b"m4 source").hexdigest()


def test_hash_missing_tarball(tmp_path: Path):
    assert source_hash("m4", tmp_path) is None
