"""Tests for fingerprints."""

import dataclasses
import hashlib
import re
import struct

import pytest

from hlsl2mat.hashing import FINGERPRINT_PREFIX, compute_base_hash, fingerprint, hash_string
from hlsl2mat.models import Define, SourceFunction

FUNCTION = SourceFunction(
    start_line=4,
    comment="// Scales a color\n",
    return_type="void",
    name="Scale",
    arguments=("float3 Color", " out float3 Result"),
    body="\n    Result = Color * 2;\n",
)


def test_hash_string_format():
    """Test that hashes are 32 upper-case hex digits."""
    assert re.fullmatch(r"[0-9A-F]{32}", hash_string("hello"))
    assert re.fullmatch(r"[0-9A-F]{32}", hash_string(""))


def test_hash_string_folds_sha1():
    """Test that the first and last SHA-1 words are xored together."""
    words = struct.unpack("<5I", hashlib.sha1(b"hello").digest())
    expected = f"{words[0] ^ words[4]:08X}{words[1]:08X}{words[2]:08X}{words[3]:08X}"
    assert hash_string("hello") == expected


def test_hash_string_deterministic():
    assert hash_string("float3 a") == hash_string("float3 a")
    assert hash_string("float3 a") != hash_string("float3 b")


def test_base_hash():
    """Test that every include and define contributes to the base hash."""
    assert compute_base_hash([], []) == ""

    base = compute_base_hash(["a", "b"], [Define("FOO", "1")])
    assert len(base) == 32 * 4
    assert base == hash_string("a") + hash_string("b") + hash_string("FOO") + hash_string("1")
    assert compute_base_hash(["b", "a"], [Define("FOO", "1")]) != base
    assert compute_base_hash(["a", "b"], [Define("FOO", "2")]) != base


def test_fingerprint_format():
    tag = fingerprint(FUNCTION, "")
    assert tag.startswith(FINGERPRINT_PREFIX)
    assert re.fullmatch(r"[0-9A-F]{32}", tag[len(FINGERPRINT_PREFIX) :])


def test_fingerprint_deterministic():
    """Test that identical inputs give identical fingerprints."""
    copy = dataclasses.replace(FUNCTION)
    assert fingerprint(FUNCTION, "X", metadata="m") == fingerprint(copy, "X", metadata="m")


@pytest.mark.parametrize(
    "changes",
    [
        {"comment": "// Scales a colour\n"},
        {"return_type": "float"},
        {"name": "Scale2"},
        {"arguments": ("float3 Color", " out float4 Result")},
        {"body": "\n    Result = Color * 3;\n"},
    ],
)
def test_fingerprint_changes_with_function(changes):
    """Test that every field of the function contributes."""
    changed = dataclasses.replace(FUNCTION, **changes)
    assert fingerprint(changed, "") != fingerprint(FUNCTION, "")


def test_fingerprint_changes_with_context():
    """Test that the base hash and metadata contribute."""
    tag = fingerprint(FUNCTION, "")
    assert fingerprint(FUNCTION, hash_string("include")) != tag
    assert fingerprint(FUNCTION, "", metadata="categories: [Math]") != tag


def test_start_line_only_with_accurate_errors():
    """Test that moving a function only matters with accurate errors."""
    moved = dataclasses.replace(FUNCTION, start_line=10)
    assert fingerprint(moved, "") == fingerprint(FUNCTION, "")
    assert fingerprint(moved, "", accurate_errors=True) != fingerprint(
        FUNCTION, "", accurate_errors=True
    )
