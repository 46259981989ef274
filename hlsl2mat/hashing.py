"""
Content fingerprints used to skip unchanged functions.

A fingerprint covers everything that influences the generated code of one
function: its text, its position when accurate errors are enabled, the
generation options, and the content of the includes and defines of the file.
"""

import hashlib
import struct
from collections.abc import Iterable

from hlsl2mat.models import Define, SourceFunction

# Bump when the generated code changes for identical inputs
HASH_VERSION = "1"

FINGERPRINT_PREFIX = "HLSL Hash: "


def hash_string(text: str) -> str:
    """Hash a string into 32 upper-case hex digits.

    The 160-bit SHA-1 digest is folded to 128 bits by xoring its first and
    last 32-bit words.
    """
    digest = hashlib.sha1(text.encode("utf-8")).digest()
    words = struct.unpack("<5I", digest)
    folded = (words[0] ^ words[4], words[1], words[2], words[3])
    return "".join(f"{word:08X}" for word in folded)


def compute_base_hash(include_texts: Iterable[str], defines: Iterable[Define]) -> str:
    """Hash the dependencies shared by every function of a file.

    Args:
        include_texts: Content of every resolved include, in file order
        defines: Defines extracted from the file

    Returns:
        Concatenated hashes of the include contents and define names/values
    """
    base_hash = "".join(hash_string(text) for text in include_texts)
    for define in defines:
        base_hash += hash_string(define.name) + hash_string(define.value)
    return base_hash


def fingerprint(
    function: SourceFunction,
    base_hash: str,
    *,
    accurate_errors: bool = False,
    metadata: str = "",
) -> str:
    """Compute the fingerprint tag of a function.

    Args:
        function: Function found by the scanner
        base_hash: Result of compute_base_hash for the function's file
        accurate_errors: Whether #line directives are emitted, in which case
            moving the function changes its generated code
        metadata: Serialized generation options of the library

    Returns:
        Human readable tag, embedded verbatim in the generated artifact
    """
    start_line = str(function.start_line) if accurate_errors else ""
    text = (
        f"{HASH_VERSION} {start_line} {function.comment} {metadata} "
        f"{function.return_type} {function.name}("
        f"{','.join(function.arguments)}){function.body}{base_hash}"
    )
    return FINGERPRINT_PREFIX + hash_string(text)
