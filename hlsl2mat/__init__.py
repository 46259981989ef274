from hlsl2mat.generator import generate
from hlsl2mat.hashing import fingerprint
from hlsl2mat.library import reconcile, update_library
from hlsl2mat.parser import parse_functions
from hlsl2mat.pins import resolve_signature
from hlsl2mat.settings import load_config

__version__ = "0.1.0"


__all__ = [
    "fingerprint",
    "generate",
    "load_config",
    "parse_functions",
    "reconcile",
    "resolve_signature",
    "update_library",
]
