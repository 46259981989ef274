"""
Data models shared by the scanner, pin resolver and generator.

This module contains the dataclass and enum definitions used throughout the
package to represent parsed functions, resolved pins and preprocessor
dependencies.
"""

from dataclasses import dataclass, field
from enum import Enum, auto

import numpy as np

# Metadata keys recognized in the [Key=Value] argument prefix
META_EXPOSE = "Expose"
META_CATEGORY = "Category"


class PinKind(Enum):
    """Semantic type of a pin in the generated function graph."""

    SCALAR = auto()
    VECTOR2 = auto()
    VECTOR3 = auto()
    VECTOR4 = auto()
    STATIC_BOOL = auto()
    TEXTURE_2D = auto()
    TEXTURE_CUBE = auto()
    TEXTURE_2D_ARRAY = auto()
    TEXTURE_3D = auto()
    TEXTURE_EXTERNAL = auto()
    MATERIAL_ATTRIBUTES = auto()

    @property
    def is_texture(self) -> bool:
        return self in _TEXTURE_KINDS


_TEXTURE_KINDS = frozenset(
    {
        PinKind.TEXTURE_2D,
        PinKind.TEXTURE_CUBE,
        PinKind.TEXTURE_2D_ARRAY,
        PinKind.TEXTURE_3D,
        PinKind.TEXTURE_EXTERNAL,
    }
)


class CustomOutputType(Enum):
    """Value type of an additional output of a generated code node."""

    FLOAT1 = 1
    FLOAT2 = 2
    FLOAT3 = 3
    FLOAT4 = 4


class PinQualifier(Enum):
    """Qualifier written in front of an argument type."""

    NONE = auto()
    CONST = auto()
    OUTPUT = auto()


@dataclass(frozen=True)
class SourceFunction:
    """One function definition found in a library source.

    Attributes:
        start_line: 0-based line index of the opening brace
        comment: Raw comment lines preceding the function, markers included
        return_type: Return type token
        name: Function name
        arguments: Raw argument strings, in declaration order
        body: Raw text between the outermost braces
    """

    start_line: int
    comment: str
    return_type: str
    name: str
    arguments: tuple[str, ...]
    body: str


@dataclass
class Pin:
    """A resolved input or output of a generated function.

    Attributes:
        name: Pin name, as written in the source
        declared_type: Raw type token (float3, Texture2D, bool...)
        qualifier: const, out or nothing
        is_internal: True for synthetic sub-pins such as float4x4 rows
        metadata: Ordered key/value pairs from the [Key=Value] prefix
        tooltip: Text of the matching @param comment line
        default_text: Raw default value expression, may be empty
        kind: Semantic type used to build the generated graph
        default_vector: Parsed default value, None without default
        default_bool: Parsed default of a bool pin
        output_type: Output value type, None if the pin cannot be an output
    """

    name: str
    declared_type: str
    kind: PinKind
    qualifier: PinQualifier = PinQualifier.NONE
    is_internal: bool = False
    metadata: dict[str, str] = field(default_factory=dict)
    tooltip: str = ""
    default_text: str = ""
    default_vector: np.ndarray | None = None
    default_bool: bool = False
    output_type: CustomOutputType | None = None

    @property
    def is_const(self) -> bool:
        return self.qualifier is PinQualifier.CONST

    @property
    def is_output(self) -> bool:
        return self.qualifier is PinQualifier.OUTPUT

    @property
    def is_exposed(self) -> bool:
        return META_EXPOSE in self.metadata

    @property
    def has_default(self) -> bool:
        return bool(self.default_text)

    @property
    def binding_name(self) -> str:
        """Name of the opaque input binding of the generated code node."""
        return f"INTERNAL_IN_{self.name}"


@dataclass(frozen=True)
class Include:
    """An #include directive.

    Attributes:
        virtual_path: Include path, made absolute in the virtual file system
        disk_path: Resolved file on disk, None if the path could not be mapped
    """

    virtual_path: str
    disk_path: str | None = None


@dataclass(frozen=True)
class Define:
    """A #define NAME VALUE directive."""

    name: str
    value: str
