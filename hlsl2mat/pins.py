"""
Pin resolution for function signatures.

Turns the raw argument strings found by the scanner into typed pins, reading
metadata, qualifiers, default values and @param tooltips. Arguments that the
generated code node provides implicitly (material parameters, samplers) are
dropped, and float4x4 arguments are split into four internal rows.
"""

import re
from dataclasses import dataclass, field

from loguru import logger

from hlsl2mat.defaults import parse_default_value
from hlsl2mat.errors import PinError
from hlsl2mat.models import (
    META_EXPOSE,
    CustomOutputType,
    Pin,
    PinKind,
    PinQualifier,
    SourceFunction,
)

_ARGUMENT_PATTERN = re.compile(
    r"\s*"
    r"(?:\[(.*)\])?"  # [Metadata]
    r"\s*"
    r"(?:(const\s+)|(out\s+))?"  # Either const or out
    r"(\w*)"  # Type
    r"\s*"
    r"(?:<\w+>)?"  # Ignored template, eg Texture2D<float>
    r"\s+"
    r"(\w*)"  # Name
    r"(?:\s*=\s*(.+))?"  # Optional default value
    r"\s*",
    re.DOTALL,
)

_METADATA_PATTERN = re.compile(r'(\w+)\s*(?:=\s*("[^"]*"|\w+))?\s*(?:,|$)')

_TOOLTIP_PATTERN = re.compile(r"@param[ \t]+(\S+)[ \t]*([^\n]*)", re.IGNORECASE)

# Parameters passed implicitly by the generated code node
_CONTEXT_TYPES = ("FMaterialPixelParameters", "FMaterialVertexParameters")

# Declared type -> (kind, output type, default value dimension)
# A dimension of 0 means the type cannot have a default value
_TYPE_TABLE: dict[str, tuple[PinKind, CustomOutputType | None, int]] = {
    "int": (PinKind.SCALAR, None, 1),
    "uint": (PinKind.SCALAR, None, 1),
    "float": (PinKind.SCALAR, CustomOutputType.FLOAT1, 1),
    "float2": (PinKind.VECTOR2, CustomOutputType.FLOAT2, 2),
    "float3": (PinKind.VECTOR3, CustomOutputType.FLOAT3, 3),
    "float4": (PinKind.VECTOR4, CustomOutputType.FLOAT4, 4),
    "Texture2D": (PinKind.TEXTURE_2D, None, 0),
    "TextureCube": (PinKind.TEXTURE_CUBE, None, 0),
    "Texture2DArray": (PinKind.TEXTURE_2D_ARRAY, None, 0),
    "Texture3D": (PinKind.TEXTURE_3D, None, 0),
    "TextureExternal": (PinKind.TEXTURE_EXTERNAL, None, 0),
    "MaterialAttributes": (PinKind.MATERIAL_ATTRIBUTES, None, 0),
}

# Kinds that can be exposed as material parameters
_EXPOSABLE_KINDS = frozenset(
    {
        PinKind.SCALAR,
        PinKind.VECTOR4,
        PinKind.TEXTURE_2D,
        PinKind.TEXTURE_CUBE,
        PinKind.TEXTURE_2D_ARRAY,
        PinKind.TEXTURE_3D,
        PinKind.TEXTURE_EXTERNAL,
    }
)


@dataclass
class ArgumentResolution:
    """Result of resolving one raw argument.

    Attributes:
        pins: Pins created for the argument, empty if it was dropped
        declaration: Extra HLSL declaration needed by the generated code
    """

    pins: list[Pin] = field(default_factory=list)
    declaration: str = ""


@dataclass
class Signature:
    """Resolved signature of a function.

    Attributes:
        inputs: Input pins, internal sub-pins included
        outputs: Output pins
        declarations: Extra HLSL declarations, one per line
    """

    inputs: list[Pin] = field(default_factory=list)
    outputs: list[Pin] = field(default_factory=list)
    declarations: str = ""

    @property
    def bool_inputs(self) -> list[Pin]:
        return [pin for pin in self.inputs if pin.kind is PinKind.STATIC_BOOL]


def parse_metadata(text: str) -> dict[str, str]:
    """Parse the content of a [Key=Value, Key2="Some, Value", Key3] prefix.

    Args:
        text: Text between the brackets

    Returns:
        Ordered mapping of keys to values; flags map to an empty string
    """
    metadata: dict[str, str] = {}
    for match in _METADATA_PATTERN.finditer(text):
        value = match.group(2) or ""
        if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
            value = value[1:-1]
        metadata[match.group(1)] = value
    return metadata


def extract_tooltip(name: str, comment: str) -> str:
    """Find the @param line documenting a pin.

    Args:
        name: Pin name, matched case-sensitively
        comment: Doc comment of the owning function

    Returns:
        Text following the pin name on the @param line, or an empty string
    """
    for match in _TOOLTIP_PATTERN.finditer(comment):
        if match.group(1) == name:
            return match.group(2).strip()
    return ""


def _resolve_type(pin: Pin) -> None:
    """Fill the kind, output type and parsed default value of a pin.

    Raises:
        PinError: If the type is unknown, the default value is invalid or the
            type cannot be an output
    """
    default_error = (
        f"{pin.name}: invalid default value for type "
        f"{pin.declared_type}: {pin.default_text}"
    )

    if pin.declared_type == "bool":
        pin.kind = PinKind.STATIC_BOOL
        if pin.default_text:
            if pin.default_text not in ("true", "false"):
                raise PinError(default_error)
            pin.default_bool = pin.default_text == "true"
    elif pin.declared_type in _TYPE_TABLE:
        kind, output_type, dimension = _TYPE_TABLE[pin.declared_type]
        pin.kind = kind
        pin.output_type = output_type
        if pin.default_text:
            if dimension == 0:
                raise PinError(default_error)
            pin.default_vector = parse_default_value(pin.default_text, dimension)
            if pin.default_vector is None:
                raise PinError(default_error)
    else:
        raise PinError(f"Invalid argument type: {pin.declared_type}")

    if pin.is_output and pin.output_type is None:
        raise PinError(f"Invalid argument type for an output: {pin.declared_type}")


def resolve_argument(raw_argument: str, owner_comment: str) -> ArgumentResolution:
    """Resolve one raw argument string into pins.

    Args:
        raw_argument: Argument as split by the scanner
        owner_comment: Doc comment of the function, used for tooltips

    Returns:
        The pins created for the argument and any extra declaration

    Raises:
        PinError: If the argument is invalid
    """
    match = _ARGUMENT_PATTERN.fullmatch(raw_argument)
    if not match or not match.group(4) or not match.group(5):
        raise PinError(f"Invalid arguments syntax: {raw_argument.strip()}")

    metadata_text, const, out, type_name, name, default_text = match.groups()
    metadata = parse_metadata(metadata_text or "")
    default_text = (default_text or "").strip()

    if type_name in _CONTEXT_TYPES and name == "Parameters":
        # The generated code node passes Parameters itself
        return ArgumentResolution()

    if type_name == "SamplerState":
        if not name.endswith("Sampler"):
            raise PinError(
                f"Invalid sampler parameter: {name}. Sampler parameters should "
                "be named [TextureParameterName]Sampler"
            )
        # Samplers come with their texture
        return ArgumentResolution()

    tooltip = extract_tooltip(name, owner_comment)

    if type_name == "float4x4":
        if out:
            raise PinError(f"Cannot have a float4x4 as output: {name}")
        if default_text:
            raise PinError(f"Cannot have a default value for a float4x4 pin: {name}")
        if META_EXPOSE not in metadata:
            raise PinError(f"float4x4 pins must be exposed: {name}")

        rows = [
            Pin(
                name=f"{name}{index}",
                declared_type="float4",
                kind=PinKind.VECTOR4,
                qualifier=PinQualifier.CONST,
                is_internal=True,
                metadata=dict(metadata),
                tooltip=tooltip,
                output_type=CustomOutputType.FLOAT4,
            )
            for index in range(4)
        ]
        bindings = ", ".join(row.binding_name for row in rows)
        declaration = (
            f"{'const ' if const else ''}float4x4 {name} = float4x4({bindings});\n"
        )
        return ArgumentResolution(pins=rows, declaration=declaration)

    if out:
        qualifier = PinQualifier.OUTPUT
    elif const:
        qualifier = PinQualifier.CONST
    else:
        qualifier = PinQualifier.NONE

    pin = Pin(
        name=name,
        declared_type=type_name,
        kind=PinKind.SCALAR,
        qualifier=qualifier,
        metadata=metadata,
        tooltip=tooltip,
        default_text=default_text,
    )
    _resolve_type(pin)

    if pin.is_exposed and pin.kind not in _EXPOSABLE_KINDS:
        raise PinError(f"Cannot expose type {pin.declared_type} as a parameter")

    return ArgumentResolution(pins=[pin])


def resolve_signature(function: SourceFunction) -> Signature:
    """Resolve the return type and every argument of a function.

    Args:
        function: Function found by the scanner

    Returns:
        Inputs, outputs and extra declarations of the function

    Raises:
        PinError: If the return type is not void or an argument is invalid
    """
    if function.return_type != "void":
        raise PinError("Return type needs to be void")

    signature = Signature()
    for raw_argument in function.arguments:
        resolution = resolve_argument(raw_argument, function.comment)
        for pin in resolution.pins:
            (signature.outputs if pin.is_output else signature.inputs).append(pin)
        signature.declarations += resolution.declaration

    logger.debug(
        f"Resolved {function.name}: "
        f"inputs: {[(p.name, p.kind.name) for p in signature.inputs]}, "
        f"outputs: {[(p.name, p.kind.name) for p in signature.outputs]}"
    )
    return signature
