"""
Variant generation for resolved functions.

Every combination of the bool inputs of a function is compiled as its own
code variant, with the bools declared as compile time constants. The variants
are then combined with binary switch nodes, one decision tree per output, so
that the generated graph selects the right variant from the bool inputs.
"""

import re
from dataclasses import dataclass, field

from loguru import logger

from hlsl2mat.artifacts import (
    CodeBinding,
    DecisionNode,
    GeneratedArtifact,
    GeneratedVariant,
    IdentifierTable,
    InputNode,
    Leaf,
    OutputNode,
    ParameterNode,
    Switch,
)
from hlsl2mat.models import META_CATEGORY, Define, Pin, PinKind, SourceFunction
from hlsl2mat.pins import Signature

# Markers around the source path in #line directives, used to find it back in
# compiler messages
PATH_PREFIX = "[hlsl2mat]"
PATH_SUFFIX = "[/hlsl2mat]"

# Line reported for errors located after the function body
TRAILING_LINE = 10000

DUMMY_COORDINATE_INPUT = "DUMMY_COORDINATE_INPUT"

_TEX_COORD_PATTERN = re.compile(r"Parameters\.TexCoords\[([0-9]+)\]")
_RETURN_PATTERN = re.compile(r"\breturn\b")


@dataclass
class GenerationContext:
    """Library level options shared by every generated function.

    Attributes:
        source_file: Library source, as shown in #line directives and comments
        library_name: Name of the library
        accurate_errors: Emit #line directives pointing back at the source
        categories: Categories of the generated functions
        include_file_paths: Virtual paths of the includes of the source
        additional_defines: Defines passed to every generated code node
    """

    source_file: str
    library_name: str = ""
    accurate_errors: bool = True
    categories: list[str] = field(default_factory=list)
    include_file_paths: list[str] = field(default_factory=list)
    additional_defines: list[Define] = field(default_factory=list)


def bool_assignments(bool_pins: list[Pin], width: int) -> dict[str, bool]:
    """Values of the bool pins in a variant.

    Bit i of width set to 0 means bool pin i is true, which makes the true
    branch of every switch the even child.
    """
    return {pin.name: not (width >> index) & 1 for index, pin in enumerate(bool_pins)}


def build_decision_tree(bool_pins: list[Pin]) -> DecisionNode:
    """Combine the 2^k variants of a function into a binary decision tree.

    Layer L pairs children 2w and 2w+1 under a switch on bool pin L, so the
    first bool pin is tested closest to the leaves.

    Args:
        bool_pins: Bool inputs of the function, in declaration order

    Returns:
        Root of the tree; a single leaf when there are no bool pins
    """
    nodes: list[DecisionNode] = [Leaf(width) for width in range(2 ** len(bool_pins))]
    for pin in bool_pins:
        nodes = [
            Switch(pin=pin.name, true_branch=nodes[2 * w], false_branch=nodes[2 * w + 1])
            for w in range(len(nodes) // 2)
        ]
    return nodes[0]


def _input_declaration(pin: Pin) -> str:
    const = "const " if pin.is_const else ""
    binding = pin.binding_name

    if pin.kind.is_texture:
        return (
            f"{const}SamplerState {pin.name}Sampler = {binding}Sampler;\n"
            f"{const}{pin.declared_type} {pin.name} = ({binding});\n"
        )
    if pin.kind is PinKind.MATERIAL_ATTRIBUTES:
        return f"{const}{pin.declared_type} {pin.name} = ({binding});\n"
    return f"{const}{pin.declared_type} {pin.name} = {pin.declared_type}({binding});\n"


def variant_declarations(signature: Signature, bool_values: dict[str, bool]) -> str:
    """HLSL declarations placed before the body of one variant.

    Args:
        signature: Resolved signature of the function
        bool_values: Value of every bool pin in the variant

    Returns:
        float4x4 reassembly, bool constants, then one local per input
    """
    declarations = signature.declarations
    for pin in signature.inputs:
        if pin.is_internal:
            continue
        if pin.kind is PinKind.STATIC_BOOL:
            value = "true" if bool_values[pin.name] else "false"
            declarations += f"const bool {pin.name} = {value};\n"
        else:
            declarations += _input_declaration(pin)
    return declarations


def generate_function_code(
    function: SourceFunction,
    declarations: str,
    fingerprint: str,
    context: GenerationContext,
) -> str:
    """Build the code of one variant.

    Args:
        function: Function found by the scanner
        declarations: Result of variant_declarations
        fingerprint: Tag appended as a trailing comment
        context: Library options

    Returns:
        HLSL code of a custom expression node
    """
    # The node always returns a float, outputs go through out parameters
    code = _RETURN_PATTERN.sub("return 0.f", function.body)

    if context.accurate_errors:
        hint = (
            "Error occurred outside of the function body, line numbers are not "
            f"accurate. Disable accurate_errors on library {context.library_name} "
            "to find it"
        )
        code = (
            f'#line {function.start_line + 1} "{PATH_PREFIX}{context.source_file}{PATH_SUFFIX}"\n'
            f"{code}\n"
            f'#line {TRAILING_LINE} "{hint}"'
        )

    return (
        f"// START {function.name}\n\n"
        f"{declarations}\n"
        f"{code}\n\n"
        f"// END {function.name}\n\n"
        "return 0.f;\n"
        f"//{fingerprint}\n"
    )


def max_tex_coordinate(body: str) -> int | None:
    """Highest N in Parameters.TexCoords[N] references, None without any."""
    indices = [int(match.group(1)) for match in _TEX_COORD_PATTERN.finditer(body)]
    return max(indices) if indices else None


def build_description(comment: str) -> str:
    """Turn a doc comment into a plain description."""
    lines = []
    for line in comment.splitlines():
        line = line.strip()
        while line.startswith("/"):
            line = line[1:]
        lines.append(line.strip())

    description = "\n".join(lines).replace("@param ", "")
    while "  " in description:
        description = description.replace("  ", " ")
    return description.strip()


def _input_node(pin: Pin, sort_priority: int, identifiers: IdentifierTable) -> InputNode:
    node = InputNode(
        id=identifiers.input_id(pin.name),
        pin_name=pin.name,
        display_name=pin.name,
        kind=pin.kind.name,
        description=pin.tooltip,
        sort_priority=sort_priority,
    )

    if pin.kind is PinKind.STATIC_BOOL:
        node.preview_bool = pin.default_bool
    if pin.has_default:
        node.display_name = f"{pin.name} ( = {pin.default_text})"
        default_line = f"Default Value = {pin.default_text}"
        node.description = (
            f"{node.description}\n{default_line}" if node.description else default_line
        )
        if pin.default_vector is not None:
            node.preview_value = pin.default_vector.tolist()
    return node


def _parameter_node(pin: Pin, identifiers: IdentifierTable) -> ParameterNode:
    return ParameterNode(
        id=identifiers.parameter_id(pin.name),
        parameter_name=pin.name,
        kind=pin.kind.name,
        group=pin.metadata.get(META_CATEGORY, ""),
        default_value=(
            pin.default_vector.tolist() if pin.default_vector is not None else None
        ),
    )


def generate(
    function: SourceFunction,
    signature: Signature,
    fingerprint: str,
    context: GenerationContext,
    identifiers: IdentifierTable | None = None,
) -> GeneratedArtifact:
    """Generate the artifact of a function.

    Args:
        function: Function found by the scanner
        signature: Resolved signature of the function
        fingerprint: Fingerprint of the function
        context: Library options
        identifiers: Identifiers of the previous artifact, kept for the pins
            that still exist

    Returns:
        The generated artifact
    """
    if identifiers is None:
        identifiers = IdentifierTable()
    else:
        identifiers = identifiers.restricted_to(
            inputs={p.name for p in signature.inputs if not p.is_exposed},
            outputs={p.name for p in signature.outputs},
            parameters={p.name for p in signature.inputs if p.is_exposed},
        )

    artifact = GeneratedArtifact(
        name=function.name,
        fingerprint=fingerprint,
        comment=(
            "DO NOT MODIFY THIS\n"
            f"Autogenerated from {context.source_file}\n"
            f"Library {context.library_name}\n"
            f"{fingerprint}"
        ),
        library=context.library_name,
        source_file=context.source_file,
        description=build_description(function.comment),
        categories=list(context.categories),
        include_file_paths=list(context.include_file_paths),
        additional_defines=list(context.additional_defines),
        identifiers=identifiers,
    )

    for pin in signature.inputs:
        if pin.is_exposed:
            artifact.parameters.append(_parameter_node(pin, identifiers))
        else:
            artifact.inputs.append(_input_node(pin, len(artifact.inputs), identifiers))

    for index, pin in enumerate(signature.outputs):
        artifact.outputs.append(
            OutputNode(
                id=identifiers.output_id(pin.name),
                name=pin.name,
                description=pin.tooltip,
                sort_priority=index,
            )
        )

    bindings = [
        CodeBinding(name=pin.binding_name, source=pin.name)
        for pin in signature.inputs
        if pin.kind is not PinKind.STATIC_BOOL
    ]
    artifact.tex_coordinate_index = max_tex_coordinate(function.body)
    if artifact.tex_coordinate_index is not None:
        bindings.append(
            CodeBinding(
                name=DUMMY_COORDINATE_INPUT,
                source=f"TexCoord[{artifact.tex_coordinate_index}]",
            )
        )
    additional_outputs = [
        (pin.name, pin.output_type.name) for pin in signature.outputs if pin.output_type
    ]

    bool_pins = signature.bool_inputs
    for width in range(2 ** len(bool_pins)):
        bool_values = bool_assignments(bool_pins, width)
        declarations = variant_declarations(signature, bool_values)
        artifact.variants.append(
            GeneratedVariant(
                index=width,
                bool_values=bool_values,
                code=generate_function_code(function, declarations, fingerprint, context),
                bindings=list(bindings),
                additional_outputs=list(additional_outputs),
            )
        )

    for pin in signature.outputs:
        artifact.output_trees[pin.name] = build_decision_tree(bool_pins)

    logger.debug(
        f"Generated {function.name}: {len(artifact.variants)} variants, "
        f"{len(artifact.outputs)} outputs"
    )
    return artifact
