"""
Generated artifacts and their storage.

A generated artifact describes the node graph built for one function: input,
parameter and output nodes, one code node per boolean variant, and one binary
decision tree per output selecting between the variants. Artifacts are stored
as JSON documents, one per function, next to a manifest listing the functions
of the library.
"""

import json
import uuid
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import arrow
from loguru import logger

from hlsl2mat.models import Define

ARTIFACT_FORMAT_VERSION = 1


@dataclass
class IdentifierTable:
    """Stable identifiers of the inputs, outputs and parameters of a function.

    Identifiers are keyed by pin name, so that references into an artifact
    survive unrelated edits of the function.
    """

    inputs: dict[str, str] = field(default_factory=dict)
    outputs: dict[str, str] = field(default_factory=dict)
    parameters: dict[str, str] = field(default_factory=dict)

    @staticmethod
    def _lookup(table: dict[str, str], name: str) -> str:
        if name not in table:
            table[name] = str(uuid.uuid4())
        return table[name]

    def input_id(self, name: str) -> str:
        return self._lookup(self.inputs, name)

    def output_id(self, name: str) -> str:
        return self._lookup(self.outputs, name)

    def parameter_id(self, name: str) -> str:
        return self._lookup(self.parameters, name)

    def restricted_to(
        self, inputs: set[str], outputs: set[str], parameters: set[str]
    ) -> "IdentifierTable":
        """Copy of the table without the names that no longer exist."""
        return IdentifierTable(
            inputs={k: v for k, v in self.inputs.items() if k in inputs},
            outputs={k: v for k, v in self.outputs.items() if k in outputs},
            parameters={k: v for k, v in self.parameters.items() if k in parameters},
        )


@dataclass
class InputNode:
    """Function input node.

    Attributes:
        id: Stable identifier
        pin_name: Name of the pin in the source
        display_name: Name shown on the node, includes the default value
        kind: PinKind name
        description: Tooltip and default value description
        sort_priority: Position among the inputs
        preview_value: Default value of scalar and vector inputs
        preview_bool: Default value of bool inputs
    """

    id: str
    pin_name: str
    display_name: str
    kind: str
    description: str = ""
    sort_priority: int = 0
    preview_value: list[float] | None = None
    preview_bool: bool | None = None


@dataclass
class ParameterNode:
    """Material parameter node created for an exposed input."""

    id: str
    parameter_name: str
    kind: str
    group: str = ""
    default_value: list[float] | None = None
    sort_priority: int = 32


@dataclass
class OutputNode:
    """Function output node."""

    id: str
    name: str
    description: str = ""
    sort_priority: int = 0


@dataclass
class CodeBinding:
    """Input of a code node and the node it is connected to.

    Attributes:
        name: Name of the input inside the generated code
        source: Pin name, or TexCoord[N] for the dummy coordinate input
    """

    name: str
    source: str


@dataclass
class GeneratedVariant:
    """Code node specialized for one assignment of the boolean pins.

    Attributes:
        index: Position of the variant, bit i set means bool pin i is false
        bool_values: Compile time value of every bool pin
        code: Generated HLSL code
        bindings: Inputs of the code node
        additional_outputs: (output name, output type name) pairs
    """

    index: int
    bool_values: dict[str, bool]
    code: str
    bindings: list[CodeBinding] = field(default_factory=list)
    additional_outputs: list[tuple[str, str]] = field(default_factory=list)


@dataclass(frozen=True)
class Leaf:
    """Decision tree leaf: the output of one variant."""

    variant: int


@dataclass(frozen=True)
class Switch:
    """Decision tree node selecting a branch from a bool pin."""

    pin: str
    true_branch: "DecisionNode"
    false_branch: "DecisionNode"


DecisionNode = Leaf | Switch


def count_switches(node: DecisionNode) -> int:
    """Number of switch nodes in a decision tree."""
    match node:
        case Switch(_, true_branch, false_branch):
            return 1 + count_switches(true_branch) + count_switches(false_branch)
        case _:
            return 0


def count_leaves(node: DecisionNode) -> int:
    """Number of leaves in a decision tree."""
    match node:
        case Switch(_, true_branch, false_branch):
            return count_leaves(true_branch) + count_leaves(false_branch)
        case _:
            return 1


def select_variant(node: DecisionNode, bool_values: dict[str, bool]) -> int:
    """Follow a decision tree for given bool pin values and return the variant."""
    while isinstance(node, Switch):
        node = node.true_branch if bool_values[node.pin] else node.false_branch
    return node.variant


@dataclass
class GeneratedArtifact:
    """Everything generated for one function."""

    name: str
    fingerprint: str
    comment: str
    library: str = ""
    source_file: str = ""
    description: str = ""
    categories: list[str] = field(default_factory=list)
    inputs: list[InputNode] = field(default_factory=list)
    parameters: list[ParameterNode] = field(default_factory=list)
    outputs: list[OutputNode] = field(default_factory=list)
    variants: list[GeneratedVariant] = field(default_factory=list)
    output_trees: dict[str, DecisionNode] = field(default_factory=dict)
    include_file_paths: list[str] = field(default_factory=list)
    additional_defines: list[Define] = field(default_factory=list)
    tex_coordinate_index: int | None = None
    identifiers: IdentifierTable = field(default_factory=IdentifierTable)


def _tree_to_dict(node: DecisionNode) -> dict[str, Any]:
    match node:
        case Switch(pin, true_branch, false_branch):
            return {
                "switch": pin,
                "true": _tree_to_dict(true_branch),
                "false": _tree_to_dict(false_branch),
            }
        case Leaf(variant):
            return {"variant": variant}
    raise TypeError(f"Unknown decision node: {node!r}")


def _tree_from_dict(data: dict[str, Any]) -> DecisionNode:
    if "switch" in data:
        return Switch(
            pin=data["switch"],
            true_branch=_tree_from_dict(data["true"]),
            false_branch=_tree_from_dict(data["false"]),
        )
    return Leaf(variant=int(data["variant"]))


def artifact_to_dict(artifact: GeneratedArtifact) -> dict[str, Any]:
    """Convert an artifact to JSON compatible data."""
    data = asdict(artifact)
    data["output_trees"] = {
        name: _tree_to_dict(tree) for name, tree in artifact.output_trees.items()
    }
    for variant in data["variants"]:
        variant["additional_outputs"] = [
            list(output) for output in variant["additional_outputs"]
        ]
    return {"format_version": ARTIFACT_FORMAT_VERSION, **data}


def artifact_from_dict(data: dict[str, Any]) -> GeneratedArtifact:
    """Rebuild an artifact from the data written by artifact_to_dict."""
    return GeneratedArtifact(
        name=data["name"],
        fingerprint=data["fingerprint"],
        comment=data["comment"],
        library=data.get("library", ""),
        source_file=data.get("source_file", ""),
        description=data.get("description", ""),
        categories=list(data.get("categories", [])),
        inputs=[InputNode(**node) for node in data.get("inputs", [])],
        parameters=[ParameterNode(**node) for node in data.get("parameters", [])],
        outputs=[OutputNode(**node) for node in data.get("outputs", [])],
        variants=[
            GeneratedVariant(
                index=variant["index"],
                bool_values=dict(variant["bool_values"]),
                code=variant["code"],
                bindings=[CodeBinding(**binding) for binding in variant["bindings"]],
                additional_outputs=[
                    (name, type_name) for name, type_name in variant["additional_outputs"]
                ],
            )
            for variant in data.get("variants", [])
        ],
        output_trees={
            name: _tree_from_dict(tree)
            for name, tree in data.get("output_trees", {}).items()
        },
        include_file_paths=list(data.get("include_file_paths", [])),
        additional_defines=[Define(**d) for d in data.get("additional_defines", [])],
        tex_coordinate_index=data.get("tex_coordinate_index"),
        identifiers=IdentifierTable(**data.get("identifiers", {})),
    )


@dataclass
class LibraryManifest:
    """List of the functions generated from one library source.

    Attributes:
        library: Library name
        source_file: Library source, as written in the configuration
        functions: Generated function names, in generation order
        updated: ISO timestamp of the last save
    """

    library: str
    source_file: str = ""
    functions: list[str] = field(default_factory=list)
    updated: str = ""
    version: int = ARTIFACT_FORMAT_VERSION


class ArtifactStore(ABC):
    """Storage for generated artifacts, keyed by function name."""

    @abstractmethod
    def load(self, name: str) -> GeneratedArtifact | None:
        """Load the artifact of a function, None if it does not exist."""
        ...

    @abstractmethod
    def save(self, artifact: GeneratedArtifact) -> None:
        """Replace the artifact of a function."""
        ...

    @abstractmethod
    def load_manifest(self, library: str) -> LibraryManifest:
        """Load the manifest of a library, empty if it does not exist."""
        ...

    @abstractmethod
    def save_manifest(self, manifest: LibraryManifest) -> None:
        """Replace the manifest of a library."""
        ...


class JsonArtifactStore(ArtifactStore):
    """Stores every artifact as <name>.json in a directory.

    Manifests are stored as <library>.library.json in manifest_directory,
    which defaults to the artifact directory.
    """

    def __init__(self, directory: str | Path, manifest_directory: str | Path | None = None):
        self.directory = Path(directory)
        self.manifest_directory = Path(manifest_directory or directory)

    def artifact_path(self, name: str) -> Path:
        return self.directory / f"{name}.json"

    def manifest_path(self, library: str) -> Path:
        return self.manifest_directory / f"{library}.library.json"

    @staticmethod
    def _write(path: Path, data: dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        # Write next to the target first so that a failure leaves it untouched
        tmp_path = path.with_name(path.name + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
        tmp_path.replace(path)

    def load(self, name: str) -> GeneratedArtifact | None:
        path = self.artifact_path(name)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return artifact_from_dict(data)
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable artifact {path}: {e}")
            return None

    def save(self, artifact: GeneratedArtifact) -> None:
        self._write(self.artifact_path(artifact.name), artifact_to_dict(artifact))
        logger.debug(f"Saved artifact {self.artifact_path(artifact.name)}")

    def load_manifest(self, library: str) -> LibraryManifest:
        path = self.manifest_path(library)
        if not path.exists():
            return LibraryManifest(library=library)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return LibraryManifest(**data)
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable manifest {path}: {e}")
            return LibraryManifest(library=library)

    def save_manifest(self, manifest: LibraryManifest) -> None:
        manifest.updated = arrow.utcnow().isoformat()
        self._write(self.manifest_path(manifest.library), asdict(manifest))
        logger.debug(f"Saved manifest {self.manifest_path(manifest.library)}")
