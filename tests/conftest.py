"""Fixtures and configuration for pytest."""

from pathlib import Path

import pytest

from hlsl2mat.artifacts import JsonArtifactStore
from hlsl2mat.diagnostics import DiagnosticSink
from hlsl2mat.settings import LibraryConfig, ProjectConfig

LIBRARY_SOURCE = """\
#include "Common.ush"

// Scales a color
// @param Color The color to scale
void Scale(float3 Color, float Amount = 2, out float3 Result)
{
    Result = Color * Amount;
}

// @param UseA Whether A is used
void Pick(bool UseA, bool Negate = false, float A, out float R, out float G)
{
    R = UseA ? A : 0;
    G = Negate ? -R : R;
}
"""


@pytest.fixture
def project(tmp_path: Path) -> ProjectConfig:
    """Project with one library source and one include under /Project."""
    shaders = tmp_path / "Shaders"
    shaders.mkdir()
    (shaders / "Noise.hlsl").write_text(LIBRARY_SOURCE)
    (shaders / "Common.ush").write_text("#pragma once\nfloat Half(float x) { return x / 2; }\n")

    return ProjectConfig(
        root=tmp_path,
        output_dir="generated",
        virtual_roots={"/Project": "Shaders"},
        libraries=[LibraryConfig(name="Noise", file="Shaders/Noise.hlsl")],
    )


@pytest.fixture
def library(project: ProjectConfig) -> LibraryConfig:
    return project.libraries[0]


@pytest.fixture
def source_path(project: ProjectConfig, library: LibraryConfig) -> Path:
    return project.source_path(library)


@pytest.fixture
def store(project: ProjectConfig, library: LibraryConfig) -> JsonArtifactStore:
    return JsonArtifactStore(
        project.output_directory(library),
        manifest_directory=project.manifest_directory(),
    )


@pytest.fixture
def diagnostics() -> DiagnosticSink:
    return DiagnosticSink()
