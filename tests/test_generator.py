"""Tests for variant generation."""

from itertools import product

import pytest

from hlsl2mat.artifacts import (
    IdentifierTable,
    Leaf,
    Switch,
    count_leaves,
    count_switches,
    select_variant,
)
from hlsl2mat.generator import (
    DUMMY_COORDINATE_INPUT,
    GenerationContext,
    bool_assignments,
    build_decision_tree,
    build_description,
    generate,
    generate_function_code,
    max_tex_coordinate,
)
from hlsl2mat.models import Define, Pin, PinKind
from hlsl2mat.parser import parse_functions
from hlsl2mat.pins import resolve_signature

TAG = "HLSL Hash: 0123456789ABCDEF0123456789ABCDEF"


def _bools(count: int) -> list[Pin]:
    return [Pin(name=f"b{i}", declared_type="bool", kind=PinKind.STATIC_BOOL) for i in range(count)]


def _generate(text: str, context: GenerationContext | None = None, identifiers=None):
    (function,) = parse_functions(text)
    context = context or GenerationContext(
        source_file="Shaders/lib.hlsl", library_name="Noise", accurate_errors=False
    )
    return generate(function, resolve_signature(function), TAG, context, identifiers)


class TestDecisionTree:
    """Tests for the boolean decision tree."""

    def test_no_bools(self):
        """Test that zero bool pins give one leaf and no switch."""
        tree = build_decision_tree([])
        assert tree == Leaf(0)
        assert count_leaves(tree) == 1
        assert count_switches(tree) == 0

    @pytest.mark.parametrize("k", [1, 2, 3, 4])
    def test_counts(self, k):
        """Test that k bool pins give 2^k leaves and 2^k - 1 switches."""
        tree = build_decision_tree(_bools(k))
        assert count_leaves(tree) == 2**k
        assert count_switches(tree) == 2**k - 1

    def test_first_pin_closest_to_leaves(self):
        """Test the layer order of the switches."""
        tree = build_decision_tree(_bools(2))
        assert tree == Switch(
            "b1",
            Switch("b0", Leaf(0), Leaf(1)),
            Switch("b0", Leaf(2), Leaf(3)),
        )

    def test_bit_zero_is_true(self):
        """Test the bool values of the variants."""
        pins = _bools(2)
        assert bool_assignments(pins, 0) == {"b0": True, "b1": True}
        assert bool_assignments(pins, 1) == {"b0": False, "b1": True}
        assert bool_assignments(pins, 2) == {"b0": True, "b1": False}
        assert bool_assignments(pins, 3) == {"b0": False, "b1": False}

    @pytest.mark.parametrize("k", [1, 2, 3])
    def test_switches_select_matching_variant(self, k):
        """Test that following the tree for given values reaches the variant
        whose constants have these values."""
        pins = _bools(k)
        tree = build_decision_tree(pins)
        for values in product([True, False], repeat=k):
            bool_values = {pin.name: value for pin, value in zip(pins, values)}
            width = select_variant(tree, bool_values)
            assert bool_assignments(pins, width) == bool_values


class TestGenerateCode:
    """Tests for the generated code text."""

    def test_layout(self):
        """Test the exact code of a function without bools."""
        artifact = _generate("void Foo(float a, out float b)\n{\n    b = a;\n}\n")
        (variant,) = artifact.variants
        assert variant.code == (
            "// START Foo\n\n"
            "float a = float(INTERNAL_IN_a);\n\n"
            "\n    b = a;\n\n\n"
            "// END Foo\n\n"
            "return 0.f;\n"
            f"//{TAG}\n"
        )

    def test_accurate_errors(self):
        """Test the #line directives around the body."""
        context = GenerationContext(
            source_file="Shaders/lib.hlsl", library_name="Noise", accurate_errors=True
        )
        artifact = _generate("\nvoid Foo(out float b)\n{\n    b = 1;\n}\n", context)
        code = artifact.variants[0].code
        assert '#line 3 "[hlsl2mat]Shaders/lib.hlsl[/hlsl2mat]"\n\n    b = 1;\n' in code
        assert "\n#line 10000 " in code
        assert "Noise" in code.split("#line 10000")[1]

    def test_return_rewritten(self):
        """Test that returns become return 0.f."""
        (function,) = parse_functions("void Foo() { if (a) return; returnValue = 1; }")
        context = GenerationContext(source_file="lib.hlsl", accurate_errors=False)
        code = generate_function_code(function, "", TAG, context)
        assert "if (a) return 0.f;" in code
        assert "returnValue = 1;" in code

    def test_bool_constants_per_variant(self):
        """Test that each variant only declares its own bool values."""
        artifact = _generate("void Foo(bool A, bool B, out float R) { R = A; }")
        assert len(artifact.variants) == 4
        for variant in artifact.variants:
            assert variant.code.count("const bool A = ") == 1
            assert variant.code.count("const bool B = ") == 1
            for name, value in variant.bool_values.items():
                assert f"const bool {name} = {'true' if value else 'false'};" in variant.code

    def test_texture_declarations(self):
        """Test that textures are declared with their sampler."""
        artifact = _generate(
            "void Foo(Texture2D Tex, SamplerState TexSampler, const float2 UV, out float4 C)"
            " { C = Tex.Sample(TexSampler, UV); }"
        )
        code = artifact.variants[0].code
        assert "SamplerState TexSampler = INTERNAL_IN_TexSampler;\n" in code
        assert "Texture2D Tex = (INTERNAL_IN_Tex);\n" in code
        assert "const float2 UV = float2(INTERNAL_IN_UV);\n" in code

    def test_float4x4_declaration(self):
        """Test that the rows are reassembled before the body."""
        artifact = _generate("void Foo([Expose] float4x4 M, out float3 R) { R = M[0].xyz; }")
        code = artifact.variants[0].code
        assert "float4x4 M = float4x4(INTERNAL_IN_M0, INTERNAL_IN_M1, INTERNAL_IN_M2, INTERNAL_IN_M3);" in code

    def test_fingerprint_in_every_variant(self):
        artifact = _generate("void Foo(bool A, out float R) { R = A; }")
        assert all(variant.code.endswith(f"//{TAG}\n") for variant in artifact.variants)


class TestGenerateArtifact:
    """Tests for the generated nodes."""

    def test_header_comment(self):
        artifact = _generate("void Foo(out float R) { R = 1; }")
        assert artifact.comment == (
            "DO NOT MODIFY THIS\n"
            "Autogenerated from Shaders/lib.hlsl\n"
            f"Library Noise\n{TAG}"
        )
        assert artifact.fingerprint == TAG

    def test_output_trees(self):
        """Test that every output gets its own decision tree."""
        artifact = _generate("void Foo(bool A, bool B, out float R, out float3 G) { }")
        assert set(artifact.output_trees) == {"R", "G"}
        for tree in artifact.output_trees.values():
            assert count_leaves(tree) == 4
            assert count_switches(tree) == 3
        assert artifact.variants[0].additional_outputs == [("R", "FLOAT1"), ("G", "FLOAT3")]

    def test_inputs(self):
        """Test input node names, descriptions and previews."""
        artifact = _generate(
            "// @param a The scale\n"
            "void Foo(float a = 0.5, float3 b, bool c = true, out float R) { }"
        )
        a, b, c = artifact.inputs
        assert a.display_name == "a ( = 0.5)"
        assert a.description == "The scale\nDefault Value = 0.5"
        assert a.preview_value == [0.5, 0.5, 0.5, 0.5]
        assert b.display_name == "b"
        assert b.preview_value is None
        assert c.kind == "STATIC_BOOL"
        assert c.preview_bool is True
        assert [node.sort_priority for node in artifact.inputs] == [0, 1, 2]

    def test_bindings(self):
        """Test that bools are not bound to the code node."""
        artifact = _generate("void Foo(bool A, float x, Texture2D T, out float R) { }")
        bindings = artifact.variants[0].bindings
        assert [(b.name, b.source) for b in bindings] == [
            ("INTERNAL_IN_x", "x"),
            ("INTERNAL_IN_T", "T"),
        ]

    def test_exposed_inputs_become_parameters(self):
        """Test parameter nodes and their group."""
        artifact = _generate(
            'void Foo([Expose, Category="Surface"] float Roughness = 0.25, float x, out float R) { }'
        )
        assert [node.pin_name for node in artifact.inputs] == ["x"]
        (parameter,) = artifact.parameters
        assert parameter.parameter_name == "Roughness"
        assert parameter.group == "Surface"
        assert parameter.default_value == [0.25, 0.25, 0.25, 0.25]

    def test_float4x4_rows_are_parameters(self):
        artifact = _generate("void Foo([Expose] float4x4 M, out float R) { }")
        assert [p.parameter_name for p in artifact.parameters] == ["M0", "M1", "M2", "M3"]
        assert artifact.inputs == []

    def test_tex_coordinates(self):
        """Test the dummy coordinate input."""
        artifact = _generate(
            "void Foo(FMaterialPixelParameters Parameters, out float2 R)"
            " { R = Parameters.TexCoords[0].xy + Parameters.TexCoords[3].xy; }"
        )
        assert artifact.tex_coordinate_index == 3
        binding = artifact.variants[0].bindings[-1]
        assert binding.name == DUMMY_COORDINATE_INPUT
        assert binding.source == "TexCoord[3]"

    def test_no_tex_coordinates(self):
        assert max_tex_coordinate("x = 1;") is None
        artifact = _generate("void Foo(out float R) { R = 1; }")
        assert artifact.tex_coordinate_index is None
        assert artifact.variants[0].bindings == []

    def test_context_is_copied(self):
        context = GenerationContext(
            source_file="lib.hlsl",
            library_name="Noise",
            categories=["Math"],
            include_file_paths=["/Project/Common.ush"],
            additional_defines=[Define("FOO", "1")],
        )
        artifact = _generate("void Foo(out float R) { }", context)
        assert artifact.categories == ["Math"]
        assert artifact.include_file_paths == ["/Project/Common.ush"]
        assert artifact.additional_defines == [Define("FOO", "1")]

    def test_identifiers_kept(self):
        """Test that identifiers survive a regeneration and removed pins are forgotten."""
        first = _generate("void Foo(float a, float b, out float R) { }")
        second = _generate(
            "void Foo(float a, float c, out float R) { R = 1; }",
            identifiers=first.identifiers,
        )
        assert second.inputs[0].id == first.inputs[0].id
        assert second.inputs[1].id != first.inputs[1].id
        assert second.outputs[0].id == first.outputs[0].id
        assert "b" not in second.identifiers.inputs

    def test_fresh_identifiers(self):
        artifact = _generate("void Foo(float a, out float R) { }", identifiers=IdentifierTable())
        assert artifact.identifiers.inputs == {"a": artifact.inputs[0].id}


def test_build_description():
    """Test that comment markers and @param tags are removed."""
    comment = "// Scales a color\n//   @param Color  The color to scale\n/// Done\n"
    assert build_description(comment) == "Scales a color\nColor The color to scale\nDone"
