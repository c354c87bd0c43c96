"""Tests for level_cleanup.decals."""
from __future__ import annotations

from level_cleanup.decals import DecalScanner


def _instances(level, *names):
    return level.json("main.decals.json", {"header": {"name": "DecalData File"}, "instances": {n: [] for n in names}})


class TestDecalScanner:
    def test_json_managed_data(self, ctx, level):
        instances = _instances(level, "tireMarks", "crack")
        managed = level.json(
            "art/decals/managedDecalData.json",
            {
                "tireMarks": {"name": "tireMarks", "class": "DecalData", "material": "mat_tire"},
                "crack": {"class": "DecalData", "Material": "mat_crack"},
                "unused": {"name": "unused", "material": "mat_unused"},
            },
        )
        result = DecalScanner(ctx, [instances], [managed]).scan_safely()
        assert sorted(a.material_name for a in result.assets) == ["mat_crack", "mat_tire"]
        assert all(a.class_name == "Decal" for a in result.assets)

    def test_match_on_name_field(self, ctx, level):
        instances = _instances(level, "Crack_01")
        managed = level.json(
            "art/decals/managedDecalData.json",
            {"DecalData_5": {"name": "crack_01", "material": "mat_crack"}},
        )
        result = DecalScanner(ctx, [instances], [managed]).scan_safely()
        assert [a.material_name for a in result.assets] == ["mat_crack"]

    def test_legacy_block_matching(self, ctx, level):
        instances = _instances(level, "crack")
        managed = level.write(
            "art/decals/managedDecalData.cs",
            "singleton DecalData(tireMarks)\n"
            "{\n"
            '   Material = "mat_tire";\n'
            "};\n"
            "singleton DecalData(Crack)\n"
            "{\n"
            '   size = "2";\n'
            '   Material = "mat_crack";\n'
            "};\n",
        )
        result = DecalScanner(ctx, [instances], [managed]).scan_safely()
        assert [a.material_name for a in result.assets] == ["mat_crack"]

    def test_legacy_block_without_material_does_not_leak(self, ctx, level):
        instances = _instances(level, "crack")
        managed = level.write(
            "art/decals/managedDecalData.cs",
            "singleton DecalData(crack)\n"
            "{\n"
            '   size = "2";\n'
            "};\n"
            "singleton DecalData(other)\n"
            "{\n"
            '   Material = "mat_other";\n'
            "};\n",
        )
        result = DecalScanner(ctx, [instances], [managed]).scan_safely()
        assert result.assets == []

    def test_no_instances_no_assets(self, ctx, level):
        managed = level.json("art/decals/managedDecalData.json", {"a": {"material": "m"}})
        result = DecalScanner(ctx, [], [managed]).scan_safely()
        assert result.assets == []

    def test_duplicate_materials_collapsed(self, ctx, level):
        instances = _instances(level, "a", "b")
        managed = level.json(
            "art/decals/managedDecalData.json",
            {"a": {"material": "shared"}, "b": {"material": "SHARED"}},
        )
        result = DecalScanner(ctx, [instances], [managed]).scan_safely()
        assert [a.material_name for a in result.assets] == ["shared"]

    def test_broken_instances_file(self, ctx, level):
        broken = level.write("main.decals.json", "{ nope")
        result = DecalScanner(ctx, [broken], []).scan_safely()
        assert result.assets == []
        assert ctx.diagnostics.count("json") == 1
