"""Tests for level_cleanup.reachability."""
from __future__ import annotations

from pathlib import Path

from level_cleanup.materials import MaterialCatalog
from level_cleanup.models import MESH, TEXTURE, Asset, ExcludeSet
from level_cleanup.paths import path_key
from level_cleanup.pipeline import scan_level
from level_cleanup.reachability import ReachabilityOptions, find_unreachable, mesh_inventory, mesh_key


def _names(paths):
    return [p.name for p in paths]


def _placed(level, rel):
    """A scene asset that resolved to an existing, material-less mesh."""
    return Asset(class_name="TSStatic", resolved_mesh_path=level.dae(rel), mesh_exists=True)


# --- mesh identity / inventory --------------------------------------------

class TestMeshKey:
    def test_source_and_compiled_share_identity(self, tmp_path: Path):
        assert mesh_key(tmp_path / "A.dae") == mesh_key(tmp_path / "a.CDAE")

    def test_other_extension_kept(self, tmp_path: Path):
        assert mesh_key(tmp_path / "a.png").endswith("a.png")

    def test_inventory(self, level):
        level.dae("art/a.dae")
        level.touch("art/b.cdae")
        level.touch("art/c.png")
        assert _names(mesh_inventory(level.level_dir)) == ["a.dae", "b.cdae"]


# --- end-to-end scenarios -------------------------------------------------

class TestScenarios:
    def test_unused_mesh_and_its_orphan_texture(self, scenario_level, config):
        level = scenario_level
        plan = scan_level(config).reachability.plan
        assert plan.to_delete[MESH] == [level.path("art/shapes/B.cdae"), level.path("art/shapes/B.dae")]
        assert plan.to_delete[TEXTURE] == [level.path("art/textures/t2.png")]
        assert level.path("art/shapes/A.dae") not in plan
        assert level.path("art/textures/t1.png") not in plan

    def test_missing_compiled_variant_reported_not_found(self, scenario_level, config):
        level = scenario_level
        level.path("art/shapes/B.cdae").unlink()
        plan = scan_level(config).reachability.plan
        assert plan.to_delete[MESH] == [level.path("art/shapes/B.dae")]
        assert plan.not_found[MESH] == [level.path("art/shapes/B.cdae")]

    def test_shared_texture_blocks_deletion(self, level, config):
        level.dae("art/shapes/A.dae", "M3")
        level.dae("art/shapes/B.dae", "M2")
        level.touch("art/textures/shared.png")
        level.touch("art/textures/only_m2.png")
        level.materials(
            "art/shapes/main.materials.json",
            M2={
                "name": "M2",
                "Stages": [
                    {"baseColorMap": level.ref("art/textures/shared.png")},
                    {"normalMap": level.ref("art/textures/only_m2.png")},
                ],
            },
            M3={"name": "M3", "Stages": [{"baseColorMap": level.ref("art/textures/shared.png")}]},
        )
        level.scene({"class": "TSStatic", "shapeName": level.ref("art/shapes/A.dae")})
        result = scan_level(config).reachability
        assert result.orphan_materials == ["m2"]
        assert level.path("art/textures/shared.png") not in result.plan
        assert result.plan.to_delete[TEXTURE] == [level.path("art/textures/only_m2.png")]
        assert result.shared_textures_kept == [level.path("art/textures/shared.png")]

    def test_compiled_reference_protects_source(self, scenario_level, config):
        level = scenario_level
        level.touch("art/shapes/A.cdae")
        level.scene({"class": "TSStatic", "shapeName": level.ref("art/shapes/A.cdae")})
        plan = scan_level(config).reachability.plan
        assert level.path("art/shapes/A.dae") not in plan
        assert level.path("art/shapes/A.cdae") not in plan

    def test_map_to_counts_as_use(self, scenario_level, config):
        level = scenario_level
        level.materials(
            "art/shapes/main.materials.json",
            M2={"name": "M2", "mapTo": "m2_src", "Stages": [{"baseColorMap": level.ref("art/textures/t2.png")}]},
        )
        level.scene(
            {"class": "TSStatic", "shapeName": level.ref("art/shapes/A.dae")},
            {"class": "DecalRoad", "material": "m2_src"},
        )
        plan = scan_level(config).reachability.plan
        assert level.path("art/textures/t2.png") not in plan
        assert level.path("art/shapes/B.dae") in plan

    def test_excluded_texture_never_planned(self, scenario_level, config):
        level = scenario_level
        level.write("scripts/keep.cs", f'bitmap = "{level.ref("art/textures/t2.png")}";\n')
        plan = scan_level(config).reachability.plan
        assert level.path("art/textures/t2.png") not in plan
        assert level.path("art/shapes/B.dae") in plan

    def test_unknown_used_mesh_suppresses_texture_sweep(self, scenario_level, config):
        level = scenario_level
        level.touch("art/shapes/C.cdae")
        level.scene(
            {"class": "TSStatic", "shapeName": level.ref("art/shapes/A.dae")},
            {"class": "TSStatic", "shapeName": level.ref("art/shapes/C.cdae")},
        )
        result = scan_level(config).reachability
        assert result.texture_sweep_suppressed
        assert result.plan.to_delete[TEXTURE] == []
        assert level.path("art/shapes/B.dae") in result.plan

        config.cleanup.allow_unknown_mesh_materials = True
        result = scan_level(config).reachability
        assert not result.texture_sweep_suppressed
        assert result.plan.to_delete[TEXTURE] == [level.path("art/textures/t2.png")]

    def test_sweep_unreferenced_materials(self, scenario_level, config):
        level = scenario_level
        level.touch("art/textures/t9.png")
        level.materials(
            "art/other/extra.materials.json",
            M9={"name": "M9", "Stages": [{"baseColorMap": level.ref("art/textures/t9.png")}]},
        )
        plan = scan_level(config).reachability.plan
        assert level.path("art/textures/t9.png") not in plan

        config.cleanup.sweep_unreferenced_materials = True
        plan = scan_level(config).reachability.plan
        assert level.path("art/textures/t9.png") in plan
        assert level.path("art/textures/t1.png") not in plan


# --- properties -----------------------------------------------------------

class TestProperties:
    def test_idempotent(self, scenario_level, config):
        first = scan_level(config).reachability.plan
        second = scan_level(config).reachability.plan
        assert first == second

    def test_no_false_deletions(self, scenario_level, config):
        outcome = scan_level(config)
        unused = {path_key(p) for p in outcome.reachability.unused_meshes}
        for asset in outcome.ctx.assets:
            if asset.mesh_exists:
                assert path_key(asset.resolved_mesh_path) not in unused
                assert asset.resolved_mesh_path not in outcome.reachability.plan

    def test_soundness(self, scenario_level, config):
        outcome = scan_level(config)
        result = outcome.reachability
        for material in outcome.catalog:
            if material.name_key in result.used_material_names:
                for texture in material.resolved_files:
                    assert texture.path not in result.plan


# --- direct use -----------------------------------------------------------

class TestFindUnreachable:
    def test_without_scanners(self, ctx, level):
        level.dae("art/x.dae", "X")
        level.touch("art/x.png")
        materials = level.materials("art/main.materials.json", X={"name": "X", "diffuseMap": "x.png"})
        catalog = MaterialCatalog.build(ctx, [materials])
        placed = [_placed(level, "art/used.dae")]
        result = find_unreachable(
            mesh_inventory(level.level_dir), placed, catalog, ExcludeSet(), ReachabilityOptions()
        )
        assert _names(result.plan.to_delete[MESH]) == ["x.dae"]
        assert _names(result.plan.to_delete[TEXTURE]) == ["x.png"]

    def test_unused_mesh_without_source_contributes_no_orphans(self, ctx, level):
        level.touch("art/x.cdae")
        level.touch("art/x.png")
        materials = level.materials("art/main.materials.json", X={"name": "X", "diffuseMap": "x.png"})
        catalog = MaterialCatalog.build(ctx, [materials])
        placed = [_placed(level, "art/used.dae")]
        result = find_unreachable(
            mesh_inventory(level.level_dir), placed, catalog, ExcludeSet(), diagnostics=ctx.diagnostics
        )
        assert _names(result.plan.to_delete[MESH]) == ["x.cdae"]
        assert result.plan.to_delete[TEXTURE] == []
        assert ctx.diagnostics.count("mesh") == 1

    def test_used_asset_names_case_insensitive(self, ctx, level):
        level.dae("art/x.dae", "Rock")
        level.touch("art/x.png")
        materials = level.materials("art/main.materials.json", rock={"name": "rock", "diffuseMap": "x.png"})
        catalog = MaterialCatalog.build(ctx, [materials])
        assets = [Asset(class_name="DecalRoad", material_name="ROCK")]
        result = find_unreachable(mesh_inventory(level.level_dir), assets, catalog, ExcludeSet())
        assert result.orphan_materials == []
        assert result.plan.to_delete[TEXTURE] == []

    def test_no_resolved_mesh_plans_nothing(self, ctx, level):
        level.dae("art/x.dae", "X")
        level.touch("art/x.png")
        materials = level.materials("art/main.materials.json", X={"name": "X", "diffuseMap": "x.png"})
        catalog = MaterialCatalog.build(ctx, [materials])
        missing = Asset(class_name="TSStatic", shape_reference="/levels/elsewhere/x.dae", mesh_exists=False)
        result = find_unreachable(mesh_inventory(level.level_dir), [missing], catalog, ExcludeSet())
        assert result.planning_refused
        assert result.plan.all_to_delete() == []
        assert result.unused_meshes == [level.path("art/x.dae")]
        assert result.summary()["planning_refused"] is True
