"""Unit tests for the location → module resolver."""
import json

import pytest

from app.sync.locations import (
    DEFAULT_LOCATION_RULES,
    LocationResolver,
    LocationRule,
    ModuleId,
    load_location_rules,
)


@pytest.fixture
def resolver():
    return LocationResolver()


class TestExactMatch:
    @pytest.mark.parametrize(
        "name, module",
        [
            ("TLB central kitchen", ModuleId.CENTRAL_KITCHEN),
            ("TLB CENTRAL KITCHEN", ModuleId.CENTRAL_KITCHEN),
            ("TLB City", ModuleId.KUWAIT_CITY),
            ("TLB Vibes", ModuleId.VIBE_COMPLEX),
            ("TLB 360 RNA", ModuleId.MALL_360),
            ("360 Mall", ModuleId.MALL_360),
            ("Clinic", ModuleId.TAIBA_KITCHEN),
            ("Taiba Hospital", ModuleId.TAIBA_KITCHEN),
            ("TLB taiba", ModuleId.TAIBA_KITCHEN),
        ],
    )
    def test_known_variants(self, resolver, name, module):
        assert resolver.resolve(name) == module

    def test_every_default_pattern_resolves_to_its_own_module(self, resolver):
        for rule in DEFAULT_LOCATION_RULES:
            assert resolver.resolve(rule.pattern) == rule.module


class TestFallbackMatch:
    def test_case_insensitive(self, resolver):
        assert resolver.resolve("tlb VIBES") == ModuleId.VIBE_COMPLEX

    def test_input_contains_pattern(self, resolver):
        assert resolver.resolve("The 360 Mall Outlet") == ModuleId.MALL_360

    def test_pattern_contains_input(self, resolver):
        assert resolver.resolve("Taiba") == ModuleId.TAIBA_KITCHEN

    def test_surrounding_whitespace_ignored(self, resolver):
        assert resolver.resolve("  TLB City  ") == ModuleId.KUWAIT_CITY

    def test_first_rule_in_table_order_wins(self, resolver):
        # "tlb" is a substring of every TLB pattern; central kitchen is listed first
        assert resolver.resolve("TLB") == ModuleId.CENTRAL_KITCHEN

    def test_deterministic(self, resolver):
        results = {resolver.resolve("tlb 360") for _ in range(20)}
        assert results == {ModuleId.MALL_360}


class TestUnmapped:
    @pytest.mark.parametrize("name", [None, "", "   ", "Warehouse 9"])
    def test_returns_none(self, resolver, name):
        assert resolver.resolve(name) is None
        assert not resolver.is_mapped(name)

    def test_exact_only_disables_fallback(self):
        strict = LocationResolver(exact_only=True)
        assert strict.resolve("tlb VIBES") is None
        assert strict.resolve("TLB Vibes") == ModuleId.VIBE_COMPLEX


class TestHelpers:
    def test_modules_in_table_order(self, resolver):
        assert resolver.modules() == [
            ModuleId.CENTRAL_KITCHEN,
            ModuleId.KUWAIT_CITY,
            ModuleId.VIBE_COMPLEX,
            ModuleId.MALL_360,
            ModuleId.TAIBA_KITCHEN,
        ]

    def test_locations_for_module(self, resolver):
        names = resolver.locations_for_module(ModuleId.MALL_360)
        assert "360 Mall" in names
        assert "TLB City" not in names

    def test_custom_rules(self):
        custom = LocationResolver([LocationRule("Airport Kiosk", ModuleId.KUWAIT_CITY)])
        assert custom.resolve("airport kiosk") == ModuleId.KUWAIT_CITY
        assert custom.resolve("TLB City") is None


class TestLoadRules:
    def test_load_from_json(self, tmp_path):
        path = tmp_path / "locations.json"
        path.write_text(
            json.dumps(
                [
                    {"pattern": "Main Kitchen", "module": "central-kitchen"},
                    {"pattern": "Souq Branch", "module": "kuwait-city"},
                ]
            )
        )
        rules = load_location_rules(path)
        assert rules == (
            LocationRule("Main Kitchen", ModuleId.CENTRAL_KITCHEN),
            LocationRule("Souq Branch", ModuleId.KUWAIT_CITY),
        )

    def test_unknown_module_rejected(self, tmp_path):
        path = tmp_path / "locations.json"
        path.write_text(json.dumps([{"pattern": "X", "module": "moon-base"}]))
        with pytest.raises(ValueError):
            load_location_rules(path)

    def test_non_list_rejected(self, tmp_path):
        path = tmp_path / "locations.json"
        path.write_text(json.dumps({"pattern": "X", "module": "kuwait-city"}))
        with pytest.raises(ValueError):
            load_location_rules(path)

    def test_blank_pattern_rejected(self, tmp_path):
        path = tmp_path / "locations.json"
        path.write_text(json.dumps([{"pattern": "  ", "module": "kuwait-city"}]))
        with pytest.raises(ValueError):
            load_location_rules(path)
