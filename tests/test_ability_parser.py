"""
能力解析：结构化数据与旧版标签/描述兜底
"""
import logging

import pytest

from models import Ability, Attribute
from teamcalc.engine.team_types import AbilityTiming, EffectStat, RankSort, TargetType
from teamcalc.parser.ability_parser import LegacyAbilityParser, parse_ability
from tests.factories import make_ability


def effect_map(parsed):
    return {e.stat: e for e in parsed.effects}


# ============================================================================
# 结构化数据
# ============================================================================


class TestStructuredTargets:
    def test_team_dmg(self):
        parsed = parse_ability(make_ability("a", target="team", effects=[("ATK", 20)]), "c1")
        assert parsed.target_type == TargetType.Team
        assert parsed.effects[0].stat == EffectStat.Dmg
        assert parsed.effects[0].value == pytest.approx(0.2)
        assert parsed.source_card_id == "c1"
        assert parsed.is_from_assist is False

    def test_self_with_count_becomes_team(self):
        parsed = parse_ability(make_ability("a", target="self", count=3), "c1")
        assert parsed.target_type == TargetType.Team

    def test_attribute_filter_and_count(self):
        parsed = parse_ability(make_ability("a", target="attribute", count=2, filter="type<3>"), "c1")
        assert parsed.target_type == TargetType.Attribute
        assert parsed.attribute_filter == Attribute.Anima
        assert parsed.rank_count == 2

    def test_ranked_by_speed(self):
        parsed = parse_ability(make_ability("a", target="ranked", count=2, filter="max_spd"), "c1")
        assert parsed.target_type == TargetType.Ranked
        assert parsed.rank_sort_by == RankSort.Speed
        assert parsed.rank_count == 2

    def test_ranked_enemy_tag_becomes_team(self):
        ability = make_ability("a", target="ranked", count=1, filter="max_atk",
                               effects=[("SHIELD", -10)], tags=["DMG Amp"])
        parsed = parse_ability(ability, "c1")
        assert parsed.target_type == TargetType.Team
        assert parsed.effects[0].is_debuff is True


class TestStructuredEffects:
    def test_level_stays_integer(self):
        parsed = parse_ability(make_ability("a", effects=[("LEVEL", 5)]), "c1")
        assert parsed.effects[0].stat == EffectStat.Level
        assert parsed.effects[0].value == 5

    def test_enemy_target_keeps_only_shield_and_defense_reduction(self):
        ability = make_ability("a", target="enemy",
                               effects=[("SHIELD", -15), ("ATK", -10), ("SPD", -20), ("DEFENSE", -5)])
        parsed = parse_ability(ability, "c1")
        effects = effect_map(parsed)
        assert parsed.target_type == TargetType.Team
        assert set(effects) == {EffectStat.Shield, EffectStat.Defense}
        assert effects[EffectStat.Shield].value == pytest.approx(0.15)
        assert effects[EffectStat.Shield].is_debuff is True

    def test_unknown_effects_ignored(self):
        parsed = parse_ability(make_ability("a", effects=[("POISON", 30), ("HEAL", 10), ("CHIT", 10)]), "c1")
        assert [e.stat for e in parsed.effects] == [EffectStat.CritRate]

    def test_negative_ally_shield_is_debuff(self):
        parsed = parse_ability(make_ability("a", effects=[("SHIELD", -10)]), "c1")
        assert parsed.effects[0].is_debuff is True
        assert parsed.effects[0].value == pytest.approx(0.1)


class TestStructuredFlags:
    @pytest.mark.parametrize("trigger, timing", [
        ("entry", AbilityTiming.Passive),
        ("entry_wave", AbilityTiming.WaveStart),
        ("last_wave", AbilityTiming.FinalWave),
        ("something_else", AbilityTiming.Passive),
    ])
    def test_timing(self, trigger, timing):
        assert parse_ability(make_ability("a", trigger=trigger), "c1").timing == timing

    def test_leader_trigger(self):
        assert parse_ability(make_ability("a", trigger="entry_leader"), "c1").requires_leader is True
        assert parse_ability(make_ability("a", tags=["Leader"]), "c1").requires_leader is True
        assert parse_ability(make_ability("a"), "c1").requires_leader is False

    def test_conditions_replace_synergy_partners(self):
        ability = make_ability("a", mns_ids=["9001"])
        ability.synergy_partners = ["1234"]
        assert parse_ability(ability, "c1").synergy_partners == ["9001"]

    def test_stackable_defaults_to_true(self):
        assert parse_ability(make_ability("a"), "c1").stackable is True
        assert parse_ability(make_ability("a", stackable=False), "c1").stackable is False

    def test_assist_origin(self):
        assert parse_ability(make_ability("a"), "x", is_from_assist=True).is_from_assist is True


# ============================================================================
# 旧版兜底
# ============================================================================


class TestLegacyParser:
    def test_team_dmg_from_description(self, caplog):
        ability = Ability(id="old", name="War Drum", description="Increases DMG of all allies by 10%.",
                          tags=["Team", "DMG Up"])
        with caplog.at_level(logging.WARNING):
            parsed = parse_ability(ability, "c1")
        assert parsed.target_type == TargetType.Team
        assert parsed.effects[0].stat == EffectStat.Dmg
        assert parsed.effects[0].value == pytest.approx(0.1)
        assert "no parsed data" in caplog.text

    def test_attribute_with_count(self):
        ability = Ability(id="old", description="Raises crit rate of 2 allies (Anima) by 15%.",
                          tags=["Team", "Anima", "Crit Rate Up"])
        parsed = parse_ability(ability, "c1")
        assert parsed.target_type == TargetType.Attribute
        assert parsed.attribute_filter == Attribute.Anima
        assert parsed.rank_count == 2

    def test_multi_ranks_by_atk(self):
        ability = Ability(id="old", description="Increases DMG of allies by 8%.", tags=["Multi", "DMG Up"])
        parsed = parse_ability(ability, "c1")
        assert parsed.target_type == TargetType.Ranked
        assert parsed.rank_sort_by == RankSort.Atk
        assert parsed.rank_count == 2

    def test_multi_explicit_count(self):
        ability = Ability(id="old", description="Increases DMG of the top 3 allies by 8%.", tags=["Multi", "DMG Up"])
        assert parse_ability(ability, "c1").rank_count == 3

    def test_values_paired_in_tag_order(self):
        effects = LegacyAbilityParser.extract_effects(
            "Crit rate +10% and crit DMG +25%", ["Crit Rate Up", "Crit DMG Up"]
        )
        assert [(e.stat, e.value) for e in effects] == [
            (EffectStat.CritRate, pytest.approx(0.10)),
            (EffectStat.CritDmg, pytest.approx(0.25)),
        ]

    def test_timing_tags(self):
        assert parse_ability(Ability(id="o", tags=["Wave Start"]), "c1").timing == AbilityTiming.WaveStart
        assert parse_ability(Ability(id="o", tags=["Final Wave"]), "c1").timing == AbilityTiming.FinalWave

    def test_no_numbers_no_effects(self):
        parsed = parse_ability(Ability(id="o", description="Boosts allies.", tags=["Team", "DMG Up"]), "c1")
        assert parsed.effects == []
