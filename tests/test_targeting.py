"""
目标解析：伙伴 / 队长检查、属性随机目标策略、排名与手动覆盖
"""
import pytest

from models import Attribute, RandomTargetMode
from teamcalc.engine.targeting import resolve_ability_targets
from teamcalc.engine.team_calc import calculate_phase1_base_stats, calculate_phase2_team_context
from teamcalc.engine.team_types import AbilityEffect, EffectStat, ParsedAbility, RankSort, TargetType
from tests.factories import make_card, make_roster


def build(members):
    phase1 = calculate_phase1_base_stats(members)
    return calculate_phase2_team_context(phase1, members)


def ability(**fields) -> ParsedAbility:
    data = dict(id="ab", effects=[AbilityEffect(stat=EffectStat.Dmg, value=0.1)])
    data.update(fields)
    return ParsedAbility(**data)


@pytest.fixture
def divina_team():
    # 槽位 0/1/3 为 Divina，攻击力 8000 / 12000 / 10000；槽位 2 为 Anima
    return make_roster({
        0: make_card("d0", "Divina", max_atk=8000),
        1: make_card("d1", "Divina", max_atk=12000),
        2: make_card("n2", "Anima", max_atk=20000),
        3: make_card("d3", "Divina", max_atk=10000),
    })


class TestBasicTargets:
    def test_self(self, divina_team):
        res = resolve_ability_targets(ability(target_type=TargetType.Self), 2, build(divina_team), divina_team)
        assert res.indices == [2]

    def test_team_skips_empty_and_reserve(self, divina_team):
        divina_team[5].card = make_card("r5")
        res = resolve_ability_targets(ability(target_type=TargetType.Team), 0, build(divina_team), divina_team)
        assert res.indices == [0, 1, 2, 3]

    def test_attribute_without_count(self, divina_team):
        ab = ability(target_type=TargetType.Attribute, attribute_filter=Attribute.Divina)
        res = resolve_ability_targets(ab, 0, build(divina_team), divina_team)
        assert res.indices == [0, 1, 3]
        assert res.scale_factor == 1.0


class TestPreconditions:
    def test_missing_synergy_partner(self, divina_team):
        ab = ability(target_type=TargetType.Team, synergy_partners=["zzz"])
        assert resolve_ability_targets(ab, 0, build(divina_team), divina_team).indices == []

    def test_synergy_partner_as_assist(self, divina_team):
        divina_team[3].assist_card = make_card("zzz", card_type=4)
        ab = ability(target_type=TargetType.Team, synergy_partners=["zzz"])
        assert resolve_ability_targets(ab, 0, build(divina_team), divina_team).indices == [0, 1, 2, 3]

    def test_leader_only_from_slot_zero(self, divina_team):
        ab = ability(target_type=TargetType.Team, requires_leader=True)
        ctx = build(divina_team)
        assert resolve_ability_targets(ab, 1, ctx, divina_team).indices == []
        assert resolve_ability_targets(ab, 0, ctx, divina_team).indices == [0, 1, 2, 3]


class TestRandomTargetModes:
    @pytest.mark.parametrize("mode, expected", [
        (RandomTargetMode.First, [0, 1]),
        (RandomTargetMode.Last, [1, 3]),
        (RandomTargetMode.Best, [1, 3]),
        (RandomTargetMode.Worst, [3, 0]),
    ])
    def test_deterministic_modes(self, divina_team, mode, expected):
        ab = ability(target_type=TargetType.Attribute, attribute_filter=Attribute.Divina, rank_count=2)
        res = resolve_ability_targets(ab, 0, build(divina_team), divina_team, random_target_mode=mode)
        assert res.indices == expected
        assert res.scale_factor == 1.0

    def test_average_spreads_over_all_candidates(self, divina_team):
        ab = ability(target_type=TargetType.Attribute, attribute_filter=Attribute.Divina, rank_count=2)
        res = resolve_ability_targets(ab, 0, build(divina_team), divina_team,
                                      random_target_mode=RandomTargetMode.Average)
        assert res.indices == [0, 1, 3]
        assert res.scale_factor == pytest.approx(2 / 3)

    def test_count_not_limiting(self, divina_team):
        ab = ability(target_type=TargetType.Attribute, attribute_filter=Attribute.Divina, rank_count=5)
        res = resolve_ability_targets(ab, 0, build(divina_team), divina_team,
                                      random_target_mode=RandomTargetMode.Average)
        assert res.indices == [0, 1, 3]
        assert res.scale_factor == 1.0


class TestRanked:
    def test_top_by_atk(self, divina_team):
        ab = ability(target_type=TargetType.Ranked, rank_count=2, rank_sort_by=RankSort.Atk)
        assert resolve_ability_targets(ab, 0, build(divina_team), divina_team).indices == [2, 1]

    def test_missing_sort_gives_nothing(self, divina_team):
        ab = ability(target_type=TargetType.Ranked, rank_count=2)
        assert resolve_ability_targets(ab, 0, build(divina_team), divina_team).indices == []

    def test_override_replaces_ranking(self, divina_team):
        ab = ability(target_type=TargetType.Ranked, rank_count=2, rank_sort_by=RankSort.Atk)
        res = resolve_ability_targets(ab, 0, build(divina_team), divina_team, overrides={"ab": [3, 4, 9]})
        # 4 号位无卡，9 越界
        assert res.indices == [3]

    def test_override_for_other_ability_ignored(self, divina_team):
        ab = ability(target_type=TargetType.Ranked, rank_count=1, rank_sort_by=RankSort.Atk)
        res = resolve_ability_targets(ab, 0, build(divina_team), divina_team, overrides={"other": [3]})
        assert res.indices == [2]
