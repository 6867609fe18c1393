import pytest

from models import Attribute, EnemyAttribute
from teamcalc.engine.race_bonus import calculate_race_bonus, get_advantage_attribute, get_disadvantage_attribute
from tests.factories import make_card, make_roster


def test_advantage_cycle():
    assert get_advantage_attribute(EnemyAttribute.Divina) == Attribute.Anima
    assert get_advantage_attribute(EnemyAttribute.Phantasma) == Attribute.Divina
    assert get_advantage_attribute(EnemyAttribute.Anima) == Attribute.Phantasma
    assert get_disadvantage_attribute(EnemyAttribute.Divina) == Attribute.Phantasma
    assert get_advantage_attribute(EnemyAttribute.Null) is None


class TestRaceBonus:
    def test_leader_advantage_counts_members_and_assists(self):
        members = make_roster(
            {0: make_card("l", "Anima"), 1: make_card("m", "Anima"), 2: make_card("x", "Divina"),
             6: make_card("r", "Anima")},
            assists={2: make_card("as", "Anima", card_type=4)},
        )
        # 队长 10% + 同属性 3 人 (含替补) 15% + 辅助卡 5%
        assert calculate_race_bonus(members, EnemyAttribute.Divina) == pytest.approx(0.30)

    def test_disadvantage_is_negative(self):
        members = make_roster({0: make_card("l", "Anima"), 1: make_card("m", "Anima")})
        assert calculate_race_bonus(members, EnemyAttribute.Phantasma) == pytest.approx(-0.20)

    def test_neutral_matchup(self):
        members = make_roster({0: make_card("l", "Anima")})
        assert calculate_race_bonus(members, EnemyAttribute.Anima) == 0.0

    def test_disabled_or_no_leader(self):
        members = make_roster({0: make_card("l", "Anima")})
        assert calculate_race_bonus(members, EnemyAttribute.Null) == 0.0
        assert calculate_race_bonus(members, None) == 0.0
        assert calculate_race_bonus(make_roster({1: make_card("m", "Anima")}), EnemyAttribute.Divina) == 0.0

    def test_neutral_leader(self):
        members = make_roster({0: make_card("l", "Neutral")})
        assert calculate_race_bonus(members, EnemyAttribute.Divina) == 0.0

    def test_full_matching_team_reaches_max(self):
        cards = {i: make_card(f"m{i}", "Anima") for i in range(5)}
        assists = {i: make_card(f"as{i}", "Anima", card_type=4) for i in range(5)}
        # 队长 10% + 主力 5 人 25% + 辅助卡 5 张 25%
        assert calculate_race_bonus(make_roster(cards, assists), EnemyAttribute.Divina) == pytest.approx(0.60)
