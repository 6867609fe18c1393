# teamcalc/engine/race_bonus.py
from typing import Optional, Sequence, Union

from models import Attribute, EnemyAttribute
from teamcalc.engine.team_types import (
    RACE_ASSIST_BONUS, RACE_LEADER_BONUS, RACE_MEMBER_BONUS, TOTAL_SLOTS, TeamMemberState,
)

# 种族克制：Anima > Divina > Phantasma > Anima
# 敌人属性 -> 对其有优势 / 劣势的我方属性
_ADVANTAGE = {
    EnemyAttribute.Divina: Attribute.Anima,
    EnemyAttribute.Phantasma: Attribute.Divina,
    EnemyAttribute.Anima: Attribute.Phantasma,
}
_DISADVANTAGE = {
    EnemyAttribute.Divina: Attribute.Phantasma,
    EnemyAttribute.Phantasma: Attribute.Anima,
    EnemyAttribute.Anima: Attribute.Divina,
}


def get_advantage_attribute(enemy_attribute: Union[EnemyAttribute, str]) -> Optional[Attribute]:
    return _ADVANTAGE.get(EnemyAttribute(enemy_attribute))


def get_disadvantage_attribute(enemy_attribute: Union[EnemyAttribute, str]) -> Optional[Attribute]:
    return _DISADVANTAGE.get(EnemyAttribute(enemy_attribute))


def calculate_race_bonus(members: Sequence[TeamMemberState], enemy_attribute: Union[EnemyAttribute, str, None]) -> float:
    """
    全队种族加成 (小数，+0.45 = +45%)
    队长克制敌人时为正，被克制时为负，其余情况为 0。
    数值 = 队长 10% + 同属性主力/替补每人 5% (含队长) + 同属性辅助卡每张 5%
    """
    if enemy_attribute is None or EnemyAttribute(enemy_attribute) == EnemyAttribute.Null:
        return 0.0

    leader = members[0].card if members else None
    if leader is None:
        return 0.0

    leader_attr = leader.stats.attribute_name
    if not leader_attr or leader_attr == Attribute.Neutral.value:
        return 0.0

    advantage = get_advantage_attribute(enemy_attribute)
    disadvantage = get_disadvantage_attribute(enemy_attribute)
    if advantage is not None and leader_attr == advantage.value:
        sign = 1
    elif disadvantage is not None and leader_attr == disadvantage.value:
        sign = -1
    else:
        return 0.0

    bonus = RACE_LEADER_BONUS

    # 主力 + 替补 (替补不输出，但计入人数)
    for i in range(min(TOTAL_SLOTS, len(members))):
        card = members[i].card
        if card is not None and card.stats.attribute_name == leader_attr:
            bonus += RACE_MEMBER_BONUS

    for i in range(min(TOTAL_SLOTS, len(members))):
        assist = members[i].assist_card
        if assist is not None and assist.stats.attribute_name == leader_attr:
            bonus += RACE_ASSIST_BONUS

    return bonus * sign
