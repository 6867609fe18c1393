# teamcalc/parser/ability_parser.py
import logging
import re
from typing import Dict, List, Optional

from models import Ability, AbilityParsed, Attribute, ParsedTarget
from teamcalc.engine.team_types import (
    AbilityEffect, AbilityTiming, EffectStat, ParsedAbility, RankSort, TargetType,
)

logger = logging.getLogger(__name__)

# --- 映射表 ---
# 不在表内的效果 (状态异常、持续伤害、治疗等) 一律忽略
EFFECT_TYPE_MAP: Dict[str, EffectStat] = {
    "ATK": EffectStat.Dmg,
    "SKILL_ATK": EffectStat.SkillDmg,
    "CHIT": EffectStat.CritRate,
    "CHIT_ATK": EffectStat.CritDmg,
    "SPD": EffectStat.Speed,
    "SHIELD": EffectStat.Shield,
    "DEFENSE": EffectStat.Defense,
    "LEVEL": EffectStat.Level,
    "HP": EffectStat.Hp,
    "NORM_ATK": EffectStat.NormalDmg,
}

TIMING_MAP: Dict[str, AbilityTiming] = {
    "entry": AbilityTiming.Passive,
    "entry_wave": AbilityTiming.WaveStart,
    "last_wave": AbilityTiming.FinalWave,
    "entry_leader": AbilityTiming.Passive,  # 队长能力 = 常驻 + requires_leader
    "attack_skill": AbilityTiming.Passive,
    "attack_normal": AbilityTiming.Passive,
}

ATTRIBUTE_FILTERS = [
    ("type<1>", Attribute.Divina),
    ("type<2>", Attribute.Phantasma),
    ("type<3>", Attribute.Anima),
]

RANK_SORT_MAP: Dict[str, RankSort] = {
    "max_atk": RankSort.Atk,
    "max_spd": RankSort.Speed,
    "max_hp": RankSort.Hp,
    "min_hp": RankSort.Hp,
    "min_hpp": RankSort.Hp,
}

# 带有这些标签的能力作用于敌人
ENEMY_TARGETING_TAGS = ["DMG Amp", "Enemy DMG Down", "Slow"]

ON_SKILL_TAG = "On Skill"
LEADER_TAG = "Leader"


def parse_attribute_filter(filter_str: Optional[str]) -> Optional[Attribute]:
    if not filter_str:
        return None
    for key, attribute in ATTRIBUTE_FILTERS:
        if key in filter_str:
            return attribute
    return None


def parse_rank_sort(filter_str: Optional[str]) -> Optional[RankSort]:
    if not filter_str:
        return None
    return RANK_SORT_MAP.get(filter_str)


class StructuredAbilityParser:
    """读取数据管线生成的 parsed 字段 (首选路径)"""

    @staticmethod
    def parse(ability: Ability, source_card_id: str, is_from_assist: bool) -> ParsedAbility:
        parsed: AbilityParsed = ability.parsed
        tags = ability.tags

        targets_enemy_by_tag = any(t in ENEMY_TARGETING_TAGS for t in tags)
        targets_enemy = targets_enemy_by_tag

        target = parsed.target or ParsedTarget(type="self", count=1)
        target_type = TargetType.Self
        attribute_filter = None
        rank_count = None
        rank_sort_by = None

        # --- 1. 目标 ---
        if target.type == "self":
            target_type = TargetType.Self
        elif target.type == "team":
            target_type = TargetType.Team
        elif target.type == "attribute":
            target_type = TargetType.Attribute
            attribute_filter = parse_attribute_filter(target.filter)
            # "2 allies Anima" -> count 2
            if target.count and target.count > 0:
                rank_count = target.count
        elif target.type == "ranked":
            if targets_enemy_by_tag:
                # 敌方减益视为全队收益
                target_type = TargetType.Team
            else:
                target_type = TargetType.Ranked
                rank_count = target.count
                rank_sort_by = parse_rank_sort(target.filter)
        elif target.type in ("enemy", "current_target"):
            target_type = TargetType.Team
            targets_enemy = True

        if target.count > 1 and target_type == TargetType.Self:
            target_type = TargetType.Team

        # --- 2. 时机 ---
        timing = TIMING_MAP.get(parsed.trigger or "", AbilityTiming.Passive)

        # --- 3. 效果 ---
        effects: List[AbilityEffect] = []
        for e in parsed.effects:
            stat = EFFECT_TYPE_MAP.get(e.type)
            if stat is None:
                continue

            # 0-100 -> 0-1，等级保持整数
            raw_value = e.value if stat == EffectStat.Level else e.value / 100
            is_enemy_stat = stat in (EffectStat.Shield, EffectStat.Defense)
            is_debuff = targets_enemy or (is_enemy_stat and raw_value < 0)

            if targets_enemy:
                # 只保留护盾/防御降低，其余敌方效果 (减速、降攻) 不影响我方输出
                if is_enemy_stat and raw_value < 0:
                    effects.append(AbilityEffect(stat=stat, value=abs(raw_value), is_debuff=True))
                continue

            effects.append(AbilityEffect(stat=stat, value=abs(raw_value), is_debuff=is_debuff))

        # --- 4. 条件 ---
        if parsed.conditions is not None and parsed.conditions.mns_ids is not None:
            synergy_partners = list(parsed.conditions.mns_ids)
        else:
            synergy_partners = list(ability.synergy_partners)

        return ParsedAbility(
            id=ability.id,
            name=ability.name,
            description=ability.description,
            unlock_level=ability.unlock_level or 1,
            source_card_id=source_card_id,
            is_from_assist=is_from_assist,
            target_type=target_type,
            attribute_filter=attribute_filter,
            rank_count=rank_count,
            rank_sort_by=rank_sort_by,
            effects=effects,
            synergy_partners=synergy_partners,
            requires_leader=parsed.trigger == "entry_leader" or LEADER_TAG in tags,
            timing=timing,
            stackable=ability.stackable is not False,
        )


class LegacyAbilityParser:
    """
    没有 parsed 字段的旧能力：目标和时机只看标签，数值从描述文本中正则提取。
    精度较低，仅作兜底。
    """

    # 标签 -> 属性 (按标签顺序与描述中的百分比一一对应)
    STAT_TAGS: Dict[str, EffectStat] = {
        "DMG Up": EffectStat.Dmg,
        "ATK Up": EffectStat.Dmg,
        "Skill DMG Up": EffectStat.SkillDmg,
        "Normal DMG Up": EffectStat.NormalDmg,
        "Crit Rate Up": EffectStat.CritRate,
        "Crit DMG Up": EffectStat.CritDmg,
        "ATK Speed Up": EffectStat.Speed,
        "Speed Up": EffectStat.Speed,
    }

    PERCENT_RE = re.compile(r"([+-]?\d+(?:\.\d+)?)\s*%")
    COUNT_RE = re.compile(r"\b(?:top\s+(\d+)|(\d+)\s+(?:allies|ally|members|units))\b", re.IGNORECASE)

    @staticmethod
    def extract_effects(description: str, tags: List[str]) -> List[AbilityEffect]:
        stats = []
        for tag in tags:
            stat = LegacyAbilityParser.STAT_TAGS.get(tag)
            if stat is not None and stat not in stats:
                stats.append(stat)
        if not stats:
            return []

        values = [abs(float(v)) / 100 for v in LegacyAbilityParser.PERCENT_RE.findall(description or "")]
        if not values:
            return []

        # 只有一个数值时对所有标签属性生效，否则按顺序配对
        if len(values) == 1:
            values = values * len(stats)
        return [AbilityEffect(stat=stat, value=value) for stat, value in zip(stats, values)]

    @staticmethod
    def extract_count(description: str) -> Optional[int]:
        match = LegacyAbilityParser.COUNT_RE.search(description or "")
        if match is None:
            return None
        return int(match.group(1) or match.group(2))

    @staticmethod
    def parse(ability: Ability, source_card_id: str, is_from_assist: bool) -> ParsedAbility:
        logger.warning(
            "Ability %r (%s) has no parsed data, falling back to tag/description parsing",
            ability.name, ability.id,
        )
        tags = ability.tags

        target_type = TargetType.Self
        attribute_filter = None
        rank_count = None
        rank_sort_by = None

        if "Team" in tags:
            target_type = TargetType.Team

        for attribute in (Attribute.Divina, Attribute.Phantasma, Attribute.Anima):
            if attribute.value in tags:
                attribute_filter = attribute
                if target_type == TargetType.Team:
                    target_type = TargetType.Attribute
                break

        count = LegacyAbilityParser.extract_count(ability.description)
        if target_type == TargetType.Attribute and count:
            rank_count = count

        if "Multi" in tags:
            target_type = TargetType.Ranked
            rank_count = count or 2
            rank_sort_by = RankSort.Atk

        timing = AbilityTiming.Passive
        if "Wave Start" in tags:
            timing = AbilityTiming.WaveStart
        elif "Final Wave" in tags:
            timing = AbilityTiming.FinalWave

        return ParsedAbility(
            id=ability.id,
            name=ability.name,
            description=ability.description,
            unlock_level=ability.unlock_level or 1,
            source_card_id=source_card_id,
            is_from_assist=is_from_assist,
            target_type=target_type,
            attribute_filter=attribute_filter,
            rank_count=rank_count,
            rank_sort_by=rank_sort_by,
            effects=LegacyAbilityParser.extract_effects(ability.description, tags),
            synergy_partners=list(ability.synergy_partners),
            requires_leader=LEADER_TAG in tags,
            timing=timing,
            stackable=ability.stackable is not False,
        )


def parse_ability(ability: Ability, source_card_id: str, is_from_assist: bool = False) -> ParsedAbility:
    """每次计算重新解析，不做缓存"""
    if ability.parsed is not None:
        return StructuredAbilityParser.parse(ability, source_card_id, is_from_assist)
    return LegacyAbilityParser.parse(ability, source_card_id, is_from_assist)
