# teamcalc/parser/skill_parser.py
from typing import Optional

from models import Card
from teamcalc.engine.calculator import DamageCalculator
from teamcalc.engine.team_types import ParsedSkillEffect, SkillBuff
from teamcalc.parser.ability_parser import ON_SKILL_TAG


def _resolve_target(card: Card):
    """返回 (target_type, target_count, target_priority)"""
    skill = card.skill
    tags = skill.tags
    description = skill.description or ""
    target_type, target_count, priority = "ally", 1, None

    parsed_target = skill.parsed.target if skill.parsed else None
    if parsed_target is not None:
        if parsed_target.type in ("self", "self_ime"):
            target_type = "self"
        elif parsed_target.type in ("enemy", "current_target"):
            target_type = "enemy"
        elif parsed_target.type == "ranked":
            # ranked 可能是打敌人 (伤害) 也可能是奶队友
            immediate = skill.parsed.immediate
            if (immediate is not None and immediate.type == "ATK") or "DMG" in tags or "Deals" in description:
                target_type = "enemy"
            else:
                target_type = "ally"
        elif parsed_target.type == "ally":
            target_type = "ally"

        target_count = parsed_target.count or 1

        filter_str = parsed_target.filter or ""
        if "max_atk" in filter_str:
            priority = "highest_atk"
        elif "min_hp" in filter_str:
            priority = "lowest_hp"
        elif "max_hp" in filter_str or "max_spd" in filter_str:
            # HP / 速度优先暂未区分，按攻击力处理
            priority = "highest_atk"
        elif target_count >= 5:
            priority = "all"
    else:
        # 兜底：只看标签
        if "Heal" in tags:
            target_type = "ally"
        elif "DMG" in tags:
            target_type = "enemy"
        if "Self" in tags:
            target_type = "self"

        if "AoE" in tags:
            target_count, priority = 99, "all"
        elif "Multi" in tags:
            target_count = 2

    return target_type, target_count, priority


def parse_skill_effect(card: Card, effective_level: float, assist_card: Optional[Card] = None) -> Optional[ParsedSkillEffect]:
    """
    主动技能的增益/减益载荷 (技能开启时由队伍计算叠加)
    技能等级 = 卡牌有效等级；数值 = value/100 + scale/100 × (等级 - 1)
    没有任何有效数值时返回 None
    """
    if card.skill is None:
        return None

    skill = card.skill
    target_type, target_count, priority = _resolve_target(card)
    buffs = SkillBuff()
    duration = None

    # --- 1. 技能自身效果 ---
    effects = skill.parsed.effects if skill.parsed else []
    for effect in effects:
        total = effect.value / 100 + (effect.scale or 0) / 100 * (effective_level - 1)

        if effect.duration and effect.duration > 0:
            duration = max(duration or 0, effect.duration)

        if effect.type == "ATK":
            if target_type in ("ally", "self") and total > 0:
                buffs.dmg_bonus = total
            else:
                buffs.dmg_dealt_debuff = abs(total)
        elif effect.type == "SHIELD":
            if total < 0:
                buffs.dmg_taken_debuff = abs(total)
            else:
                buffs.dmg_reduction = total
        elif effect.type == "CHIT":
            buffs.crit_rate_bonus = total
        elif effect.type == "CHIT_ATK":
            buffs.crit_dmg_bonus = total
        elif effect.type == "SPD":
            if total > 0:
                buffs.speed_bonus = total
            else:
                buffs.speed_debuff = abs(total)
        elif effect.type == "DEFENSE":
            if total < 0:
                buffs.dmg_dealt_debuff = abs(total) / 1000

    # --- 2. 主卡与辅助卡的 "On Skill" 能力 ---
    abilities = list(card.abilities) + (list(assist_card.abilities) if assist_card else [])
    for ability in abilities:
        if ON_SKILL_TAG not in ability.tags:
            continue
        if effective_level < (ability.unlock_level or 1):
            continue
        if ability.parsed is None:
            continue

        for effect in ability.parsed.effects:
            value = (effect.value or 0) / 100
            if effect.type == "CHIT":
                buffs.crit_rate_bonus += value
            elif effect.type == "CHIT_ATK":
                buffs.crit_dmg_bonus += value
            elif effect.type == "SPD":
                if value > 0:
                    buffs.speed_bonus += value
                else:
                    buffs.speed_debuff += abs(value)
            elif effect.type == "SHIELD":
                if value < 0:
                    buffs.dmg_taken_debuff += abs(value)
            elif effect.type == "ATK":
                if value > 0:
                    buffs.dmg_bonus += value

    if not buffs.has_buffs():
        return None

    return ParsedSkillEffect(
        target_type=target_type,
        target_count=target_count,
        target_priority=priority,
        buffs=buffs,
        duration=duration,
    )


def skill_base_damage_for(card: Optional[Card], level: float) -> float:
    """只有攻击型技能 (immediate.type == ATK) 计算伤害，治疗/增益技能为 0"""
    if card is None or card.skill is None or card.skill.parsed is None:
        return 0.0
    parsed = card.skill.parsed
    if parsed.immediate is None or parsed.immediate.type != "ATK":
        return 0.0
    return DamageCalculator.skill_base_damage(parsed.slv1 or 0, parsed.slvup or 0, level)
