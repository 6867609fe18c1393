# teamcalc/engine/team_calc.py
"""
队伍伤害计算 (5 主力 + 2 替补)

四个阶段严格按顺序执行：
  1. 基础属性 (等级 / 攻击 / 暴击 / 速度 / HP / 羁绊)
  2. 队伍上下文 (攻击/速度/HP 排名、属性人数、在场卡牌)
  3. 能力结算 (目标解析、去重、敌方减益)，随后叠加已开启的主动技能
  4. 最终面板与伤害 (突破 Exceed、种族、防御、护盾、上限)

引擎无状态：相同输入必然得到相同输出，去重集合只存在于单次调用内。
"""
import logging
from typing import Dict, List, Optional, Sequence, Set, Tuple

from models import RandomTargetMode
from teamcalc.engine.calculator import DamageCalculator
from teamcalc.engine.race_bonus import calculate_race_bonus
from teamcalc.engine.targeting import resolve_ability_targets
from teamcalc.engine.team_types import (
    HEALER_TYPE, HELPER_SLOT_INDEX, MAIN_TEAM_SIZE, TOTAL_SLOTS,
    AbilityContribution, AbilityTiming, ComputedMemberStats, ContributionEffect, DamageBreakdown,
    EffectStat, EnemyState, MemberDamageResult, ParsedAbility, ParsedSkillEffect, Phase1Result,
    Phase3Result, Phase4Result, TeamCalculationResult, TeamContext, TeamMemberState, combine_bond_slots,
)
from teamcalc.parser.ability_parser import ON_SKILL_TAG, parse_ability
from teamcalc.parser.skill_parser import parse_skill_effect, skill_base_damage_for

logger = logging.getLogger(__name__)

# 能力属性 -> Phase3Result 累加字段
_BONUS_FIELDS: Dict[EffectStat, str] = {
    EffectStat.Dmg: "dmg_bonus",
    EffectStat.CritRate: "crit_rate_bonus",
    EffectStat.CritDmg: "crit_dmg_bonus",
    EffectStat.SkillDmg: "skill_dmg_bonus",
    EffectStat.Speed: "speed_bonus",
    EffectStat.Level: "level_bonus",
    EffectStat.Hp: "hp_bonus",
    EffectStat.NormalDmg: "normal_dmg_bonus",
}

# 敌方减益 -> 全队累加字段 (记在 0 号位)
_ENEMY_DEBUFF_FIELDS: Dict[EffectStat, str] = {
    EffectStat.Shield: "enemy_shield_debuff",
    EffectStat.Defense: "enemy_defense_debuff",
}


# ==========================================
# Phase 1: 基础属性
# ==========================================
def calculate_phase1_base_stats(members: Sequence[TeamMemberState]) -> List[Phase1Result]:
    results = []
    for index, member in enumerate(members):
        card = member.card
        if card is None:
            results.append(Phase1Result(member_index=index))
            continue

        stats = card.stats
        level = DamageCalculator.get_effective_level(stats.max_level, member.limit_break, member.level_bonus)

        # 三个羁绊槽相加；选了辅助卡时第三槽已被配置层锁为 none
        bonds = combine_bond_slots(member.bond1, member.bond2, member.bond3)
        atk_bond, skill_bond = bonds.atk, bonds.skill
        if member.assist_card is not None:
            for bond in member.assist_card.bonds:
                if bond.type == "Attack":
                    atk_bond += bond.bonus_percent / 100
                elif bond.type == "Skill":
                    skill_bond += bond.bonus_percent / 100

        results.append(Phase1Result(
            member_index=index,
            effective_level=level,
            base_atk=DamageCalculator.calc_atk_at_level(stats.base_atk, stats.max_atk, stats.max_level, level),
            base_crit_rate=stats.crit / 10000,
            base_speed=stats.speed,
            base_hp=DamageCalculator.calc_atk_at_level(stats.base_hp, stats.max_hp, stats.max_level, level),
            atk_bond_bonus=atk_bond,
            skill_bond_bonus=skill_bond,
        ))
    return results


# ==========================================
# Phase 2: 队伍上下文
# ==========================================
def calculate_phase2_team_context(phase1: Sequence[Phase1Result], members: Sequence[TeamMemberState]) -> TeamContext:
    with_cards = [r for r in phase1 if members[r.member_index].card is not None]
    main_with_cards = [r for r in with_cards if r.member_index < MAIN_TEAM_SIZE]

    def bonded_atk(r: Phase1Result) -> float:
        # 排名使用含羁绊的攻击力
        return r.base_atk * (1 + r.atk_bond_bonus)

    # sorted 为稳定排序，同值保持槽位顺序
    by_atk = [r.member_index for r in sorted(main_with_cards, key=bonded_atk, reverse=True)]
    by_speed = [r.member_index for r in sorted(main_with_cards, key=lambda r: r.base_speed, reverse=True)]
    by_hp = [r.member_index for r in sorted(main_with_cards, key=lambda r: r.base_hp, reverse=True)]
    all_by_atk = [r.member_index for r in sorted(with_cards, key=bonded_atk, reverse=True)]

    attribute_counts = {"divina": 0, "phantasma": 0, "anima": 0}
    present_card_ids: Set[str] = set()
    present_assist_ids: Set[str] = set()
    for member in members[:TOTAL_SLOTS]:
        if member.card is not None:
            present_card_ids.add(member.card.id)
            key = (member.card.stats.attribute_name or "").lower()
            if key in attribute_counts:
                attribute_counts[key] += 1
        if member.assist_card is not None:
            present_assist_ids.add(member.assist_card.id)

    leader = members[0].card if members else None
    return TeamContext(
        by_atk=by_atk,
        by_speed=by_speed,
        by_hp=by_hp,
        all_by_atk=all_by_atk,
        attribute_counts=attribute_counts,
        present_card_ids=present_card_ids,
        present_assist_ids=present_assist_ids,
        leader_card_id=leader.id if leader else None,
    )


# ==========================================
# Phase 3: 能力结算
# ==========================================
def collect_member_abilities(member: TeamMemberState, effective_level: float) -> List[ParsedAbility]:
    """主卡按等级解锁；辅助卡能力始终生效。"On Skill" 能力交给技能解析。"""
    abilities = []
    if member.card is not None:
        for ability in member.card.abilities:
            if effective_level >= (ability.unlock_level or 1) and ON_SKILL_TAG not in ability.tags:
                abilities.append(parse_ability(ability, member.card.id, False))
    if member.assist_card is not None:
        for ability in member.assist_card.abilities:
            if ON_SKILL_TAG not in ability.tags:
                abilities.append(parse_ability(ability, member.assist_card.id, True))
    return abilities


def calculate_phase3_apply_abilities(
        members: Sequence[TeamMemberState],
        phase1: Sequence[Phase1Result],
        context: TeamContext,
        enemy: EnemyState,
        overrides: Optional[Dict[str, List[int]]] = None,
        random_target_mode: RandomTargetMode = RandomTargetMode.Best,
) -> List[Phase3Result]:
    results = [Phase3Result(member_index=i) for i in range(len(members))]

    # 单次调用内的去重状态
    applied_non_stackable: Set[str] = set()
    applied_enemy_debuffs: Set[Tuple[str, int, EffectStat]] = set()

    for source_index in range(min(TOTAL_SLOTS, len(members))):
        member = members[source_index]
        if member.card is None:
            continue

        for ability in collect_member_abilities(member, phase1[source_index].effective_level):
            # 不可叠加能力全队只生效一次；助战位不参与去重
            if not ability.stackable and source_index != HELPER_SLOT_INDEX:
                if ability.id in applied_non_stackable:
                    continue
                applied_non_stackable.add(ability.id)

            if ability.timing == AbilityTiming.FinalWave and not enemy.is_final_wave:
                continue
            wave_mult = enemy.wave_count if ability.timing == AbilityTiming.WaveStart else 1

            resolved = resolve_ability_targets(ability, source_index, context, members, overrides, random_target_mode)
            if not resolved.indices:
                continue

            for target_index in resolved.indices:
                if target_index >= len(results):
                    continue
                target = results[target_index]
                effects = []

                for effect in ability.effects:
                    value = effect.value * wave_mult * resolved.scale_factor
                    effects.append(ContributionEffect(stat=effect.stat.value, value=value))

                    field = _BONUS_FIELDS.get(effect.stat)
                    if field is not None:
                        setattr(target, field, getattr(target, field) + value)
                        continue

                    debuff_field = _ENEMY_DEBUFF_FIELDS.get(effect.stat)
                    if debuff_field is None or not effect.is_debuff:
                        continue
                    # 敌方减益每个能力实例只计一次，与目标人数无关
                    key = (ability.id, source_index, effect.stat)
                    if key in applied_enemy_debuffs:
                        continue
                    applied_enemy_debuffs.add(key)
                    setattr(results[0], debuff_field, getattr(results[0], debuff_field) + value)
                    results[0].enemy_debuff_contributions.append(AbilityContribution(
                        ability_id=ability.id,
                        ability_name=ability.name,
                        source_card_id=ability.source_card_id,
                        source_member_index=source_index,
                        is_from_assist=ability.is_from_assist,
                        effects=[ContributionEffect(stat=effect.stat.value, value=value)],
                    ))

                if effects:
                    target.ability_contributions.append(AbilityContribution(
                        ability_id=ability.id,
                        ability_name=ability.name,
                        source_card_id=ability.source_card_id,
                        source_member_index=source_index,
                        is_from_assist=ability.is_from_assist,
                        effects=effects,
                    ))

    return results


def apply_skill_buffs(
        members: Sequence[TeamMemberState],
        phase3: List[Phase3Result],
        context: TeamContext,
        skill_effects: Dict[int, ParsedSkillEffect],
) -> float:
    """
    叠加已开启主动技能的增益 (仅主力)
    返回技能造成的敌方护盾降低总和
    """
    skill_debuff_total = 0.0
    for i in range(min(MAIN_TEAM_SIZE, len(members))):
        member = members[i]
        effect = skill_effects.get(i)
        if not member.skill_active or effect is None:
            continue

        buffs = effect.buffs
        card = member.card
        skill_name = card.skill.name if card and card.skill and card.skill.name else "Skill"
        source_card_id = card.id if card else ""

        def apply_to(target_index: int):
            if target_index >= len(members) or members[target_index].card is None:
                return
            target = phase3[target_index]
            effects = []
            for stat, field, value in (
                    (EffectStat.Dmg, "dmg_bonus", buffs.dmg_bonus),
                    (EffectStat.CritRate, "crit_rate_bonus", buffs.crit_rate_bonus),
                    (EffectStat.CritDmg, "crit_dmg_bonus", buffs.crit_dmg_bonus),
                    (EffectStat.Speed, "speed_bonus", buffs.speed_bonus),
            ):
                if value:
                    setattr(target, field, getattr(target, field) + value)
                    effects.append(ContributionEffect(stat=stat.value, value=value))
            if effects:
                target.ability_contributions.append(AbilityContribution(
                    ability_id=f"skill-{source_card_id}",
                    ability_name=f"{skill_name} (Skill)",
                    source_card_id=source_card_id,
                    source_member_index=i,
                    effects=effects,
                ))

        if effect.target_type == "ally":
            if effect.target_count == 99 or effect.target_count >= 5:
                for j in range(MAIN_TEAM_SIZE):
                    apply_to(j)
            elif effect.target_count > 1:
                for j in context.by_atk[:effect.target_count]:
                    apply_to(j)
            elif context.by_atk:
                apply_to(context.by_atk[0])
        elif effect.target_type == "self":
            apply_to(i)
        # 敌方目标技能不加队友，只贡献护盾降低

        skill_debuff_total += effect.buffs.dmg_taken_debuff

    return skill_debuff_total


# ==========================================
# Phase 4: 最终面板与伤害
# ==========================================
def calculate_phase4_final_damage(
        phase1: Sequence[Phase1Result],
        phase3: Sequence[Phase3Result],
        enemy: EnemyState,
        members: Sequence[TeamMemberState],
        skill_debuff_total: float = 0.0,
        total_enemy_shield_debuff: float = 0.0,
        total_enemy_defense_debuff: float = 0.0,
        race_bonus: float = 0.0,
) -> List[Phase4Result]:
    calc = DamageCalculator
    cap_n, cap_s = calc.DAMAGE_CAP_NORMAL, calc.DAMAGE_CAP_SKILL

    # 全队共用的敌方乘区
    defense_mult = calc.defense_multiplier(enemy.base_defense - total_enemy_defense_debuff)
    shield_mult = calc.shield_multiplier(
        enemy.base_shield - total_enemy_shield_debuff - skill_debuff_total, enemy.ignore_shield_cap
    )
    world_boss_mult = enemy.world_boss_bonus if enemy.world_boss_bonus is not None else 1.0
    race_mult = 1 + race_bonus

    results = []
    for index, member in enumerate(members):
        p1, p3 = phase1[index], phase3[index]
        card = member.card
        if card is None:
            results.append(Phase4Result(member_index=index))
            continue

        stats = card.stats
        final_level = p1.effective_level + p3.level_bonus
        final_atk = calc.calc_atk_at_level(stats.base_atk, stats.max_atk, stats.max_level, final_level)
        display_atk = final_atk * (1 + p1.atk_bond_bonus)
        effective_atk = display_atk / 10

        crit_rate = calc.crit_rate(p1.base_crit_rate, p3.crit_rate_bonus)
        crit_dmg = calc.crit_mult(p3.crit_dmg_bonus)
        expected_mult = calc.expected_crit_mult(crit_rate, crit_dmg)
        interval = calc.attack_interval(stats.speed, p3.speed_bonus)

        total_dmg = p3.dmg_bonus
        total_normal_dmg = p3.normal_dmg_bonus
        total_skill_dmg = p1.skill_bond_bonus + p3.skill_dmg_bonus

        breakdown = {
            "level": {"base": stats.max_level, "limit_break": member.limit_break * calc.LEVELS_PER_LB,
                      "bonus": member.level_bonus, "abilities": p3.level_bonus, "total": final_level},
            "atk": {"base": final_atk, "bond": final_atk * p1.atk_bond_bonus, "assist": 0.0,
                    "abilities": 0.0, "total": display_atk},
            "crit_rate": {"base": p1.base_crit_rate, "bond": 0.0, "assist": 0.0,
                          "abilities": p3.crit_rate_bonus, "total": crit_rate},
            "crit_dmg": {"base": calc.BASE_CRIT_MULT, "bond": 0.0, "assist": 0.0,
                         "abilities": p3.crit_dmg_bonus, "total": crit_dmg},
            "dmg": {"abilities": p3.dmg_bonus, "total": total_dmg},
            "skill_dmg": {"bond": p1.skill_bond_bonus, "assist": 0.0,
                          "abilities": p3.skill_dmg_bonus, "total": total_skill_dmg},
            "speed": {"base": stats.speed, "bond": 0.0, "assist": 0.0,
                      "abilities": p3.speed_bonus, "total": stats.speed},
        }

        computed = ComputedMemberStats(
            effective_level=final_level,
            display_atk=display_atk,
            effective_speed=stats.speed,
            effective_crit_rate=crit_rate,
            effective_crit_dmg=crit_dmg,
            dmg_bonus=total_dmg,
            skill_dmg_bonus=total_skill_dmg,
            attack_interval=interval,
            breakdown=breakdown,
        )

        damage: Optional[MemberDamageResult] = None
        if not member.is_reserve:
            if enemy.healers_dont_attack and stats.type == HEALER_TYPE:
                # 治疗职业忙于治疗，不计输出
                damage = MemberDamageResult()
            else:
                exceed = {
                    "avg": calc.exceed_multiplier(member.limit_break, calc.LB_EXCEED_AVERAGE),
                    "min": calc.exceed_multiplier(member.limit_break, calc.LB_EXCEED_MIN),
                    "max": calc.exceed_multiplier(member.limit_break, calc.LB_EXCEED_MAX),
                }
                dmg_mult = 1 + total_dmg
                normal_dmg_mult = 1 + total_normal_dmg
                skill_dmg_mult = 1 + total_skill_dmg
                common = dmg_mult * race_mult * defense_mult * shield_mult * world_boss_mult

                normal_base = {k: effective_atk * v * normal_dmg_mult * common for k, v in exceed.items()}
                skill_base_damage = skill_base_damage_for(card, final_level)
                skill_base = {k: skill_base_damage * v * skill_dmg_mult * common for k, v in exceed.items()}

                normal_expected = {k: calc.cap_damage(v * expected_mult, cap_n) for k, v in normal_base.items()}
                normal_crit = calc.cap_damage(normal_base["avg"] * crit_dmg, cap_n)
                skill_crit = calc.cap_damage(skill_base["avg"] * crit_dmg, cap_s)

                damage = MemberDamageResult(
                    normal_damage=calc.cap_damage(normal_base["avg"], cap_n),
                    normal_damage_min=calc.cap_damage(normal_base["min"], cap_n),
                    normal_damage_max=calc.cap_damage(normal_base["max"], cap_n),
                    normal_damage_crit=normal_crit,
                    normal_damage_crit_min=calc.cap_damage(normal_base["min"] * crit_dmg, cap_n),
                    normal_damage_crit_max=calc.cap_damage(normal_base["max"] * crit_dmg, cap_n),
                    normal_damage_expected=normal_expected["avg"],
                    normal_damage_expected_min=normal_expected["min"],
                    normal_damage_expected_max=normal_expected["max"],
                    normal_damage_capped=normal_crit >= cap_n,
                    normal_dps=calc.round_half_up(normal_expected["avg"] / interval),
                    normal_dps_min=calc.round_half_up(normal_expected["min"] / interval),
                    normal_dps_max=calc.round_half_up(normal_expected["max"] / interval),
                    skill_base_damage=skill_base_damage,
                    skill_damage=calc.cap_damage(skill_base["avg"], cap_s),
                    skill_damage_min=calc.cap_damage(skill_base["min"], cap_s),
                    skill_damage_max=calc.cap_damage(skill_base["max"], cap_s),
                    skill_damage_crit=skill_crit,
                    skill_damage_crit_min=calc.cap_damage(skill_base["min"] * crit_dmg, cap_s),
                    skill_damage_crit_max=calc.cap_damage(skill_base["max"] * crit_dmg, cap_s),
                    skill_damage_expected=calc.cap_damage(skill_base["avg"] * expected_mult, cap_s),
                    skill_damage_expected_min=calc.cap_damage(skill_base["min"] * expected_mult, cap_s),
                    skill_damage_expected_max=calc.cap_damage(skill_base["max"] * expected_mult, cap_s),
                    skill_damage_capped=skill_crit >= cap_s,
                    breakdown=DamageBreakdown(
                        effective_atk=effective_atk,
                        skill_base_damage=skill_base_damage,
                        attack_interval=interval,
                        exceed_mult=exceed["avg"],
                        dmg_mult=dmg_mult,
                        normal_dmg_mult=normal_dmg_mult,
                        skill_dmg_mult=skill_dmg_mult,
                        defense_mult=defense_mult,
                        shield_mult=shield_mult,
                        race_mult=race_mult,
                        world_boss_mult=world_boss_mult,
                        effective_crit_rate=crit_rate,
                        effective_crit_dmg=crit_dmg,
                        expected_crit_mult=expected_mult,
                        normal_base_raw=normal_base["avg"],
                        skill_base_raw=skill_base["avg"],
                    ),
                )

        results.append(Phase4Result(
            member_index=index,
            computed_stats=computed,
            damage_result=damage,
            ability_contributions=p3.ability_contributions,
        ))
    return results


# ==========================================
# 入口
# ==========================================
def calculate_team_damage(
        members: Sequence[TeamMemberState],
        enemy: EnemyState,
        overrides: Optional[Dict[str, List[int]]] = None,
        random_target_mode: RandomTargetMode = RandomTargetMode.Best,
) -> TeamCalculationResult:
    phase1 = calculate_phase1_base_stats(members)
    context = calculate_phase2_team_context(phase1, members)
    phase3 = calculate_phase3_apply_abilities(members, phase1, context, enemy, overrides, random_target_mode)

    # 技能等级 = Phase 1 等级 + 能力提供的等级
    skill_effects: Dict[int, ParsedSkillEffect] = {}
    for i, member in enumerate(members):
        if member.card is None:
            continue
        effect = member.skill_effect
        if effect is None:
            level = phase1[i].effective_level + phase3[i].level_bonus
            effect = parse_skill_effect(member.card, level, member.assist_card)
        if effect is not None:
            skill_effects[i] = effect

    skill_debuff_total = apply_skill_buffs(members, phase3, context, skill_effects)

    main = range(min(MAIN_TEAM_SIZE, len(members)))
    shield_debuff = sum(phase3[i].enemy_shield_debuff for i in main)
    defense_debuff = sum(phase3[i].enemy_defense_debuff for i in main)

    race_bonus = calculate_race_bonus(members, enemy.attribute)

    phase4 = calculate_phase4_final_damage(
        phase1, phase3, enemy, members, skill_debuff_total, shield_debuff, defense_debuff, race_bonus
    )
    for result in phase4:
        result.skill_effect = skill_effects.get(result.member_index)

    total_dps = 0
    total_skill = 0
    for i in main:
        damage = phase4[i].damage_result
        if damage is not None:
            total_dps += damage.normal_dps
            total_skill += damage.skill_damage_expected

    effective_shield = DamageCalculator.effective_shield(
        enemy.base_shield - shield_debuff - skill_debuff_total, enemy.ignore_shield_cap
    )
    effective_defense = DamageCalculator.effective_defense(enemy.base_defense - defense_debuff)

    logger.debug(
        "Team calc: dps=%d skill=%d shield=%.3f defense=%.3f race=%.2f",
        total_dps, total_skill, effective_shield, effective_defense, race_bonus,
    )

    return TeamCalculationResult(
        members=phase4,
        team_context=context,
        effective_enemy_shield=effective_shield,
        effective_enemy_defense=effective_defense,
        total_normal_dps_expected=total_dps,
        total_skill_damage_expected=total_skill,
        skill_debuff_total=skill_debuff_total,
        ability_debuff_total=shield_debuff,
        defense_debuff_total=defense_debuff,
        race_bonus=race_bonus,
        enemy_debuff_contributions=list(phase3[0].enemy_debuff_contributions) if phase3 else [],
    )
