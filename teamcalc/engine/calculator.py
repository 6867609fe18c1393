# teamcalc/engine/calculator.py
import math
from typing import Dict, Optional

from models import DamageInput, DamageResult


class DamageCalculator:
    # 伤害上限
    DAMAGE_CAP_NORMAL = 99_999
    DAMAGE_CAP_SKILL = 999_999

    # 属性上下限
    CRIT_RATE_CAP = 1.0
    SHIELD_MAX = 0.85
    SHIELD_MIN = -0.75
    SPEED_BUFF_CAP = 1.0
    SPEED_DEBUFF_CAP = -1.0
    MIN_ATTACK_INTERVAL = 0.5

    BASE_CRIT_MULT = 2.0
    ATTACK_INTERVAL_OFFSET = 750
    ATTACK_INTERVAL_DIVISOR = 900

    # 突破 (LB)
    LEVELS_PER_LB = 5
    MAX_LB = 4
    LB_EXCEED_RATE = 0.05

    # Exceed: 每次攻击随机 0 ~ 5% × LB，取平均 / 最小 / 最大
    LB_EXCEED_AVERAGE: Dict[int, float] = {0: 1.0, 1: 1.025, 2: 1.05, 3: 1.075, 4: 1.10}
    LB_EXCEED_MIN: Dict[int, float] = {0: 1.0, 1: 1.0, 2: 1.0, 3: 1.0, 4: 1.0}
    LB_EXCEED_MAX: Dict[int, float] = {0: 1.0, 1: 1.05, 2: 1.10, 3: 1.15, 4: 1.20}

    # 连击加成仅为表现效果，不参与伤害结算，保留作展示用
    COMBO_BONUS_TIERS: Dict[int, float] = {1: 0.0, 2: 0.05, 3: 0.10, 4: 0.20, 5: 0.30}

    @staticmethod
    def calc_atk_at_level(base: float, max_value: float, max_level: int, level: float) -> float:
        """线性插值，超过满级时按同一斜率外推。HP 同样适用。"""
        if max_level <= 1:
            return base
        return base + (max_value - base) * (level - 1) / (max_level - 1)

    @staticmethod
    def get_effective_level(max_level: int, limit_break: int, level_bonus: int) -> int:
        return max_level + limit_break * DamageCalculator.LEVELS_PER_LB + level_bonus

    @staticmethod
    def attack_interval(speed_stat: float, speed_bonus: float) -> float:
        """
        攻击间隔 (秒) = (speed + 750) / 900
        加速减半生效，减速全额生效，最终不低于 0.5 秒
        """
        base_interval = (speed_stat + DamageCalculator.ATTACK_INTERVAL_OFFSET) / DamageCalculator.ATTACK_INTERVAL_DIVISOR
        if speed_bonus >= 0:
            capped = min(speed_bonus, DamageCalculator.SPEED_BUFF_CAP)
            interval = base_interval * (1 - capped / 2)
        else:
            capped = max(speed_bonus, DamageCalculator.SPEED_DEBUFF_CAP)
            interval = base_interval * (1 + abs(capped))
        return max(interval, DamageCalculator.MIN_ATTACK_INTERVAL)

    @staticmethod
    def crit_rate(base: float, bonus: float) -> float:
        return min(base + bonus, DamageCalculator.CRIT_RATE_CAP)

    @staticmethod
    def crit_mult(bonus: float) -> float:
        # 负加成可以低于 2.0，不设下限
        return DamageCalculator.BASE_CRIT_MULT + bonus

    @staticmethod
    def expected_crit_mult(rate: float, mult: float) -> float:
        return 1 + rate * (mult - 1)

    @staticmethod
    def skill_base_damage(slv1: float, slvup: float, level: float) -> float:
        """技能基础伤害只与等级有关，与攻击力无关"""
        return slv1 + (level - 1) * slvup

    @staticmethod
    def exceed_multiplier(limit_break: int, table: Optional[Dict[int, float]] = None) -> float:
        table = DamageCalculator.LB_EXCEED_AVERAGE if table is None else table
        return table.get(limit_break, 1.0)

    @staticmethod
    def effective_shield(shield: float, ignore_cap: bool = False) -> float:
        capped = min(shield, DamageCalculator.SHIELD_MAX)
        if ignore_cap:
            return capped
        return max(DamageCalculator.SHIELD_MIN, capped)

    @staticmethod
    def shield_multiplier(shield: float, ignore_cap: bool = False) -> float:
        return 1 - DamageCalculator.effective_shield(shield, ignore_cap)

    @staticmethod
    def effective_defense(defense: float) -> float:
        return max(0.0, min(defense, DamageCalculator.SHIELD_MAX))

    @staticmethod
    def defense_multiplier(defense: float) -> float:
        return 1 - DamageCalculator.effective_defense(defense)

    @staticmethod
    def round_half_up(value: float) -> int:
        # 与客户端一致：.5 向上取整 (内置 round 为银行家舍入)
        return int(math.floor(value + 0.5))

    @staticmethod
    def cap_damage(value: float, cap: int) -> int:
        """先四舍五入再截断"""
        return min(DamageCalculator.round_half_up(value), cap)

    @staticmethod
    def calculate_damage(data: DamageInput) -> DamageResult:
        """单卡伤害计算 (不含队伍、种族与防御)"""
        calc = DamageCalculator

        # --- 1. 等级与攻击力 ---
        level = calc.get_effective_level(data.max_level, data.limit_break, data.level_bonus)
        raw_atk = calc.calc_atk_at_level(data.base_atk, data.max_atk, data.max_level, level)
        effective_atk = raw_atk / 10

        # --- 2. 暴击 ---
        base_crit = data.base_crit / 10000
        crit_rate = calc.crit_rate(base_crit, data.crit_rate_bonus)
        crit_mult = calc.crit_mult(data.crit_dmg_bonus)
        expected_mult = calc.expected_crit_mult(crit_rate, crit_mult)

        # 技能独立暴击
        skill_crit_rate = calc.crit_rate(base_crit, data.crit_rate_bonus + data.skill_crit_rate_bonus)
        skill_crit_mult = calc.crit_mult(data.crit_dmg_bonus + data.skill_crit_dmg_bonus)
        skill_expected_mult = calc.expected_crit_mult(skill_crit_rate, skill_crit_mult)

        # --- 3. 乘区 ---
        interval = calc.attack_interval(data.base_speed, data.speed_bonus)
        exceed = calc.exceed_multiplier(data.limit_break)
        dmg_mult = 1 + data.dmg_percent
        shield_mult = calc.shield_multiplier(data.enemy_shield_debuff, data.ignore_shield_cap)

        # --- 4. 普攻 ---
        normal_base = effective_atk * exceed * dmg_mult * (1 + data.normal_dmg_percent) * shield_mult
        normal_crit_raw = calc.round_half_up(normal_base * crit_mult)
        normal_expected = calc.cap_damage(normal_base * expected_mult, calc.DAMAGE_CAP_NORMAL)

        # --- 5. 技能 ---
        skill_base_damage = calc.skill_base_damage(data.skill_slv1, data.skill_slvup, level)
        skill_base = skill_base_damage * exceed * dmg_mult * (1 + data.skill_dmg_percent) * shield_mult
        skill_crit_raw = calc.round_half_up(skill_base * skill_crit_mult)

        return DamageResult(
            effective_level=level,
            display_atk=raw_atk,
            effective_atk=effective_atk,
            effective_crit_rate=crit_rate,
            effective_crit_mult=crit_mult,
            expected_crit_mult=expected_mult,
            skill_crit_rate=skill_crit_rate,
            skill_crit_mult=skill_crit_mult,
            attack_interval=interval,
            exceed_mult=exceed,
            normal_damage=calc.cap_damage(normal_base, calc.DAMAGE_CAP_NORMAL),
            normal_damage_crit=min(normal_crit_raw, calc.DAMAGE_CAP_NORMAL),
            normal_damage_expected=normal_expected,
            normal_damage_capped=normal_crit_raw >= calc.DAMAGE_CAP_NORMAL,
            normal_dps=calc.round_half_up(normal_expected / interval),
            skill_base_damage=skill_base_damage,
            skill_damage=calc.cap_damage(skill_base, calc.DAMAGE_CAP_SKILL),
            skill_damage_crit=min(skill_crit_raw, calc.DAMAGE_CAP_SKILL),
            skill_damage_expected=calc.cap_damage(skill_base * skill_expected_mult, calc.DAMAGE_CAP_SKILL),
            skill_damage_capped=skill_crit_raw >= calc.DAMAGE_CAP_SKILL,
            raw_multiplier=dmg_mult * shield_mult * expected_mult,
        )


if __name__ == "__main__":
    print("\n=== 单卡伤害计算测试 ===")
    demo = DamageInput(base_atk=1000, max_atk=10000, max_level=70, base_crit=1500, base_speed=300,
                       skill_slv1=5000, skill_slvup=100, limit_break=4, dmg_percent=0.3)
    res = DamageCalculator.calculate_damage(demo)
    print(f"等级 {res.effective_level} | 面板攻击 {res.display_atk:,.0f} | 攻击间隔 {res.attack_interval:.2f}s")
    print(f"普攻期望 {res.normal_damage_expected:,} | DPS {res.normal_dps:,} | 技能期望 {res.skill_damage_expected:,}")
