# teamcalc/engine/analyzer.py
from typing import Dict, List, Optional, Sequence

from models import DamageInput, HeatmapCell
from teamcalc.engine.calculator import DamageCalculator


class StatIncrementAnalyzer:
    # === 固定增量：每项属性各加一档，对比收益 ===
    STAT_INCREMENTS = {
        "dmg": 0.10,  # +10% 增伤
        "crit_rate": 0.10,  # +10% 暴击率
        "crit_dmg": 0.10,  # +10% 暴伤
        "skill_dmg": 0.10,  # +10% 技能增伤
        "speed": 0.10,  # +10% 攻速
        "level": 5,  # +5 级
    }

    # 属性键 -> DamageInput 字段
    STAT_FIELDS = {
        "dmg": "dmg_percent",
        "crit_rate": "crit_rate_bonus",
        "crit_dmg": "crit_dmg_bonus",
        "skill_dmg": "skill_dmg_percent",
        "speed": "speed_bonus",
        "level": "level_bonus",
    }

    # 显示名称映射
    LABELS = {
        "dmg": "增伤 (DMG%)",
        "crit_rate": "暴击率",
        "crit_dmg": "暴击伤害",
        "skill_dmg": "技能增伤",
        "speed": "攻速",
        "level": "等级",
    }

    @staticmethod
    def _with_stat(base_input: DamageInput, stat_key: str, value: float, add: bool) -> DamageInput:
        field = StatIncrementAnalyzer.STAT_FIELDS.get(stat_key)
        if field is None:
            raise ValueError(f"Unknown stat: {stat_key}")
        new_value = getattr(base_input, field) + value if add else value
        if field == "level_bonus":
            new_value = int(new_value)
        return base_input.model_copy(update={field: new_value})

    @staticmethod
    def compare(base_input: DamageInput, increments: Optional[Dict[str, float]] = None) -> List[Dict]:
        """
        每项属性单独加一档后重新计算，返回 DPS / 技能期望伤害的提升
        百分比为小数 (0.05 = 5%)，基准为 0 时记 0
        """
        increments = increments or StatIncrementAnalyzer.STAT_INCREMENTS
        base = DamageCalculator.calculate_damage(base_input)

        results = []
        for stat_key, amount in increments.items():
            new = DamageCalculator.calculate_damage(
                StatIncrementAnalyzer._with_stat(base_input, stat_key, amount, add=True)
            )
            dps_gain = new.normal_dps - base.normal_dps
            skill_gain = new.skill_damage_expected - base.skill_damage_expected

            results.append({
                "key": stat_key,
                "label": StatIncrementAnalyzer.LABELS[stat_key],
                "amount": amount,
                "new_dps": new.normal_dps,
                "dps_gain": dps_gain,
                "dps_gain_pct": dps_gain / base.normal_dps if base.normal_dps else 0.0,
                "new_skill_damage": new.skill_damage_expected,
                "skill_gain": skill_gain,
                "skill_gain_pct": skill_gain / base.skill_damage_expected if base.skill_damage_expected else 0.0,
            })

        return results

    @staticmethod
    def generate_heatmap(
            base_input: DamageInput,
            x_stat: str,
            y_stat: str,
            x_values: Sequence[float],
            y_values: Sequence[float],
    ) -> List[List[HeatmapCell]]:
        """两项属性的取值网格 (行 = y，列 = x)，坐标值直接设为该属性，而不是叠加"""
        grid = []
        for y in y_values:
            row = []
            for x in x_values:
                data = StatIncrementAnalyzer._with_stat(base_input, x_stat, x, add=False)
                data = StatIncrementAnalyzer._with_stat(data, y_stat, y, add=False)
                res = DamageCalculator.calculate_damage(data)
                row.append(HeatmapCell(
                    x=x,
                    y=y,
                    dps=res.normal_dps,
                    skill_damage=res.skill_damage_expected,
                    capped=res.normal_damage_capped or res.skill_damage_capped,
                ))
            grid.append(row)
        return grid

    @staticmethod
    def print_report(results: List[Dict]):
        print("\n" + "╔" + "═" * 70 + "╗")
        print("║ 📈 属性收益对比 (单项增量)                                           ║")
        print("╠" + "═" * 70 + "╣")
        print(f"║ {'属性':<14} | {'DPS 提升':<10} | {'绝对值':<8} | {'技能提升':<8} ║")
        print("╟" + "─" * 70 + "╢")

        for r in sorted(results, key=lambda x: x["dps_gain_pct"], reverse=True):
            if r["key"] == "level":
                val_display = f"+{r['amount']:.0f}"
            else:
                val_display = f"+{r['amount']:.0%}"

            label_with_val = f"{r['label']} [{val_display}]"
            print(
                f"║ {label_with_val:<18} | {r['dps_gain_pct']:>8.2%}  | +{r['dps_gain']:<6.0f} | {r['skill_gain_pct']:>7.2%}  ║")

        print("╚" + "═" * 70 + "╝")
