# main.py
import argparse
import logging
import os
import sys

from models import RandomTargetMode
from teamcalc.catalog import CARDS_PATH, load_catalog
from teamcalc.engine.team_types import TeamCalculationResult
from teamcalc.state import TeamState

logger = logging.getLogger(__name__)


def read_text(path: str) -> str:
    if not os.path.exists(path):
        raise FileNotFoundError(f"找不到文件: {path}")
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def format_value(stat: str, v: float) -> str:
    if stat == "level":
        return f"{v:+.0f}"
    return f"{v:+.1%}"


def run_team(team_path: str, cards_path: str, mode: RandomTargetMode = RandomTargetMode.Average,
             world_boss_bonus: float = 1.0, healers_attack: bool = False) -> TeamState:
    catalog = load_catalog(cards_path)
    state = TeamState()
    if not state.import_team(read_text(team_path)):
        raise ValueError(f"队伍文件格式错误: {team_path}")
    state.set_random_target_mode(mode)
    state.set_world_boss_bonus(world_boss_bonus)
    state.set_healers_dont_attack(not healers_attack)

    missing = [m.card_id for m in state.members if m.card_id and m.card_id not in catalog]
    if missing:
        logger.warning("Cards not in catalog: %s", ", ".join(missing))

    state.recalculate(catalog)
    return state


def print_result_cli(state: TeamState):
    result: TeamCalculationResult = state.last_result
    enemy = state.enemy

    print("\n" + "╔" + "═" * 78 + "╗")
    print(f"║ 敌人属性: {enemy.attribute.value:<10} 护盾: {enemy.base_shield:>6.1%}  防御: {enemy.base_defense:>6.1%}  "
          f"波次: {enemy.wave_count}{' (最终波)' if enemy.is_final_wave else ''}")
    print("╠" + "═" * 78 + "╣")
    print(f"║ [1] 有效护盾 {result.effective_enemy_shield:.1%} | 有效防御 {result.effective_enemy_defense:.1%} "
          f"| 种族加成 {result.race_bonus:+.0%}")
    print(f"║     ● 能力减盾 {result.ability_debuff_total:.1%} | 技能减盾 {result.skill_debuff_total:.1%} "
          f"| 减防 {result.defense_debuff_total:.1%}")
    for contrib in result.enemy_debuff_contributions:
        effects = ", ".join(f"{e.stat} {e.value:.1%}" for e in contrib.effects)
        print(f"║       - {contrib.ability_name} ({contrib.source_member_index + 1}号位): {effects}")
    print("║ [2] 队员:")

    for member, computed in zip(state.members, result.members):
        card = member.card
        if card is None:
            continue
        role = "替补" if member.is_reserve else ("队长" if member.index == 0 else f"{member.index + 1}号")
        stats = computed.computed_stats
        print(f"║   ● [{role}] {card.name or card.id} (LB{member.limit_break}"
              f"{' +技能' if member.skill_active else ''})")
        print(f"║       等级 {stats.effective_level:.0f} | 攻击 {stats.display_atk:,.0f} | "
              f"暴击 {stats.effective_crit_rate:.1%} / {stats.effective_crit_dmg:.2f}x | "
              f"间隔 {stats.attack_interval:.2f}s")
        for contrib in computed.ability_contributions:
            effects = ", ".join(f"{e.stat} {format_value(e.stat, e.value)}" for e in contrib.effects)
            tag = " [辅助]" if contrib.is_from_assist else ""
            print(f"║         - {contrib.ability_name}{tag}: {effects}")

        dmg = computed.damage_result
        if dmg is not None:
            capped = " (上限)" if dmg.normal_damage_capped else ""
            print(f"║       DPS {dmg.normal_dps:,} ({dmg.normal_dps_min:,} ~ {dmg.normal_dps_max:,}) | "
                  f"普攻期望 {dmg.normal_damage_expected:,}{capped} | 技能期望 {dmg.skill_damage_expected:,}")

    print("╠" + "═" * 78 + "╣")
    print(f"║ 全队 DPS: {result.total_normal_dps_expected:,} | 技能期望总伤: {result.total_skill_damage_expected:,}")
    print("╚" + "═" * 78 + "╝")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="队伍伤害计算")
    parser.add_argument("team", help="队伍导出文件 (JSON)")
    parser.add_argument("--cards", default=CARDS_PATH, help="卡牌数据文件")
    parser.add_argument("--mode", default=RandomTargetMode.Average.value,
                        choices=[m.value for m in RandomTargetMode], help="随机目标处理方式")
    parser.add_argument("--world-boss", type=float, default=1.0, help="世界 Boss 倍率")
    parser.add_argument("--healers-attack", action="store_true", help="治疗职业也计入输出")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        state = run_team(args.team, args.cards, RandomTargetMode(args.mode), args.world_boss, args.healers_attack)
    except (FileNotFoundError, ValueError) as e:
        logger.error("%s", e)
        return 1

    print_result_cli(state)
    return 0


if __name__ == "__main__":
    sys.exit(main())
