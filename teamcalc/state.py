# teamcalc/state.py
"""
队伍配置层：所有修改入口都在这里做边界校验，计算引擎本身不再校验。
非法槽位 / 越界数值一律不生效 (返回 False)。
"""
import json
import logging
from typing import Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from models import (
    BondSlot, BondType, Card, EnemyAttribute, ExportedEnemy, ExportedMember, ExportedTeam, RandomTargetMode,
)
from teamcalc.engine.calculator import DamageCalculator
from teamcalc.engine.team_calc import calculate_team_damage
from teamcalc.engine.team_types import (
    MAIN_TEAM_SIZE, TOTAL_SLOTS, EnemyState, TeamCalculationResult, TeamContext, TeamMemberState, empty_roster,
)

logger = logging.getLogger(__name__)

MAX_LEVEL_BONUS = 30
MIN_WAVE_COUNT, MAX_WAVE_COUNT = 1, 10
MIN_WORLD_BOSS_BONUS, MAX_WORLD_BOSS_BONUS = 1.0, 5.0


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class TeamState:
    def __init__(self):
        self.members: List[TeamMemberState] = empty_roster()
        self.enemy = EnemyState()
        self.ability_target_overrides: Dict[str, List[int]] = {}
        self.random_target_mode = RandomTargetMode.Average
        self.team_context: Optional[TeamContext] = None
        self.last_result: Optional[TeamCalculationResult] = None

    @staticmethod
    def _valid_index(index: int) -> bool:
        return 0 <= index < TOTAL_SLOTS

    # --- 1. 队员 ---
    def set_card(self, index: int, card_id: Optional[str]) -> bool:
        if not self._valid_index(index):
            return False
        member = self.members[index]
        member.card_id = card_id
        member.card = None
        # 换卡后技能状态重置
        member.skill_active = False
        member.skill_effect = None
        return True

    def set_assist(self, index: int, card_id: Optional[str]) -> bool:
        if not self._valid_index(index):
            return False
        member = self.members[index]
        member.assist_card_id = card_id
        member.assist_card = None
        if card_id:
            # 装备辅助卡时第三羁绊槽锁定
            member.bond3 = BondSlot.Empty
        return True

    def set_limit_break(self, index: int, value: int) -> bool:
        if not self._valid_index(index) or not 0 <= value <= DamageCalculator.MAX_LB:
            return False
        self.members[index].limit_break = value
        return True

    def set_level_bonus(self, index: int, value: int) -> bool:
        if not self._valid_index(index) or not 0 <= value <= MAX_LEVEL_BONUS:
            return False
        self.members[index].level_bonus = value
        return True

    def set_bond_slot(self, index: int, slot: int, value: Union[BondSlot, str]) -> bool:
        if not self._valid_index(index):
            return False
        try:
            bond = BondSlot(value)
        except ValueError:
            return False
        member = self.members[index]
        if slot == 1:
            member.bond1 = bond
        elif slot == 2:
            member.bond2 = bond
        else:
            member.bond3 = bond
        return True

    def set_bond_type(self, index: int, value: Union[BondType, str]) -> bool:
        """旧版羁绊类型，仅保存不参与计算"""
        if not self._valid_index(index):
            return False
        try:
            self.members[index].bond_type = BondType(value)
        except ValueError:
            return False
        return True

    def toggle_skill(self, index: int) -> bool:
        if not self._valid_index(index):
            return False
        member = self.members[index]
        if member.is_reserve:
            return False
        member.skill_active = not member.skill_active
        return True

    def clear_member(self, index: int) -> bool:
        if not self._valid_index(index):
            return False
        self.members[index] = TeamMemberState.empty(index)
        return True

    def clear_all(self):
        self.__init__()

    # --- 2. 敌人 ---
    def set_enemy_base_shield(self, value: float):
        self.enemy.base_shield = _clamp(value, DamageCalculator.SHIELD_MIN, DamageCalculator.SHIELD_MAX)

    def set_enemy_base_defense(self, value: float):
        self.enemy.base_defense = _clamp(value, 0.0, DamageCalculator.SHIELD_MAX)

    def set_enemy_attribute(self, value: Union[EnemyAttribute, str]) -> bool:
        try:
            self.enemy.attribute = EnemyAttribute(value)
        except ValueError:
            return False
        return True

    def set_final_wave(self, value: bool):
        self.enemy.is_final_wave = bool(value)

    def set_wave_count(self, value: int):
        self.enemy.wave_count = int(_clamp(value, MIN_WAVE_COUNT, MAX_WAVE_COUNT))

    def set_ignore_shield_cap(self, value: bool):
        self.enemy.ignore_shield_cap = bool(value)

    def set_world_boss_bonus(self, value: float):
        self.enemy.world_boss_bonus = _clamp(value, MIN_WORLD_BOSS_BONUS, MAX_WORLD_BOSS_BONUS)

    def set_healers_dont_attack(self, value: bool):
        self.enemy.healers_dont_attack = bool(value)

    # --- 3. 目标覆盖 ---
    def set_ability_targets(self, ability_id: str, targets: List[int]):
        valid = [t for t in targets if 0 <= t < MAIN_TEAM_SIZE]
        if valid:
            self.ability_target_overrides[ability_id] = valid
        else:
            # 空列表 = 恢复自动选择
            self.ability_target_overrides.pop(ability_id, None)

    def set_random_target_mode(self, mode: Union[RandomTargetMode, str]) -> bool:
        try:
            self.random_target_mode = RandomTargetMode(mode)
        except ValueError:
            return False
        return True

    # --- 4. 计算 ---
    def resolve_cards(self, catalog: Mapping[str, Card]):
        for member in self.members:
            member.card = catalog.get(member.card_id) if member.card_id else None
            member.assist_card = catalog.get(member.assist_card_id) if member.assist_card_id else None

    def recalculate(self, catalog: Mapping[str, Card]) -> TeamCalculationResult:
        """解析卡牌并重新计算，结果回写到各队员"""
        self.resolve_cards(catalog)
        for member in self.members:
            # 清空上一轮结果，技能效果按新等级重新解析
            member.ability_contributions = []
            member.skill_effect = None

        result = calculate_team_damage(
            self.members, self.enemy, self.ability_target_overrides, self.random_target_mode
        )
        for member, computed in zip(self.members, result.members):
            member.computed_stats = computed.computed_stats
            member.damage_result = computed.damage_result
            member.ability_contributions = computed.ability_contributions
            member.skill_effect = computed.skill_effect

        self.team_context = result.team_context
        self.last_result = result
        return result

    # --- 5. 导入 / 导出 ---
    def to_exported(self) -> ExportedTeam:
        return ExportedTeam(
            version=1,
            members=[
                ExportedMember(
                    cardId=m.card_id,
                    cardName=m.card.name if m.card else None,
                    assistCardId=m.assist_card_id,
                    assistCardName=m.assist_card.name if m.assist_card else None,
                    limitBreak=m.limit_break,
                    levelBonus=m.level_bonus,
                    bond1=m.bond1,
                    bond2=m.bond2,
                    bond3=m.bond3,
                    skillActive=m.skill_active,
                )
                for m in self.members
            ],
            enemy=ExportedEnemy(
                baseShield=self.enemy.base_shield,
                baseDefense=self.enemy.base_defense,
                isFinalWave=self.enemy.is_final_wave,
                waveCount=self.enemy.wave_count,
                attribute=self.enemy.attribute,
                ignoreShieldCap=self.enemy.ignore_shield_cap,
            ),
            abilityTargetOverrides=dict(self.ability_target_overrides) or None,
        )

    def export_team(self) -> str:
        """只导出配置，不含计算结果"""
        data = self.to_exported().model_dump(mode="json")
        # 名称与覆盖为可选字段，空值不输出；id 保留 null
        for member in data["members"]:
            for key in ("cardName", "assistCardName"):
                if member[key] is None:
                    del member[key]
        if data["abilityTargetOverrides"] is None:
            del data["abilityTargetOverrides"]
        return json.dumps(data, ensure_ascii=False, indent=2)

    def apply_exported(self, team: ExportedTeam):
        members = empty_roster()
        for index, data in enumerate(team.members[:TOTAL_SLOTS]):
            member = members[index]
            # 名称仅供阅读，以 id 为准
            member.card_id = data.cardId
            member.assist_card_id = data.assistCardId
            member.limit_break = data.limitBreak
            member.level_bonus = data.levelBonus
            member.bond1, member.bond2, member.bond3 = data.bond1, data.bond2, data.bond3
            member.skill_active = data.skillActive and not member.is_reserve

        enemy = self.enemy.model_copy(update={
            "base_shield": _clamp(team.enemy.baseShield, DamageCalculator.SHIELD_MIN, DamageCalculator.SHIELD_MAX),
            "base_defense": _clamp(team.enemy.baseDefense, 0.0, DamageCalculator.SHIELD_MAX),
            "is_final_wave": team.enemy.isFinalWave,
            "wave_count": int(_clamp(team.enemy.waveCount, MIN_WAVE_COUNT, MAX_WAVE_COUNT)),
            "attribute": team.enemy.attribute,
            "ignore_shield_cap": team.enemy.ignoreShieldCap,
        })

        overrides = {}
        for ability_id, targets in (team.abilityTargetOverrides or {}).items():
            valid = [t for t in targets if 0 <= t < MAIN_TEAM_SIZE]
            if valid:
                overrides[ability_id] = valid

        self.members = members
        self.enemy = enemy
        self.ability_target_overrides = overrides
        self.team_context = None
        self.last_result = None

    def import_team(self, raw: str) -> bool:
        """
        导入失败时整体拒绝，当前状态保持不变
        """
        try:
            team = ExportedTeam.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Failed to import team: %s", e)
            return False
        self.apply_exported(team)
        return True
