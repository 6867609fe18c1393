# teamcalc/engine/team_types.py
from pydantic import BaseModel, Field
from typing import List, Dict, Optional, Set, Literal
from enum import Enum

from models import Attribute, BondSlot, BondType, Card, EnemyAttribute

# --- 0. 队伍常量 ---
MAIN_TEAM_SIZE = 5
RESERVE_SIZE = 2
TOTAL_SLOTS = MAIN_TEAM_SIZE + RESERVE_SIZE
HELPER_SLOT_INDEX = 4  # 助战位 (好友卡)

HEALER_TYPE = 3
ASSIST_TYPE = 4

# 种族克制加成
RACE_LEADER_BONUS = 0.10
RACE_MEMBER_BONUS = 0.05
RACE_ASSIST_BONUS = 0.05


# --- 1. 羁绊 ---
class BondBonus(BaseModel):
    atk: float = 0.0
    skill: float = 0.0


BOND_SLOT_VALUES: Dict[BondSlot, BondBonus] = {
    BondSlot.Empty: BondBonus(),
    BondSlot.Atk5: BondBonus(atk=0.05),
    BondSlot.Atk7: BondBonus(atk=0.075),
    BondSlot.Skill5: BondBonus(skill=0.05),
    BondSlot.Skill7: BondBonus(skill=0.075),
}

BOND_SLOT_LABELS: Dict[BondSlot, str] = {
    BondSlot.Empty: "None",
    BondSlot.Atk5: "+5% ATK",
    BondSlot.Atk7: "+7.5% ATK",
    BondSlot.Skill5: "+5% Skill",
    BondSlot.Skill7: "+7.5% Skill",
}

# 旧版羁绊表 (兼容旧存档)
BOND_VALUES: Dict[BondType, BondBonus] = {
    BondType.Empty: BondBonus(),
    BondType.Atk15: BondBonus(atk=0.15),
    BondType.Skill15: BondBonus(skill=0.15),
    BondType.Atk10: BondBonus(atk=0.10),
    BondType.Skill10: BondBonus(skill=0.10),
    BondType.Atk7: BondBonus(atk=0.075),
    BondType.Skill7: BondBonus(skill=0.075),
    BondType.Atk5: BondBonus(atk=0.05),
    BondType.Skill5: BondBonus(skill=0.05),
    BondType.Split5: BondBonus(atk=0.05, skill=0.05),
    BondType.Split7: BondBonus(atk=0.075, skill=0.075),
}


def combine_bond_slots(bond1: BondSlot, bond2: BondSlot, bond3: BondSlot) -> BondBonus:
    slots = [BOND_SLOT_VALUES[BondSlot(b)] for b in (bond1, bond2, bond3)]
    return BondBonus(atk=sum(s.atk for s in slots), skill=sum(s.skill for s in slots))


# --- 2. 能力解析结果 ---
class EffectStat(str, Enum):
    Dmg = "dmg"
    SkillDmg = "skillDmg"
    CritRate = "critRate"
    CritDmg = "critDmg"
    Speed = "speed"
    Shield = "shield"
    Defense = "defense"
    Level = "level"
    Hp = "hp"
    NormalDmg = "normalDmg"


class TargetType(str, Enum):
    Self = "self"
    Team = "team"
    Attribute = "attribute"
    Ranked = "ranked"


class AbilityTiming(str, Enum):
    Passive = "passive"
    WaveStart = "wave_start"
    FinalWave = "final_wave"


class RankSort(str, Enum):
    Atk = "atk"
    Speed = "speed"
    Hp = "hp"


class AbilityEffect(BaseModel):
    stat: EffectStat
    value: float  # 小数 (0.15 = 15%)，等级为整数
    is_debuff: bool = False


class ParsedAbility(BaseModel):
    id: str
    name: str = ""
    description: str = ""
    unlock_level: int = 1
    source_card_id: str = ""
    is_from_assist: bool = False

    target_type: TargetType = TargetType.Self
    attribute_filter: Optional[Attribute] = None
    rank_count: Optional[int] = None
    rank_sort_by: Optional[RankSort] = None

    effects: List[AbilityEffect] = Field(default_factory=list)

    synergy_partners: List[str] = Field(default_factory=list)
    requires_leader: bool = False
    timing: AbilityTiming = AbilityTiming.Passive
    stackable: bool = True


# --- 3. 主动技能效果 ---
class SkillBuff(BaseModel):
    dmg_bonus: float = 0.0
    dmg_reduction: float = 0.0
    dmg_taken_debuff: float = 0.0  # 敌方护盾降低
    dmg_dealt_debuff: float = 0.0
    crit_rate_bonus: float = 0.0
    crit_dmg_bonus: float = 0.0
    speed_bonus: float = 0.0
    speed_debuff: float = 0.0

    def has_buffs(self) -> bool:
        return any(v != 0 for v in self.model_dump().values())


class ParsedSkillEffect(BaseModel):
    target_type: Literal["ally", "enemy", "self"] = "ally"
    target_count: int = 1
    target_priority: Optional[Literal["highest_atk", "lowest_hp", "all"]] = None
    buffs: SkillBuff = Field(default_factory=SkillBuff)
    duration: Optional[float] = None


# --- 4. 敌人 / 队员 ---
class EnemyState(BaseModel):
    base_shield: float = 0.0
    base_defense: float = 0.0
    attribute: EnemyAttribute = EnemyAttribute.Null
    is_final_wave: bool = False
    wave_count: int = 1
    ignore_shield_cap: bool = False
    healers_dont_attack: bool = True
    world_boss_bonus: float = 1.0


class ContributionEffect(BaseModel):
    stat: str
    value: float


class AbilityContribution(BaseModel):
    ability_id: str
    ability_name: str
    source_card_id: str
    source_member_index: int
    is_from_assist: bool = False
    effects: List[ContributionEffect] = Field(default_factory=list)


class ComputedMemberStats(BaseModel):
    effective_level: float = 0
    display_atk: float = 0.0
    effective_speed: float = 0.0
    effective_crit_rate: float = 0.0
    effective_crit_dmg: float = 2.0
    dmg_bonus: float = 0.0
    skill_dmg_bonus: float = 0.0
    attack_interval: float = 0.0
    # level / atk / critRate / critDmg / dmg / skillDmg / speed -> 来源明细
    breakdown: Dict[str, Dict[str, float]] = Field(default_factory=dict)


class DamageBreakdown(BaseModel):
    effective_atk: float
    skill_base_damage: float
    attack_interval: float
    exceed_mult: float
    dmg_mult: float
    normal_dmg_mult: float
    skill_dmg_mult: float
    defense_mult: float
    shield_mult: float
    race_mult: float
    world_boss_mult: float
    effective_crit_rate: float
    effective_crit_dmg: float
    expected_crit_mult: float
    normal_base_raw: float
    skill_base_raw: float


class MemberDamageResult(BaseModel):
    normal_damage: int = 0
    normal_damage_min: int = 0
    normal_damage_max: int = 0
    normal_damage_crit: int = 0
    normal_damage_crit_min: int = 0
    normal_damage_crit_max: int = 0
    normal_damage_expected: int = 0
    normal_damage_expected_min: int = 0
    normal_damage_expected_max: int = 0
    normal_damage_capped: bool = False
    normal_dps: int = 0
    normal_dps_min: int = 0
    normal_dps_max: int = 0

    skill_base_damage: float = 0.0
    skill_damage: int = 0
    skill_damage_min: int = 0
    skill_damage_max: int = 0
    skill_damage_crit: int = 0
    skill_damage_crit_min: int = 0
    skill_damage_crit_max: int = 0
    skill_damage_expected: int = 0
    skill_damage_expected_min: int = 0
    skill_damage_expected_max: int = 0
    skill_damage_capped: bool = False

    breakdown: Optional[DamageBreakdown] = None


class TeamMemberState(BaseModel):
    """
    队伍槽位 (0-4 主力, 5-6 替补)
    card / assist_card 由配置层根据 id 解析；computed_* 为最近一次计算结果
    """
    index: int = 0
    card_id: Optional[str] = None
    card: Optional[Card] = None
    assist_card_id: Optional[str] = None
    assist_card: Optional[Card] = None
    limit_break: int = 4
    level_bonus: int = 0
    bond1: BondSlot = BondSlot.Empty
    bond2: BondSlot = BondSlot.Empty
    bond3: BondSlot = BondSlot.Empty
    bond_type: BondType = BondType.Atk15  # 旧版字段，计算不再使用
    skill_active: bool = False
    is_reserve: bool = False

    computed_stats: Optional[ComputedMemberStats] = None
    damage_result: Optional[MemberDamageResult] = None
    ability_contributions: List[AbilityContribution] = Field(default_factory=list)
    skill_effect: Optional[ParsedSkillEffect] = None

    @classmethod
    def empty(cls, index: int) -> "TeamMemberState":
        return cls(index=index, is_reserve=index >= MAIN_TEAM_SIZE)


def empty_roster() -> List[TeamMemberState]:
    return [TeamMemberState.empty(i) for i in range(TOTAL_SLOTS)]


# --- 5. 各阶段结果 ---
class TeamContext(BaseModel):
    by_atk: List[int] = Field(default_factory=list)
    by_speed: List[int] = Field(default_factory=list)
    by_hp: List[int] = Field(default_factory=list)
    all_by_atk: List[int] = Field(default_factory=list)
    attribute_counts: Dict[str, int] = Field(default_factory=lambda: {"divina": 0, "phantasma": 0, "anima": 0})
    present_card_ids: Set[str] = Field(default_factory=set)
    present_assist_ids: Set[str] = Field(default_factory=set)
    leader_card_id: Optional[str] = None


class Phase1Result(BaseModel):
    member_index: int
    effective_level: int = 0
    base_atk: float = 0.0
    base_crit_rate: float = 0.0
    base_speed: float = 0.0
    base_hp: float = 0.0
    atk_bond_bonus: float = 0.0
    skill_bond_bonus: float = 0.0


class Phase3Result(BaseModel):
    member_index: int
    dmg_bonus: float = 0.0
    crit_rate_bonus: float = 0.0
    crit_dmg_bonus: float = 0.0
    skill_dmg_bonus: float = 0.0
    speed_bonus: float = 0.0
    level_bonus: float = 0.0
    hp_bonus: float = 0.0
    normal_dmg_bonus: float = 0.0
    enemy_shield_debuff: float = 0.0
    enemy_defense_debuff: float = 0.0
    ability_contributions: List[AbilityContribution] = Field(default_factory=list)
    enemy_debuff_contributions: List[AbilityContribution] = Field(default_factory=list)


class Phase4Result(BaseModel):
    member_index: int
    computed_stats: ComputedMemberStats = Field(default_factory=ComputedMemberStats)
    damage_result: Optional[MemberDamageResult] = None
    ability_contributions: List[AbilityContribution] = Field(default_factory=list)
    skill_effect: Optional[ParsedSkillEffect] = None


class ResolvedTargets(BaseModel):
    indices: List[int] = Field(default_factory=list)
    scale_factor: float = 1.0  # average 模式下 = 请求数 / 符合条件数


class TeamCalculationResult(BaseModel):
    members: List[Phase4Result]
    team_context: TeamContext
    effective_enemy_shield: float
    effective_enemy_defense: float
    total_normal_dps_expected: int
    total_skill_damage_expected: int
    skill_debuff_total: float
    ability_debuff_total: float
    defense_debuff_total: float
    race_bonus: float
    enemy_debuff_contributions: List[AbilityContribution] = Field(default_factory=list)  # 每个来源槽位一条
