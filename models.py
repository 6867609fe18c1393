# models.py
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Dict, Optional, Literal
from enum import Enum


# --- 0. 枚举定义 ---
class Attribute(str, Enum):
    Divina = "Divina"
    Phantasma = "Phantasma"
    Anima = "Anima"
    Neutral = "Neutral"


class EnemyAttribute(str, Enum):
    # 敌人属性，None 表示关闭种族克制
    Null = "None"
    Divina = "Divina"
    Phantasma = "Phantasma"
    Anima = "Anima"


class BondSlot(str, Enum):
    Empty = "none"
    Atk5 = "atk5"
    Atk7 = "atk7"
    Skill5 = "skill5"
    Skill7 = "skill7"


class BondType(str, Enum):
    # 旧版羁绊类型，仅用于兼容旧存档
    Empty = "none"
    Atk15 = "atk15"
    Skill15 = "skill15"
    Atk10 = "atk10"
    Skill10 = "skill10"
    Atk7 = "atk7"
    Skill7 = "skill7"
    Atk5 = "atk5"
    Skill5 = "skill5"
    Split5 = "split5"
    Split7 = "split7"


class RandomTargetMode(str, Enum):
    Average = "average"
    First = "first"
    Last = "last"
    Best = "best"
    Worst = "worst"


# --- 1. 结构化解析数据 (数据管线产出) ---
class ParsedTarget(BaseModel):
    type: str = Field(default="self", description="self / team / attribute / ranked / enemy / current_target / ally")
    count: int = 1
    filter: Optional[str] = None

    @field_validator('count', mode='before')
    @classmethod
    def clean_count(cls, v):
        if v is None or v == "": return 1
        return v


class ParsedEffect(BaseModel):
    type: str = Field(..., description="效果类型，如 ATK / CHIT / SHIELD")
    value: float = 0.0  # 0-100 刻度
    scale: float = 0.0  # 每级成长 (技能用)
    duration: Optional[float] = None


class ParsedConditions(BaseModel):
    mns_ids: Optional[List[str]] = None


class AbilityParsed(BaseModel):
    target: Optional[ParsedTarget] = None
    trigger: Optional[str] = None
    effects: List[ParsedEffect] = Field(default_factory=list)
    conditions: Optional[ParsedConditions] = None


class ImmediateEffect(BaseModel):
    type: Optional[str] = None


class SkillParsed(BaseModel):
    target: Optional[ParsedTarget] = None
    effects: List[ParsedEffect] = Field(default_factory=list)
    immediate: Optional[ImmediateEffect] = None
    slv1: float = 0.0
    slvup: float = 0.0


# --- 2. 卡牌组件 ---
class Ability(BaseModel):
    id: str
    name: str = ""
    description: str = ""
    unlock_level: int = 1
    tags: List[str] = Field(default_factory=list)
    stackable: Optional[bool] = None
    synergy_partners: List[str] = Field(default_factory=list)
    parsed: Optional[AbilityParsed] = None

    @field_validator('unlock_level', mode='before')
    @classmethod
    def clean_unlock_level(cls, v):
        # 0 / 空值 视为 1 级解锁
        if not v: return 1
        return v

    @field_validator('tags', 'synergy_partners', mode='before')
    @classmethod
    def clean_list(cls, v):
        return v or []


class Skill(BaseModel):
    id: str = ""
    name: str = ""
    description: str = ""
    tags: List[str] = Field(default_factory=list)
    parsed: Optional[SkillParsed] = None

    @field_validator('tags', mode='before')
    @classmethod
    def clean_tags(cls, v):
        return v or []


class Bond(BaseModel):
    id: str = ""
    target_id: str = ""
    type: str = ""  # 'Attack' / 'Skill' / 'HP' ...
    effect: str = ""
    bonus_percent: float = 0.0
    name: str = ""


class CardStats(BaseModel):
    attribute: int = 4
    attribute_name: str = "Neutral"
    type: int = 1
    type_name: str = "Melee"
    rarity: int = 1
    cost: int = 0
    max_level: int = 1
    speed: float = 0.0
    base_atk: float = 0.0
    max_atk: float = 0.0
    base_hp: float = 0.0
    max_hp: float = 0.0
    crit: float = 0.0  # 基点 (10000 = 100%)


class Card(BaseModel):
    id: str
    name: Optional[str] = None
    description: Optional[str] = None
    stats: CardStats = Field(default_factory=CardStats)
    skill: Optional[Skill] = None
    abilities: List[Ability] = Field(default_factory=list)
    bonds: List[Bond] = Field(default_factory=list)

    @field_validator('abilities', 'bonds', mode='before')
    @classmethod
    def clean_list(cls, v):
        return v or []


# --- 3. 队伍导出格式 (version 1) ---
class ExportedMember(BaseModel):
    cardId: Optional[str] = None
    cardName: Optional[str] = None
    assistCardId: Optional[str] = None
    assistCardName: Optional[str] = None
    limitBreak: int = Field(default=4, ge=0, le=4)
    levelBonus: int = Field(default=0, ge=0, le=30)
    bond1: BondSlot = BondSlot.Empty
    bond2: BondSlot = BondSlot.Empty
    bond3: BondSlot = BondSlot.Empty
    skillActive: bool = False

    @field_validator('limitBreak', 'levelBonus', 'bond1', 'bond2', 'bond3', 'skillActive', mode='before')
    @classmethod
    def drop_null(cls, v, info):
        # null 与缺省同义
        if v is None:
            return cls.model_fields[info.field_name].default
        return v


class ExportedEnemy(BaseModel):
    baseShield: float = 0.0
    baseDefense: float = 0.0
    isFinalWave: bool = False
    waveCount: int = 1
    attribute: EnemyAttribute = EnemyAttribute.Null
    ignoreShieldCap: bool = False

    @field_validator('baseShield', 'baseDefense', 'isFinalWave', 'waveCount', 'attribute', 'ignoreShieldCap',
                     mode='before')
    @classmethod
    def drop_null(cls, v, info):
        if v is None:
            return cls.model_fields[info.field_name].default
        return v


class ExportedTeam(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    version: Literal[1] = 1
    members: List[ExportedMember]
    enemy: ExportedEnemy = Field(default_factory=ExportedEnemy)
    abilityTargetOverrides: Optional[Dict[str, List[int]]] = None


# --- 4. API 请求体 ---
class TeamCalculationRequest(BaseModel):
    team: ExportedTeam
    random_target_mode: RandomTargetMode = RandomTargetMode.Average
    world_boss_bonus: float = 1.0
    healers_dont_attack: bool = True


class DamageInput(BaseModel):
    """单卡伤害计算输入 (百分比均为小数, 0.1 = 10%)"""
    base_atk: float
    max_atk: float
    max_level: int
    base_crit: float = 0.0
    base_speed: float = 0.0
    skill_slv1: float = 0.0
    skill_slvup: float = 0.0
    limit_break: int = 0
    dmg_percent: float = 0.0
    normal_dmg_percent: float = 0.0
    crit_rate_bonus: float = 0.0
    crit_dmg_bonus: float = 0.0
    skill_dmg_percent: float = 0.0
    speed_bonus: float = 0.0
    level_bonus: int = 0
    skill_crit_rate_bonus: float = 0.0
    skill_crit_dmg_bonus: float = 0.0
    enemy_shield_debuff: float = 0.0  # 敌方护盾值，负数 = 易伤
    ignore_shield_cap: bool = False


class DamageResult(BaseModel):
    effective_level: int
    display_atk: float
    effective_atk: float
    effective_crit_rate: float
    effective_crit_mult: float
    expected_crit_mult: float
    skill_crit_rate: float
    skill_crit_mult: float
    attack_interval: float
    exceed_mult: float

    normal_damage: int
    normal_damage_crit: int
    normal_damage_expected: int
    normal_damage_capped: bool
    normal_dps: int

    skill_base_damage: float
    skill_damage: int
    skill_damage_crit: int
    skill_damage_expected: int
    skill_damage_capped: bool

    raw_multiplier: float


class HeatmapRequest(BaseModel):
    base: DamageInput
    x_stat: str = "dmg"
    y_stat: str = "crit_rate"
    x_values: List[float] = Field(default_factory=lambda: [0.0, 0.25, 0.5, 0.75, 1.0])
    y_values: List[float] = Field(default_factory=lambda: [0.0, 0.25, 0.5, 0.75, 1.0])


class HeatmapCell(BaseModel):
    x: float
    y: float
    dps: int
    skill_damage: int
    capped: bool = False
