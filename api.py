# api.py
import json
import logging
import os
import re

from fastapi import Body, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from models import (
    Attribute, DamageInput, EnemyAttribute, ExportedTeam, HeatmapRequest, RandomTargetMode, TeamCalculationRequest,
)
from teamcalc.catalog import load_catalog, load_json
from teamcalc.engine.analyzer import StatIncrementAnalyzer
from teamcalc.engine.calculator import DamageCalculator
from teamcalc.engine.team_types import BOND_SLOT_LABELS, MAIN_TEAM_SIZE, TOTAL_SLOTS
from teamcalc.state import TeamState

logger = logging.getLogger(__name__)

app = FastAPI(title="Team Damage Calc API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- 路径配置 ---
CARDS_PATH = os.environ.get("TEAMCALC_CARDS_PATH", "data/cards.json")
TEAMS_DIR = os.environ.get("TEAMCALC_TEAMS_DIR", "data/teams")

TEAM_NAME_RE = re.compile(r"^[\w\-]+$")


def save_json(path, data):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


def team_path(name: str) -> str:
    if not TEAM_NAME_RE.match(name):
        raise HTTPException(status_code=400, detail=f"Invalid team name: {name}")
    return os.path.join(TEAMS_DIR, f"{name}.json")


@app.get("/api/meta")
async def get_meta_data():
    """下拉框选项与引擎常量"""
    return {
        "attributes": [a.value for a in Attribute],
        "enemy_attributes": [a.value for a in EnemyAttribute],
        "bond_slots": [{"value": k.value, "label": v} for k, v in BOND_SLOT_LABELS.items()],
        "random_target_modes": [m.value for m in RandomTargetMode],
        "team": {"main": MAIN_TEAM_SIZE, "total": TOTAL_SLOTS},
        "limits": {
            "max_limit_break": DamageCalculator.MAX_LB,
            "damage_cap_normal": DamageCalculator.DAMAGE_CAP_NORMAL,
            "damage_cap_skill": DamageCalculator.DAMAGE_CAP_SKILL,
            "shield_max": DamageCalculator.SHIELD_MAX,
            "shield_min": DamageCalculator.SHIELD_MIN,
        },
    }


@app.get("/api/cards/list")
async def get_card_list():
    catalog = load_catalog(CARDS_PATH)
    return [{"id": k, "label": card.name or k} for k, card in catalog.items()]


@app.get("/api/cards/{card_id}")
async def get_card_detail(card_id: str):
    catalog = load_catalog(CARDS_PATH)
    if card_id not in catalog:
        raise HTTPException(status_code=404, detail=f"Card {card_id} not found")
    return catalog[card_id].model_dump()


@app.post("/api/team/calculate")
async def calculate_team(req: TeamCalculationRequest):
    catalog = load_catalog(CARDS_PATH)
    state = TeamState()
    state.apply_exported(req.team)
    state.set_random_target_mode(req.random_target_mode)
    state.set_world_boss_bonus(req.world_boss_bonus)
    state.set_healers_dont_attack(req.healers_dont_attack)
    try:
        result = state.recalculate(catalog)
    except Exception as e:
        logger.exception("Team calculation failed")
        raise HTTPException(status_code=500, detail=str(e))
    return result.model_dump(mode="json")


@app.post("/api/team/validate")
async def validate_team(data: dict = Body(...)):
    """校验导入数据；未知卡牌只作提示，不算错误"""
    try:
        team = ExportedTeam.model_validate(data)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=json.loads(e.json()))

    catalog = load_catalog(CARDS_PATH)
    unknown = []
    for m in team.members:
        for card_id in (m.cardId, m.assistCardId):
            if card_id and card_id not in catalog:
                unknown.append(card_id)
    return {"valid": True, "members": len(team.members), "unknown_cards": unknown}


@app.get("/api/teams/{name}")
async def get_team(name: str):
    data = load_json(team_path(name))
    if data is None:
        raise HTTPException(status_code=404, detail=f"Team {name} not found")
    return data


@app.post("/api/teams/{name}")
async def save_team(name: str, team: ExportedTeam):
    """保存队伍配置 (导出格式)"""
    path = team_path(name)
    state = TeamState()
    state.apply_exported(team)
    save_json(path, json.loads(state.export_team()))
    return {"status": "success"}


@app.post("/api/damage/compare")
async def compare_stats(data: DamageInput):
    base = DamageCalculator.calculate_damage(data)
    return {
        "base": base.model_dump(),
        "increments": StatIncrementAnalyzer.compare(data),
    }


@app.post("/api/damage/heatmap")
async def damage_heatmap(req: HeatmapRequest):
    try:
        grid = StatIncrementAnalyzer.generate_heatmap(req.base, req.x_stat, req.y_stat, req.x_values, req.y_values)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return [[cell.model_dump() for cell in row] for row in grid]


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
