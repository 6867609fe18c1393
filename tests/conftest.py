"""
Pytest 公共夹具：示例卡牌数据与 API 客户端
"""
import json

import pytest
from fastapi.testclient import TestClient

import api
from tests.factories import make_ability, make_card, make_skill


@pytest.fixture
def sample_cards():
    """三名输出 + 一张辅助卡"""
    return {
        "c1": make_card("c1", "Divina", abilities=[make_ability("team_dmg", stackable=False)],
                        skill=make_skill(target="current_target", immediate="ATK", slv1=5000, slvup=100)),
        "c2": make_card("c2", "Anima", max_atk=9000),
        "c3": make_card("c3", "Phantasma", max_atk=8000,
                        abilities=[make_ability("shield_down", target="enemy", effects=[("SHIELD", -15)])]),
        "a1": make_card("a1", "Divina", card_type=4),
    }


@pytest.fixture
def cards_file(tmp_path, sample_cards):
    path = tmp_path / "cards.json"
    data = {"cards": {k: v.model_dump() for k, v in sample_cards.items()}}
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


@pytest.fixture
def client(tmp_path, cards_file, monkeypatch):
    monkeypatch.setattr(api, "CARDS_PATH", str(cards_file))
    monkeypatch.setattr(api, "TEAMS_DIR", str(tmp_path / "teams"))
    return TestClient(api.app)


@pytest.fixture
def exported_team():
    return {
        "version": 1,
        "members": [
            {"cardId": "c1", "assistCardId": "a1", "limitBreak": 4, "levelBonus": 0,
             "bond1": "atk5", "bond2": "none", "bond3": "none", "skillActive": False},
            {"cardId": "c2", "limitBreak": 4},
            {"cardId": "c3", "limitBreak": 2},
        ],
        "enemy": {"baseShield": 0.3, "baseDefense": 0.0, "isFinalWave": False, "waveCount": 1,
                  "attribute": "None", "ignoreShieldCap": False},
    }
