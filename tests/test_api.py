"""
HTTP 接口测试 (FastAPI TestClient)
"""
import pytest


class TestMetaAndCards:
    def test_meta(self, client):
        res = client.get("/api/meta")
        assert res.status_code == 200
        data = res.json()
        assert "Divina" in data["attributes"]
        assert data["team"] == {"main": 5, "total": 7}
        assert {"value": "atk7", "label": "+7.5% ATK"} in data["bond_slots"]

    def test_card_list(self, client):
        res = client.get("/api/cards/list")
        assert res.status_code == 200
        assert {"id": "c1", "label": "Card c1"} in res.json()

    def test_card_detail(self, client):
        res = client.get("/api/cards/c2")
        assert res.status_code == 200
        assert res.json()["stats"]["attribute_name"] == "Anima"

    def test_unknown_card(self, client):
        assert client.get("/api/cards/nope").status_code == 404


class TestTeamCalculation:
    def test_calculate(self, client, exported_team):
        res = client.post("/api/team/calculate", json={"team": exported_team, "random_target_mode": "best"})
        assert res.status_code == 200
        data = res.json()
        assert data["total_normal_dps_expected"] > 0
        assert len(data["members"]) == 7
        # c3 的减盾 15%，基础护盾 30%
        assert data["effective_enemy_shield"] == pytest.approx(0.15)
        assert sorted(data["team_context"]["present_card_ids"]) == ["c1", "c2", "c3"]

    def test_world_boss_passed_through(self, client, exported_team):
        res = client.post("/api/team/calculate", json={"team": exported_team, "world_boss_bonus": 2.0})
        member = res.json()["members"][0]
        assert member["damage_result"]["breakdown"]["world_boss_mult"] == 2.0

    def test_calculate_rejects_bad_team(self, client, exported_team):
        exported_team["members"][0]["limitBreak"] = 9
        res = client.post("/api/team/calculate", json={"team": exported_team})
        assert res.status_code == 422

    def test_validate(self, client, exported_team):
        exported_team["members"][1]["cardId"] = "ghost"
        res = client.post("/api/team/validate", json=exported_team)
        assert res.status_code == 200
        assert res.json() == {"valid": True, "members": 3, "unknown_cards": ["ghost"]}

    def test_validate_invalid(self, client):
        res = client.post("/api/team/validate", json={"version": 3, "members": []})
        assert res.status_code == 400


class TestSavedTeams:
    def test_save_and_load(self, client, exported_team):
        assert client.post("/api/teams/raid1", json=exported_team).json() == {"status": "success"}
        res = client.get("/api/teams/raid1")
        assert res.status_code == 200
        data = res.json()
        assert len(data["members"]) == 7
        assert data["members"][0]["cardId"] == "c1"
        assert data["enemy"]["baseShield"] == 0.3

    def test_missing_team(self, client):
        assert client.get("/api/teams/none_here").status_code == 404

    def test_bad_name(self, client, exported_team):
        assert client.post("/api/teams/a.b", json=exported_team).status_code == 400


class TestDamageTools:
    def test_compare(self, client):
        body = {"base_atk": 10000, "max_atk": 10000, "max_level": 1, "base_speed": 150}
        res = client.post("/api/damage/compare", json=body)
        assert res.status_code == 200
        data = res.json()
        assert data["base"]["normal_dps"] == 1000
        assert len(data["increments"]) == 6

    def test_heatmap(self, client):
        body = {"base": {"base_atk": 10000, "max_atk": 10000, "max_level": 1, "base_speed": 150},
                "x_values": [0, 1], "y_values": [0]}
        res = client.post("/api/damage/heatmap", json=body)
        assert res.status_code == 200
        assert [c["dps"] for c in res.json()[0]] == [1000, 2000]

    def test_heatmap_unknown_stat(self, client):
        body = {"base": {"base_atk": 1, "max_atk": 1, "max_level": 1}, "x_stat": "luck"}
        assert client.post("/api/damage/heatmap", json=body).status_code == 400
