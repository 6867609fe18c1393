import json

from main import main, run_team


def test_run_team(tmp_path, cards_file, exported_team):
    team_path = tmp_path / "team.json"
    team_path.write_text(json.dumps(exported_team), encoding="utf-8")
    state = run_team(str(team_path), str(cards_file))
    assert state.last_result.total_normal_dps_expected > 0
    assert state.members[0].card.id == "c1"


def test_cli_report(tmp_path, cards_file, exported_team, capsys):
    team_path = tmp_path / "team.json"
    team_path.write_text(json.dumps(exported_team), encoding="utf-8")
    assert main([str(team_path), "--cards", str(cards_file), "--mode", "best"]) == 0
    out = capsys.readouterr().out
    assert "全队 DPS" in out
    assert "Card c1" in out


def test_cli_missing_team(tmp_path, cards_file):
    assert main([str(tmp_path / "none.json"), "--cards", str(cards_file)]) == 1


def test_cli_invalid_team(tmp_path, cards_file):
    team_path = tmp_path / "team.json"
    team_path.write_text(json.dumps({"version": 9, "members": []}), encoding="utf-8")
    assert main([str(team_path), "--cards", str(cards_file)]) == 1


def test_cli_report_lists_enemy_debuff_sources(tmp_path, cards_file, exported_team, capsys):
    exported_team["enemy"]["baseShield"] = None
    team_path = tmp_path / "team.json"
    team_path.write_text(json.dumps(exported_team), encoding="utf-8")
    assert main([str(team_path), "--cards", str(cards_file)]) == 0
    out = capsys.readouterr().out
    # c3 在 3 号位提供减盾
    assert "(3号位): shield 15.0%" in out
