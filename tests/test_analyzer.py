import pytest

from models import DamageInput
from teamcalc.engine.analyzer import StatIncrementAnalyzer
from teamcalc.engine.calculator import DamageCalculator


@pytest.fixture
def base_input():
    return DamageInput(base_atk=10000, max_atk=10000, max_level=1, base_crit=0, base_speed=150,
                       skill_slv1=5000, skill_slvup=100)


class TestCompare:
    def test_all_increments_reported(self, base_input):
        results = StatIncrementAnalyzer.compare(base_input)
        assert [r["key"] for r in results] == list(StatIncrementAnalyzer.STAT_INCREMENTS)

    def test_dmg_increment(self, base_input):
        dmg = {r["key"]: r for r in StatIncrementAnalyzer.compare(base_input)}["dmg"]
        assert dmg["new_dps"] == 1100
        assert dmg["dps_gain"] == 100
        assert dmg["dps_gain_pct"] == pytest.approx(0.1)
        assert dmg["skill_gain"] == 500

    def test_speed_does_not_change_skill(self, base_input):
        speed = {r["key"]: r for r in StatIncrementAnalyzer.compare(base_input)}["speed"]
        assert speed["dps_gain"] > 0
        assert speed["skill_gain"] == 0

    def test_level_raises_skill_damage(self, base_input):
        level = {r["key"]: r for r in StatIncrementAnalyzer.compare(base_input)}["level"]
        assert level["skill_gain"] == 500
        assert level["dps_gain"] == 0

    def test_zero_baseline(self):
        zero = DamageInput(base_atk=0, max_atk=0, max_level=1)
        for r in StatIncrementAnalyzer.compare(zero):
            assert r["dps_gain_pct"] == 0.0
            assert r["skill_gain_pct"] == 0.0

    def test_print_report(self, base_input, capsys):
        StatIncrementAnalyzer.print_report(StatIncrementAnalyzer.compare(base_input))
        out = capsys.readouterr().out
        assert "增伤" in out
        assert "+5" in out


class TestHeatmap:
    def test_grid_shape_and_values_are_set(self, base_input):
        base = base_input.model_copy(update={"dmg_percent": 0.9})
        grid = StatIncrementAnalyzer.generate_heatmap(base, "dmg", "crit_rate", [0.0, 0.5], [0.0, 0.5, 1.0])
        assert len(grid) == 3
        assert len(grid[0]) == 2
        origin = grid[0][0]
        assert (origin.x, origin.y) == (0.0, 0.0)
        assert origin.dps == DamageCalculator.calculate_damage(base_input).normal_dps
        assert grid[0][1].dps == 1500
        assert grid[2][0].dps == 2000

    def test_unknown_stat(self, base_input):
        with pytest.raises(ValueError):
            StatIncrementAnalyzer.generate_heatmap(base_input, "luck", "dmg", [0.0], [0.0])
