"""
Tests for the score and combo ledger.
"""

import pytest

from gatecloud.gate_core.config_loader import load_config
from gatecloud.gate_core.scoring import REASON_COLLISION, REASON_QUBIT, ComboLedger


@pytest.fixture
def ledger():
    return ComboLedger(load_config(variant="pinball"))


class TestMultiplier:
    """max(1, combo // step)."""

    @pytest.mark.parametrize("combo,expected", [
        (0, 1), (4, 1), (9, 1), (10, 2), (14, 2), (15, 3),
    ])
    def test_multiplier_table(self, ledger, combo, expected):
        assert ledger.multiplier(combo) == expected

    def test_collision_at_combo_seven(self, ledger):
        for _ in range(6):
            ledger.register_collision()
        before = ledger.score

        event = ledger.register_collision()

        assert ledger.combo == 7
        assert event.multiplier == 1
        assert ledger.score - before == 30

    def test_collision_at_combo_twelve(self, ledger):
        for _ in range(11):
            ledger.register_collision()
        before = ledger.score

        event = ledger.register_collision()

        assert ledger.combo == 12
        assert event.points == 60
        assert ledger.score - before == 60

    def test_combo_increments_before_award(self, ledger):
        for _ in range(9):
            ledger.register_collision()
        event = ledger.register_collision()
        # The tenth collision already scores double
        assert event.multiplier == 2


class TestLedger:
    """Accumulation, misses and reset."""

    def test_score_accumulates(self, ledger):
        ledger.award(100, REASON_QUBIT)
        ledger.award(10)
        assert ledger.score == 110
        assert [e.reason for e in ledger.history] == [REASON_QUBIT, REASON_COLLISION]

    def test_negative_points_ignored(self, ledger):
        event = ledger.award(-50)
        assert event.points == 0
        assert ledger.score == 0

    def test_miss_breaks_combo_keeps_max(self, ledger):
        for _ in range(3):
            ledger.register_collision()
        ledger.register_miss()
        assert ledger.combo == 0
        assert ledger.max_combo == 3

    def test_qubit_landing_bonus(self, ledger):
        event = ledger.award_qubit_landing(bounce_count=2)
        assert event.points == 150

    def test_reset(self, ledger):
        for _ in range(12):
            ledger.register_collision()
        ledger.reset()
        assert ledger.score == 0
        assert ledger.combo == 0
        assert ledger.max_combo == 0
        assert ledger.history == []

    def test_disabled_ledger_awards_nothing(self):
        ledger = ComboLedger(load_config())
        assert not ledger.enabled
        event = ledger.register_collision()
        assert event.points == 0
        assert ledger.score == 0
        assert ledger.combo == 1
