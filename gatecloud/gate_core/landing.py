"""
Landing & Zone Resolution
=========================

Decides where a token that crossed the landing line ends up: on a qubit,
in the dustbin, or nowhere.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from gatecloud.gate_core.config_loader import GameConfig, get_config
from gatecloud.gate_core.entities import Dustbin, FallingToken, QubitZone
from gatecloud.gate_core.scoring import ComboLedger, ScoreEvent

logger = logging.getLogger(__name__)

OUTCOME_QUBIT = "qubit"
OUTCOME_DUSTBIN = "dustbin"
OUTCOME_MISS = "miss"


@dataclass
class LandingResult:
    """Outcome of one landing."""
    token_uid: int
    gate: str
    outcome: str
    zone_id: Optional[str]
    position: tuple
    label: Optional[str] = None          # New qubit label for qubit landings
    score_event: Optional[ScoreEvent] = None

    @property
    def is_miss(self) -> bool:
        return self.outcome == OUTCOME_MISS


class LandingResolver:
    """
    Resolves landings against the current zone spans.

    Qubits are tested in registration order and the first match wins; the
    dustbin is only considered when no qubit matches.
    """

    def __init__(
        self,
        config: Optional[GameConfig] = None,
        ledger: Optional[ComboLedger] = None
    ):
        """
        Initialize landing resolver.

        Args:
            config: Game configuration. Uses default if None.
            ledger: Score ledger for landing bonuses (pinball).
        """
        if config is None:
            config = get_config()

        self._config = config
        self._ledger = ledger
        self._landing_y = config.board.landing_y

    @property
    def landing_y(self) -> float:
        return self._landing_y

    @landing_y.setter
    def landing_y(self, value: float) -> None:
        self._landing_y = float(value)

    def has_landed(self, token: FallingToken) -> bool:
        return token.y > self._landing_y

    def find_zone(
        self,
        x: float,
        qubits: Sequence[QubitZone],
        dustbin: Optional[Dustbin]
    ) -> str:
        """
        Classify a horizontal position.

        Returns:
            A qubit id, "dustbin", or "" for a miss.
        """
        for qubit in qubits:
            if qubit.span is not None and qubit.span.contains(x):
                return qubit.id
        if dustbin is not None and dustbin.span is not None and dustbin.span.contains(x):
            return dustbin.id
        return ""

    def resolve(
        self,
        token: FallingToken,
        qubits: Sequence[QubitZone],
        dustbin: Optional[Dustbin]
    ) -> LandingResult:
        """
        Resolve a landed token and apply its outcome.

        Args:
            token: The token that crossed the landing line.
            qubits: Qubit zones in registration order.
            dustbin: The dustbin, if any.

        Returns:
            LandingResult describing the single outcome.
        """
        scoring = self._ledger is not None and self._config.is_pinball

        zone_id = self.find_zone(token.x, qubits, dustbin)

        for qubit in qubits:
            if qubit.id == zone_id:
                label = qubit.apply(token.gate)
                score_event = None
                if scoring:
                    score_event = self._ledger.award_qubit_landing(token.bounce_count)
                logger.debug("Gate %s applied to %s -> %s", token.gate, qubit.id, label)
                return LandingResult(
                    token_uid=token.uid,
                    gate=token.gate,
                    outcome=OUTCOME_QUBIT,
                    zone_id=qubit.id,
                    position=token.position,
                    label=label,
                    score_event=score_event
                )

        if dustbin is not None and zone_id == dustbin.id:
            dustbin.dispose(token.gate)
            score_event = self._ledger.award_dustbin() if scoring else None
            logger.debug("Gate %s disposed in dustbin", token.gate)
            return LandingResult(
                token_uid=token.uid,
                gate=token.gate,
                outcome=OUTCOME_DUSTBIN,
                zone_id=dustbin.id,
                position=token.position,
                score_event=score_event
            )

        if scoring:
            self._ledger.register_miss()
        logger.debug("Gate %s missed all targets at x=%.1f", token.gate, token.x)
        return LandingResult(
            token_uid=token.uid,
            gate=token.gate,
            outcome=OUTCOME_MISS,
            zone_id=None,
            position=token.position
        )

