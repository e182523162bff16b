"""
Hindrance and status tracking.

Fear, delay and wound counts live in the token ledger; this tracker keeps
an index of models carrying any of them and derives their status labels.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .models import ModelRoster
from .tokens import HINDRANCE_KINDS, TokenKind, TokenLedger

logger = logging.getLogger(__name__)

HINDRANCE_ALIASES = {
    "fear": TokenKind.FEAR,
    "delay": TokenKind.DELAY,
    "wound": TokenKind.WOUND,
    "wounds": TokenKind.WOUND,
}

# (count field, threshold, label) in display order
STATUS_THRESHOLDS = [
    ("delay", 1, "Distracted"),
    ("delay", 2, "Stunned"),
    ("fear", 1, "Nervous"),
    ("fear", 2, "Disordered"),
    ("fear", 3, "Panicked"),
    ("wounds", 1, "Wounded"),
]

# Statuses that stop a model counting as Ordered
DISORDERED = {"Disordered", "Panicked"}


@dataclass
class Hindrances:
    fear: int = 0
    delay: int = 0
    wounds: int = 0

    @property
    def is_clear(self) -> bool:
        return self.fear == 0 and self.delay == 0 and self.wounds == 0

    def to_dict(self) -> dict:
        return {"fear": self.fear, "delay": self.delay, "wounds": self.wounds}


def derive_status(h: Hindrances) -> list[str]:
    """Every status whose threshold the counts reach."""
    return [label for attr, threshold, label in STATUS_THRESHOLDS if getattr(h, attr) >= threshold]


def hindrance_kind(name: TokenKind | str) -> TokenKind:
    if isinstance(name, TokenKind):
        kind = name
    else:
        kind = HINDRANCE_ALIASES.get(name)
    if kind not in HINDRANCE_KINDS:
        raise ValueError(f"Not a hindrance type: {name}")
    return kind


class HindranceTracker:
    """Fear/delay/wound counts per model, with derived status labels."""

    def __init__(self, ledger: TokenLedger, roster: Optional[ModelRoster] = None):
        self.ledger = ledger
        self.roster = roster
        self.tracked: dict[str, Hindrances] = {}
        ledger.subscribe(self._on_token_change)

    def _on_token_change(self, model_id: str, kind: TokenKind, new_count: int):
        if kind in HINDRANCE_KINDS:
            self._sync(model_id)

    def _sync(self, model_id: str):
        h = Hindrances(
            fear=self.ledger.count(model_id, TokenKind.FEAR),
            delay=self.ledger.count(model_id, TokenKind.DELAY),
            wounds=self.ledger.count(model_id, TokenKind.WOUND),
        )
        if h.is_clear:
            self.tracked.pop(model_id, None)
        else:
            self.tracked[model_id] = h

        if self.roster is not None:
            model = self.roster.find(model_id)
            if model is not None:
                model.status = derive_status(h)

    def add_hindrance(self, model_id: str, kind: TokenKind | str, count: int = 1) -> Hindrances:
        self.ledger.add_token(model_id, hindrance_kind(kind), count)
        return self.get_hindrances(model_id)

    def remove_hindrance(self, model_id: str, kind: TokenKind | str) -> Hindrances:
        """Remove one token; removing from zero is a no-op."""
        self.ledger.remove_token(model_id, hindrance_kind(kind))
        return self.get_hindrances(model_id)

    def get_hindrances(self, model_id: str) -> Hindrances:
        return self.tracked.get(model_id, Hindrances())

    def get_status(self, model_id: str) -> list[str]:
        return derive_status(self.get_hindrances(model_id))

    def is_ordered(self, model_id: str) -> bool:
        """Ordered means neither Disordered nor Panicked."""
        return not DISORDERED.intersection(self.get_status(model_id))

    def available_ap(self, model_id: str) -> float:
        """
        AP left this turn: the per-turn budget less AP spent and delay.

        Can go negative; callers treat that as zero.
        """
        spent = 0.0
        if self.roster is not None:
            spent = self.roster.get(model_id).ap_spent
        return self.ledger.rules.ap_per_turn - spent - self.get_hindrances(model_id).delay

    def resync(self):
        """Rebuild the index from the ledger after bulk changes."""
        self.tracked.clear()
        for model_id in list(self.ledger.entries):
            self._sync(model_id)
        if self.roster is not None:
            for model in self.roster:
                model.status = self.get_status(model.id)
