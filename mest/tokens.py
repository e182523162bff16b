"""
Token and marker ledger.

Each (model, token type) entry keeps two counts: tokens that last until
removed and tokens that expire at the next turn boundary. Which one a
plain add lands in comes from the token's rules duration.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .errors import UnknownModelError
from .rules import RulesConfig

logger = logging.getLogger(__name__)


class TokenKind(Enum):
    DONE = "done"
    WAIT = "wait"
    HIDDEN = "hidden"
    WOUND = "wound"
    DELAY = "delay"
    FEAR = "fear"
    KO = "ko"
    ELIMINATED = "eliminated"
    OUT_OF_AMMO = "outOfAmmo"


HINDRANCE_KINDS = (TokenKind.WOUND, TokenKind.DELAY, TokenKind.FEAR)
OUT_OF_ACTION = (TokenKind.KO, TokenKind.ELIMINATED)


@dataclass
class TokenEntry:
    model_id: str
    kind: TokenKind
    permanent: int = 0
    this_turn: int = 0

    @property
    def count(self) -> int:
        return self.permanent + self.this_turn


class TokenLedger:
    """
    Per-model token counts.

    `known_models` (usually the roster) lets the ledger reject commands
    against models that do not exist instead of silently creating entries.
    """

    def __init__(self, rules: Optional[RulesConfig] = None, known_models=None):
        self.rules = rules or RulesConfig()
        self.known_models = known_models
        self.entries: dict[str, dict[TokenKind, TokenEntry]] = {}
        self.listeners: list[Callable[[str, TokenKind, int], None]] = []

    def _check_model(self, model_id: str):
        if self.known_models is not None and model_id not in self.known_models:
            raise UnknownModelError(model_id)

    def spec(self, kind: TokenKind):
        return self.rules.tokens[kind.value]

    def subscribe(self, listener: Callable[[str, TokenKind, int], None]):
        """Call listener(model_id, kind, new_count) after every change."""
        self.listeners.append(listener)

    def _notify(self, model_id: str, kind: TokenKind):
        new_count = self.count(model_id, kind)
        for listener in self.listeners:
            listener(model_id, kind, new_count)

    def add_token(
        self,
        model_id: str,
        kind: TokenKind | str,
        count: int = 1,
        until_end_of_turn: Optional[bool] = None,
    ) -> int:
        """Add tokens and return the new count. Markers never exceed one."""
        kind = TokenKind(kind)
        self._check_model(model_id)
        if count < 1:
            raise ValueError(f"Token count must be positive, got {count}")

        spec = self.spec(kind)
        model_entries = self.entries.setdefault(model_id, {})
        entry = model_entries.get(kind) or TokenEntry(model_id, kind)
        if not spec.stackable:
            if entry.count >= 1:
                return entry.count
            count = 1

        turn_scoped = spec.turn_scoped if until_end_of_turn is None else until_end_of_turn
        if turn_scoped:
            entry.this_turn += count
        else:
            entry.permanent += count
        model_entries[kind] = entry
        logger.debug(f"{model_id}: +{count} {kind.value} -> {entry.count}")
        self._notify(model_id, kind)
        return entry.count

    def remove_token(self, model_id: str, kind: TokenKind | str, count: int = 1) -> int:
        """Remove tokens (turn-scoped first), flooring at zero."""
        kind = TokenKind(kind)
        self._check_model(model_id)
        entry = self.entries.get(model_id, {}).get(kind)
        if entry is None:
            return 0
        from_turn = min(count, entry.this_turn)
        entry.this_turn -= from_turn
        entry.permanent = max(0, entry.permanent - (count - from_turn))
        if entry.count == 0:
            self._drop(model_id, kind)
        self._notify(model_id, kind)
        return self.count(model_id, kind)

    def _drop(self, model_id: str, kind: TokenKind):
        model_entries = self.entries.get(model_id)
        if model_entries is None:
            return
        model_entries.pop(kind, None)
        if not model_entries:
            del self.entries[model_id]

    def count(self, model_id: str, kind: TokenKind | str) -> int:
        entry = self.entries.get(model_id, {}).get(TokenKind(kind))
        return entry.count if entry else 0

    def has(self, model_id: str, kind: TokenKind | str) -> bool:
        return self.count(model_id, kind) > 0

    def is_out_of_action(self, model_id: str) -> bool:
        return any(self.has(model_id, k) for k in OUT_OF_ACTION)

    def get_token_counts(self, model_id: str) -> dict[str, int]:
        self._check_model(model_id)
        return {
            kind.value: entry.count
            for kind, entry in self.entries.get(model_id, {}).items()
            if entry.count > 0
        }

    def clear_tokens(self, model_id: str):
        self._check_model(model_id)
        kinds = list(self.entries.get(model_id, {}))
        self.entries.pop(model_id, None)
        for kind in kinds:
            self._notify(model_id, kind)

    def clear_all(self):
        cleared = [(mid, kind) for mid, entries in self.entries.items() for kind in entries]
        self.entries.clear()
        for model_id, kind in cleared:
            self._notify(model_id, kind)

    def start_new_turn(self) -> list[tuple[str, TokenKind]]:
        """Purge every turn-scoped count. Returns the entries that changed."""
        changed = []
        for model_id in list(self.entries):
            for kind, entry in list(self.entries[model_id].items()):
                if entry.this_turn == 0:
                    continue
                entry.this_turn = 0
                changed.append((model_id, kind))
                if entry.count == 0:
                    self._drop(model_id, kind)
        for model_id, kind in changed:
            self._notify(model_id, kind)
        return changed
