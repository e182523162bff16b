"""
LLM tactical agent using OpenAI (gpt-4o).

The model is shown the situation and the scorer's legal actions and picks
one by index. Anything that goes wrong with the call or the reply falls
back to the heuristic choice.
"""

import json
import logging
from typing import Optional

from openai import OpenAI, OpenAIError

from mest.models import Model
from mest.session import BattleSession

from .base import Action, AgentConfig, TacticalAgent
from .heuristic import ActionScorer

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You command one side in a MEST QSR skirmish on a square battlefield measured in MU.

Each model has 2 AP per turn, less one per Delay token. Moving costs 1 AP per MU in the open,
2 in rough ground, 3 in difficult ground. Close combat needs base contact (1 MU), ranged combat
needs line of sight within 24 MU and is not allowed while engaged. Cover (hard, soft, partial)
makes ranged attacks harder. High ground gives +1 to hit.

Victory points come from objectives, eliminating more BP than you lose, pushing half your force
past the centre line, and keeping your models in good order.

You are given the legal actions for one model. Choose exactly one by its index."""


class LLMAgent(TacticalAgent):
    """Agent that asks an LLM to choose among the legal actions."""

    def __init__(self, config: AgentConfig, client=None):
        super().__init__(config)
        self.client = client or OpenAI()  # Uses OPENAI_API_KEY env var
        self.scorer = ActionScorer(config.profile)
        self.last_reasoning: Optional[str] = None
        self.fallbacks = 0

    @property
    def choice_schema(self) -> dict:
        return {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "reasoning": {
                    "type": "string",
                    "description": "One or two sentences on why this action"
                },
                "action_index": {"type": "integer"}
            },
            "required": ["reasoning", "action_index"]
        }

    def _build_situation_prompt(self, session: BattleSession, model: Model, actions: list[Action]) -> str:
        h = session.get_hindrances(model.id)
        prompt = f"""
## TURN {session.current_turn} - {self.side.value.upper()} ({self.config.profile})

### ACTIVE MODEL
`{model.identifier}` at ({model.position.x:.1f}, {model.position.y:.1f}), AP left {session.available_ap(model.id):g}
Fear {h.fear}, Delay {h.delay}, Wounds {h.wounds} / SIZ {model.profile.siz}
"""
        prompt += "\n### ENEMIES\n"
        for enemy in session.enemies_of(model):
            distance = model.position.distance_to(enemy.position)
            prompt += f"  - `{enemy.id}` ({enemy.identifier}) at {distance:.1f} MU, status {enemy.status or ['Ordered']}\n"

        vp = {side.value: session.victory.current_vp(side) for side in session.starting_counts}
        prompt += f"\n### SCORE\n{vp}\n"

        prompt += "\n### LEGAL ACTIONS\n"
        for i, action in enumerate(actions):
            prompt += f"  {i}. {action.describe()} (AP {action.cost}, heuristic score {action.score})\n"
        return prompt

    def choose_action(self, session: BattleSession, model: Model) -> Action:
        actions = self.scorer.scored(session, model)
        fallback = self.scorer.best(actions)
        if len(actions) == 1:
            return actions[0]

        try:
            response = self.client.chat.completions.create(
                model=self.config.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": self._build_situation_prompt(session, model, actions)},
                ],
                response_format={
                    "type": "json_schema",
                    "json_schema": {
                        "name": "tactical_choice",
                        "schema": self.choice_schema,
                        "strict": True
                    }
                },
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
            )
            choice = json.loads(response.choices[0].message.content)
            index = int(choice["action_index"])
            if not 0 <= index < len(actions):
                raise ValueError(f"action index {index} out of range")
        except (OpenAIError, ValueError, KeyError, TypeError) as e:
            self.fallbacks += 1
            logger.error(f"{self.side.value} LLM choice failed for {model.identifier}: {e}; using heuristic")
            return fallback

        self.last_reasoning = choice.get("reasoning")
        return actions[index]

    @classmethod
    def create_default(cls, side: str, profile: Optional[str] = None) -> "LLMAgent":
        return cls(AgentConfig(side=side, profile=profile or "aggressive"))
