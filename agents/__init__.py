"""
Tactical agents for MEST QSR missions.

The heuristic agent plays the action scorer's top choice; the LLM agent
uses OpenAI (gpt-4o) to pick among the same legal actions.
"""

from .base import Action, ActionKind, AgentConfig, TacticalAgent
from .heuristic import ActionScorer, HeuristicAgent
from .llm import LLMAgent

__all__ = [
    "Action", "ActionKind", "AgentConfig", "TacticalAgent",
    "ActionScorer", "HeuristicAgent", "LLMAgent",
]
