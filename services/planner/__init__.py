"""
Planner Service
Generates implementation plans for tickets with an Anthropic model

Components:
- prompt.py: prompt construction and plan document rendering
- generator.py: PlanGenerator client for the Anthropic Messages API
"""

from .generator import GenerationError, GenerationMetrics, PlanGenerator
from .prompt import build_implementation_plan_prompt, render_plan_document

__all__ = [
    "PlanGenerator",
    "GenerationError",
    "GenerationMetrics",
    "build_implementation_plan_prompt",
    "render_plan_document",
]
