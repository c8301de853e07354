"""Agentic editing pipeline (perception, planning, generation, orchestration)."""

from .generation import ContentGenerator, GeneratedContent
from .orchestrator import AgentOrchestrator, AgentReply, AgentRequest, AgentResponse
from .perception import Perception, PerceptionAgent
from .planning import ExecutionPlan, PlanningAgent

__all__ = [
    "AgentOrchestrator",
    "AgentReply",
    "AgentRequest",
    "AgentResponse",
    "ContentGenerator",
    "ExecutionPlan",
    "GeneratedContent",
    "Perception",
    "PerceptionAgent",
    "PlanningAgent",
]
