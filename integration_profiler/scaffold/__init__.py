"""Engagement scaffolding: planning, materializing, pruning and templating."""

from .core import ScaffoldManager
from .planner import ClusterPlan, plan_cluster, plan_engagement
from .templates import TemplateStore

__all__ = [
    "ClusterPlan",
    "ScaffoldManager",
    "TemplateStore",
    "plan_cluster",
    "plan_engagement",
]
