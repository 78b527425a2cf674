"""Data models for Integration Profiler."""
from integration_profiler.models.cluster import (
    ClusterSpec,
    ConfigVariant,
    Scheduler,
    SubmissionType,
    slugify,
)
from integration_profiler.models.engagement import Engagement, load_engagement

__all__ = [
    'ClusterSpec',
    'ConfigVariant',
    'Engagement',
    'Scheduler',
    'SubmissionType',
    'load_engagement',
    'slugify',
]
