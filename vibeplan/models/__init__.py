"""
VibePlan — ORM model registry.

Importing every model here ensures that Alembic (and any other tool that
inspects ``Base.metadata``) discovers all tables automatically.
"""

from vibeplan.models.session import PlanSession, ParticipantRow
from vibeplan.models.match import MatchRow
from vibeplan.models.catalogue import VibeRow, RecommendationRow

__all__ = [
    "PlanSession",
    "ParticipantRow",
    "MatchRow",
    "VibeRow",
    "RecommendationRow",
]
