"""Pluggable activity recommenders."""

from calmday.services.recommenders.base import Recommender, RecommenderError
from calmday.services.recommenders.rule_based import RuleBasedRecommender

__all__ = ["Recommender", "RecommenderError", "RuleBasedRecommender"]
