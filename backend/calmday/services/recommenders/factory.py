"""Recommender factory."""
from __future__ import annotations

import logging
from functools import lru_cache

from calmday.core.config import settings
from calmday.services.recommenders.base import Recommender

logger = logging.getLogger(__name__)


@lru_cache
def get_recommender() -> Recommender | None:
    """
    Return the configured external recommender, or None for rule-based only.

    The rule-based path is always available as the generator's fallback, so it is
    never returned here.
    """
    provider = settings.recommender_provider.lower()
    if provider == "openai":
        if not settings.openai_api_key:
            logger.warning("RECOMMENDER_PROVIDER=openai but OPENAI_API_KEY is missing; using rule-based activities.")
            return None
        from calmday.services.recommenders.openai_recommender import OpenAIRecommender

        return OpenAIRecommender(
            api_key=settings.openai_api_key,
            model=settings.recommender_model,
            timeout_seconds=settings.recommender_timeout_seconds,
        )
    if provider not in {"rule_based", "none"}:
        logger.warning("Unknown recommender provider %r; using rule-based activities.", provider)
    return None
