"""
leadvalidator/services/scoring.py — Lead qualification threshold.

Applies a project's minimum score to a QualificationResult to decide
whether the lead counts as qualified.
"""

import logging

from leadvalidator.qualification.engine import QualificationResult

logger = logging.getLogger(__name__)


def is_lead_qualified(result: QualificationResult, min_score: int = 70) -> bool:
    """
    Determine if a lead passes the project's qualification threshold.

    A lead is qualified if BOTH:
      1. Its score meets or exceeds `min_score`
      2. It was not classified as spam

    Args:
        result:    The QualificationResult from the scoring engine.
        min_score: The project's minimum score (0–100).

    Returns:
        True if the lead should be treated as a genuine prospect.
    """
    passes_score = result.score >= min_score

    if result.is_spam:
        logger.debug("Lead rejected — classified as spam (score=%d).", result.score)
    elif not passes_score:
        logger.debug(
            "Lead rejected — score %d below threshold %d.",
            result.score, min_score,
        )
    else:
        logger.debug("Lead qualified — score=%d, threshold=%d.", result.score, min_score)

    return passes_score and not result.is_spam
