from typing import Dict, Optional, Tuple
from config.config import Config


def validate_score(value, label: str) -> Tuple[bool, Optional[str]]:
    """Validate a 0-10 score in 0.5 increments"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False, f"{label} must be a number"
    if value < Config.SCORE_MIN or value > Config.SCORE_MAX:
        return False, f"{label} must be between {Config.SCORE_MIN} and {Config.SCORE_MAX}"
    # Expressed in tenths, a half-point step is a multiple of 5
    if (value * 10) % 5 != 0:
        return False, f"{label} must be in {Config.SCORE_STEP} increments"
    return True, None


def compute_average_score(scores: Dict[str, float]) -> float:
    """Mean of the four dimension scores, rounded to 2 decimals"""
    values = [scores[dimension] for dimension in Config.SCORE_DIMENSIONS]
    return round(sum(values) / len(values), 2)


def dimension_label(dimension: str) -> str:
    """'technical_understanding' -> 'Technical understanding'"""
    return dimension.replace('_', ' ').capitalize()
