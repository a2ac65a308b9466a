"""Non-fatal configuration checks."""

import warnings
from typing import Any, Dict, List


def check_for_warnings(config_dict: Dict[str, Any]) -> List[str]:
    """
    Inspect a raw configuration mapping for settings that are valid but risky.

    Args:
        config_dict: Raw configuration dictionary (before pydantic validation)

    Returns:
        List of warning messages
    """
    messages: List[str] = []

    matching = config_dict.get("matching") or {}
    if isinstance(matching, dict):
        steps = matching.get("relaxation_steps")
        if isinstance(steps, list) and not steps:
            messages.append(
                "relaxation_steps is empty; sparse job pools will not be relaxed "
                "and may produce zero matches"
            )
        if matching.get("semantic_enabled") is False:
            messages.append("semantic_enabled is false; candidates are ranked by rules only")

    tiers = config_dict.get("tiers") or {}
    if isinstance(tiers, dict):
        for tier_name, policy in sorted(tiers.items()):
            if not isinstance(policy, dict):
                continue
            fraction = policy.get("diversity_max_fraction")
            if isinstance(fraction, (int, float)) and fraction >= 1.0:
                messages.append(
                    f"Tier '{tier_name}' has diversity_max_fraction={fraction}; "
                    "the city/category cap is disabled"
                )
            if policy.get("primary_strategy") == "rules":
                messages.append(
                    f"Tier '{tier_name}' uses rules as primary strategy; "
                    "AI scoring only runs when rule signal is weak"
                )

    scoring = config_dict.get("scoring") or {}
    if isinstance(scoring, dict):
        retries = scoring.get("ai_max_retries")
        if isinstance(retries, int) and retries > 1:
            messages.append(
                f"ai_max_retries={retries} multiplies LLM cost on provider errors"
            )

    return messages


def emit_warnings(warning_messages: List[str]) -> None:
    """
    Emit warning messages using Python's warnings module.

    Args:
        warning_messages: List of warning messages to emit
    """
    for message in warning_messages:
        warnings.warn(message, UserWarning, stacklevel=2)
