#!/usr/bin/env python3
"""Simple script to verify config.example.yaml structure without the app installed."""

import sys
from pathlib import Path

import yaml

SECTIONS = {
    "matching": ["min_candidates", "max_candidates", "relaxation_steps", "freshness_window"],
    "scoring": ["ai_timeout", "ai_max_retries", "rule_weights"],
    "tiers": ["free", "premium"],
    "ai": ["model", "prompt_version"],
    "embeddings": ["model", "dimension", "batch_size"],
    "schedule": ["match_interval", "embedding_interval"],
    "logging": ["level", "format"],
}

VALID_STEPS = {"expand_to_country", "drop_city", "widen_freshness", "drop_category"}
VALID_STRATEGIES = {"ai", "rules"}
TIER_KEYS = ["jobs_per_send", "sends_per_week", "primary_strategy", "diversity_max_fraction"]


def verify_config_structure(config_file: Path = Path("config.example.yaml")) -> bool:
    """Verify the example configuration has the expected structure."""
    if not config_file.exists():
        print(f"✗ {config_file} not found")
        return False

    try:
        with open(config_file, "r") as f:
            config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        print(f"✗ Failed to parse {config_file}: {e}")
        return False

    errors = []

    for section, keys in SECTIONS.items():
        body = config.get(section)
        if not isinstance(body, dict):
            errors.append(f"Missing or invalid section: {section}")
            continue
        for key in keys:
            if key not in body:
                errors.append(f"{section} missing key: {key}")

    matching = config.get("matching") or {}
    for step in matching.get("relaxation_steps") or []:
        if step not in VALID_STEPS:
            errors.append(f"matching.relaxation_steps has invalid step: {step}")

    weights = (config.get("scoring") or {}).get("rule_weights") or {}
    if weights and sum(weights.values()) != 100:
        errors.append(f"scoring.rule_weights must sum to 100 (got {sum(weights.values())})")

    for tier_name, tier in (config.get("tiers") or {}).items():
        if not isinstance(tier, dict):
            errors.append(f"tiers.{tier_name} must be a dictionary")
            continue
        for key in TIER_KEYS:
            if key not in tier:
                errors.append(f"tiers.{tier_name} missing key: {key}")
        if tier.get("primary_strategy") not in VALID_STRATEGIES:
            errors.append(f"tiers.{tier_name} has invalid primary_strategy")

    if errors:
        print(f"✗ {config_file} validation failed:")
        for error in errors:
            print(f"  - {error}")
        return False

    print(f"✓ {config_file} structure is valid")
    print(f"  - Relaxation steps: {', '.join(matching.get('relaxation_steps', []))}")
    for tier_name, tier in config["tiers"].items():
        print(
            f"  - {tier_name}: {tier['jobs_per_send']} jobs x {tier['sends_per_week']}/week, "
            f"primary {tier['primary_strategy']}"
        )
    print(f"  - Match interval: {config['schedule']['match_interval']}")
    return True


if __name__ == "__main__":
    success = verify_config_structure()
    sys.exit(0 if success else 1)
