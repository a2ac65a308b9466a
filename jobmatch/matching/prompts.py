"""Tier-specific prompt builders for AI scoring.

Prompts are rendered from Jinja2 templates in the
``jobmatch.matching.prompt_templates`` package. Each builder also owns the
JSON schema the model must answer with and its generation settings, so the
AI scorer can stay tier-agnostic.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError

from jobmatch.config.models import AIConfig
from jobmatch.domain.models import Tier, UserPreferences

from .categories import career_path_label
from .exceptions import PromptRenderError
from .models import MatchCandidate

logger = logging.getLogger(__name__)

SCHEMA_NAME = "return_job_matches"

# Jobs listed in one prompt, per tier.
FREE_MAX_JOBS = 30
PREMIUM_MAX_JOBS = 50

VISA_KEYWORDS = (
    "need sponsorship",
    "needs sponsorship",
    "require sponsorship",
    "requires sponsorship",
    "visa required",
    "need visa",
    "non-eu",
    "non eu",
    "work permit",
)

NO_VISA_KEYWORDS = (
    "no sponsorship",
    "not required",
    "don't need",
    "do not need",
)

_BREAKDOWN_SCHEMA = {
    "type": "object",
    "properties": {
        "skills": {"type": "integer", "minimum": 0, "maximum": 100},
        "experience": {"type": "integer", "minimum": 0, "maximum": 100},
        "location": {"type": "integer", "minimum": 0, "maximum": 100},
        "company": {"type": "integer", "minimum": 0, "maximum": 100},
        "overall": {"type": "integer", "minimum": 0, "maximum": 100},
    },
    "required": ["skills", "experience", "location", "company", "overall"],
}


def build_response_schema(max_matches: int, require_breakdown: bool) -> Dict[str, Any]:
    """JSON schema for the ``return_job_matches`` function call."""
    required = ["job_index", "match_score", "confidence_score", "match_reason"]
    if require_breakdown:
        required.append("score_breakdown")
    return {
        "type": "object",
        "properties": {
            "matches": {
                "type": "array",
                "maxItems": max_matches,
                "items": {
                    "type": "object",
                    "properties": {
                        "job_index": {"type": "integer", "minimum": 1},
                        "job_hash": {"type": "string"},
                        "match_score": {"type": "integer", "minimum": 0, "maximum": 100},
                        "confidence_score": {"type": "number", "minimum": 0, "maximum": 1},
                        "match_reason": {"type": "string", "maxLength": 400},
                        "score_breakdown": _BREAKDOWN_SCHEMA,
                    },
                    "required": required,
                },
            }
        },
        "required": ["matches"],
    }


def needs_visa_sponsorship(visa_status: Optional[str]) -> bool:
    """Guess from free text whether a user needs visa sponsorship.

    Explicit negations ("no sponsorship needed") win over sponsorship
    keywords.

    Example:
        >>> needs_visa_sponsorship("Non-EU, need sponsorship")
        True
        >>> needs_visa_sponsorship("EU citizen")
        False
    """
    if not visa_status:
        return False
    text = visa_status.lower()
    if any(keyword in text for keyword in NO_VISA_KEYWORDS):
        return False
    return any(keyword in text for keyword in VISA_KEYWORDS)


@dataclass(frozen=True)
class PromptSettings:
    """Generation settings for one builder."""

    temperature: float
    max_tokens: int
    prompt_version: str
    schema_name: str = SCHEMA_NAME


class PromptBuilder(ABC):
    """Builds the prompt, system message and schema for one tier.

    Args:
        ai_config: Model settings (temperature, token limits, prompt version)
        match_count: Matches the model is asked to return
        template_dir: Template package directory
    """

    name = "base"
    template_name = ""
    max_jobs = FREE_MAX_JOBS
    require_breakdown = False

    def __init__(
        self,
        ai_config: AIConfig,
        match_count: int,
        template_dir: str = "prompt_templates",
    ):
        self.ai_config = ai_config
        self.match_count = match_count
        self.env = Environment(
            loader=PackageLoader("jobmatch.matching", template_dir),
            autoescape=False,
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    @property
    @abstractmethod
    def settings(self) -> PromptSettings:
        """Generation settings for this tier."""

    @property
    def prompt_version(self) -> str:
        return f"{self.ai_config.prompt_version}-{self.name}"

    @property
    def response_schema(self) -> Dict[str, Any]:
        return build_response_schema(self.match_count, self.require_breakdown)

    def system_message(self) -> str:
        return self._render("system.j2", {"schema_name": SCHEMA_NAME}).strip()

    def select_jobs(self, candidates: Sequence[MatchCandidate]) -> List[MatchCandidate]:
        """Candidates listed in the prompt; the caller's order is kept."""
        return list(candidates[: self.max_jobs])

    def build_prompt(
        self, profile: UserPreferences, candidates: Sequence[MatchCandidate]
    ) -> str:
        """Render the user prompt.

        Jobs are numbered from 1 in the order given; the model refers to
        them by that number (``job_index``).

        Raises:
            PromptRenderError: If the template fails to render
        """
        jobs = [
            {
                "job_hash": c.job.job_hash,
                "title": c.job.title,
                "company": c.job.company,
                "location": c.job.location,
                "categories": c.job.categories,
            }
            for c in self.select_jobs(candidates)
        ]
        context = {
            "experience_level": profile.entry_level_preference or "entry-level",
            "cities": ", ".join(profile.target_cities),
            "career_paths": ", ".join(career_path_label(p) for p in profile.career_path),
            "roles": ", ".join(profile.roles_selected),
            "skills": ", ".join(profile.skills),
            "industries": ", ".join(profile.industries),
            "languages": ", ".join(profile.languages_spoken),
            "company_size": profile.company_size_preference or "",
            "work_environment": profile.work_environment or "",
            "needs_visa": needs_visa_sponsorship(profile.visa_status),
            "jobs": jobs,
            "match_count": self.match_count,
            "schema_name": SCHEMA_NAME,
        }
        return self._render(self.template_name, context)

    def _render(self, template_name: str, context: Dict[str, Any]) -> str:
        try:
            return self.env.get_template(template_name).render(context)
        except TemplateError as e:
            error_msg = f"Prompt rendering failed ({template_name}): {e}"
            logger.error(error_msg, exc_info=True)
            raise PromptRenderError(error_msg) from e


class FreePromptBuilder(PromptBuilder):
    """Short prompt: location, career path and role only."""

    name = "free"
    template_name = "free.j2"
    max_jobs = FREE_MAX_JOBS

    @property
    def settings(self) -> PromptSettings:
        return PromptSettings(
            temperature=self.ai_config.temperature,
            max_tokens=self.ai_config.free_max_tokens,
            prompt_version=self.prompt_version,
        )


class PremiumPromptBuilder(PromptBuilder):
    """Full profile with a four-dimension score breakdown per match."""

    name = "premium"
    template_name = "premium.j2"
    max_jobs = PREMIUM_MAX_JOBS
    require_breakdown = True

    @property
    def settings(self) -> PromptSettings:
        return PromptSettings(
            temperature=self.ai_config.temperature,
            max_tokens=self.ai_config.premium_max_tokens,
            prompt_version=self.prompt_version,
        )


def get_prompt_builder(tier: str, ai_config: AIConfig, match_count: int) -> PromptBuilder:
    """Builder for a user tier."""
    if Tier(tier) == Tier.PREMIUM:
        return PremiumPromptBuilder(ai_config, match_count)
    return FreePromptBuilder(ai_config, match_count)
