"""Submission readiness for a profile.

A profile can be submitted once its name (title, falling back to full name)
is at least 2 characters and its introduction is 50 to 1200 characters,
both measured after trimming. The bounds come from ``ReviewConfig``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from journey_archive.config import ReviewConfig
from journey_archive.core.models import ContributionStatus, Profile
from journey_archive.review.state_machine import ReviewAction

NAME = "name"
INTRODUCTION = "introduction"


@dataclass
class ReadinessReport:
    """Which readiness conditions hold.

    Attributes:
        name_length: Trimmed length of the display name.
        introduction_length: Trimmed length of the introduction.
        unmet: Names of failing conditions ("name", "introduction").
        messages: One user-facing hint per failing condition.
    """

    name_length: int
    introduction_length: int
    unmet: list[str] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)

    @property
    def ready(self) -> bool:
        return not self.unmet


def check_readiness(profile: Profile, config: ReviewConfig | None = None) -> ReadinessReport:
    """Evaluate the readiness predicate for profile.

    Example:
        >>> report = check_readiness(Profile(title="Al", introduction="x" * 49))
        >>> report.unmet
        ['introduction']
    """
    config = config or ReviewConfig()
    name_length = len(profile.display_name)
    intro_length = len(profile.introduction.strip())
    report = ReadinessReport(name_length=name_length, introduction_length=intro_length)

    if name_length < config.name_min_length:
        report.unmet.append(NAME)
        report.messages.append(f"Add a name of at least {config.name_min_length} characters.")

    if not config.introduction_min_length <= intro_length <= config.introduction_max_length:
        report.unmet.append(INTRODUCTION)
        report.messages.append(
            f"Write an introduction of {config.introduction_min_length} to "
            f"{config.introduction_max_length} characters (currently {intro_length})."
        )

    return report


def available_actions(profile: Profile, config: ReviewConfig | None = None) -> list[ReviewAction]:
    """Owner actions offered for the profile right now.

    Submit is left out entirely while readiness fails.
    """
    if profile.status == ContributionStatus.SUBMITTED_FOR_REVIEW:
        return [ReviewAction.WITHDRAW]
    if profile.is_owner_mutable and check_readiness(profile, config).ready:
        return [ReviewAction.SUBMIT]
    return []
