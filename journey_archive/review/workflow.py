"""Owner-side review workflow.

ReviewWorkflow performs the owner's submit and withdraw actions against the
backend and mirrors the outcome locally: the profile moves through the state
machine and so do its contributions. Submitting also asks the notification
function to tell the stewards; if that request fails it is logged and the
submission still counts.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from journey_archive.config import ReviewConfig
from journey_archive.core.collection import ArchiveItems
from journey_archive.core.models import Contribution, ContributionStatus, Profile
from journey_archive.errors import ArchiveError, SubmissionUnavailableError
from journey_archive.review.readiness import ReadinessReport, available_actions, check_readiness
from journey_archive.review.state_machine import ReviewAction, next_status, transition

if TYPE_CHECKING:
    from journey_archive.backend.client import ArchiveBackendClient

logger = logging.getLogger(__name__)


class ReviewWorkflow:
    """Submit, withdraw and mirror steward decisions.

    Args:
        client: Backend client.
        items: Working collection of the profile's contributions.
        config: Readiness rules.
    """

    def __init__(
        self,
        client: ArchiveBackendClient,
        items: ArchiveItems,
        config: ReviewConfig | None = None,
    ) -> None:
        self.client = client
        self.items = items
        self.config = config or ReviewConfig()

    def readiness(self, profile: Profile) -> ReadinessReport:
        return check_readiness(profile, self.config)

    def available_actions(self, profile: Profile) -> list[ReviewAction]:
        return available_actions(profile, self.config)

    async def submit(self, profile: Profile) -> Profile:
        """Submit the profile and its editable contributions for review.

        Returns:
            The profile in ``submitted_for_review``.

        Raises:
            SubmissionUnavailableError: Readiness fails (no network call made).
            InvalidTransitionError: The profile is not in a submittable status.
            ApplicationError, TransportError: The backend call failed.
        """
        next_status(profile.status, ReviewAction.SUBMIT)
        report = self.readiness(profile)
        if not report.ready:
            raise SubmissionUnavailableError(report.unmet)

        receipt = await self.client.submit_profile_for_review(profile.id)
        submitted = transition(
            profile,
            ReviewAction.SUBMIT,
            at=receipt.submitted_at,
            clear_note_on_resubmit=self.config.clear_note_on_resubmit,
        )

        for item in self._profile_items(profile.id):
            if item.is_owner_mutable:
                self.items.put(
                    transition(
                        item,
                        ReviewAction.SUBMIT,
                        at=receipt.submitted_at,
                        clear_note_on_resubmit=self.config.clear_note_on_resubmit,
                    )
                )
        logger.info(f"Profile {profile.id} submitted for review")

        try:
            await self.client.notify_profile_submitted(
                profile_id=profile.id,
                profile_name=profile.display_name,
                stewards=receipt.stewards_to_notify,
                country=profile.country,
            )
        except ArchiveError as e:
            logger.warning(f"Reviewer notification for {profile.id} failed: {e.message}")

        return submitted

    async def withdraw(self, profile: Profile) -> Profile:
        """Take a submitted profile back to draft.

        Contributions still awaiting review go back to draft with it. Content
        is left unchanged.

        Raises:
            InvalidTransitionError: The profile is not awaiting review.
            ApplicationError, TransportError: The backend call failed.
        """
        next_status(profile.status, ReviewAction.WITHDRAW)
        await self.client.withdraw_submission(profile.id)

        withdrawn = transition(profile, ReviewAction.WITHDRAW)
        for item in self._profile_items(profile.id):
            if item.status == ContributionStatus.SUBMITTED_FOR_REVIEW:
                self.items.put(transition(item, ReviewAction.WITHDRAW))
        logger.info(f"Profile {profile.id} withdrawn from review")
        return withdrawn

    def record_decision(
        self,
        item_id: str,
        action: ReviewAction,
        note: str | None = None,
        actor: str | None = None,
    ) -> Contribution:
        """Mirror a steward decision on one contribution.

        Raises:
            KeyError: Unknown item.
            ValueError: action is not a steward decision.
            InvalidTransitionError: The item is not awaiting review.
        """
        if not action.is_steward_decision:
            raise ValueError(f"{action.value} is not a steward decision")
        item = self.items.get(item_id)
        if item is None:
            raise KeyError(item_id)
        decided = transition(item, action, note=note, actor=actor)
        self.items.put(decided)
        return decided

    def _profile_items(self, profile_id: str) -> list[Contribution]:
        return [item for item in self.items if item.owner_profile_id == profile_id]
