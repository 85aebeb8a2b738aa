"""
Traceability service.

Wraps ``TraceabilityRepository`` and adds the rules deciding whether an item
may move on to the next pipeline step, plus the missing-item lists and
recommendations derived from a completeness snapshot.

Validation rules come in two strengths: a missing hard prerequisite goes to
``missing`` and makes the result invalid, a soft one only adds a warning.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from sqlalchemy.engine import Engine

from ..entities.models import RFC
from ..entities.repositories import (
    EpicRepository,
    RFCRepository,
    StoryUserFlowRepository,
    TaskRepository,
    UserFlowRepository,
)
from ..errors import ValidationInputError
from ..logging import log_traceability_operation
from .models import (
    APPROVED_RFC_STATUS,
    GapType,
    ItemRef,
    ItemType,
    MissingItem,
    NextStep,
    PipelineStep,
    ProjectCompleteness,
    ProjectDashboard,
    Recommendation,
    StoryTraceability,
    ValidationResult,
)
from .presentation import (
    NO_PRD_REASON,
    compute_flow_status,
    compute_overall_completeness,
    missing_item_reason,
)
from .repository import TraceabilityRepository

logger = logging.getLogger(__name__)

RuleCheck = Callable[[str], ValidationResult]


class TraceabilityService:
    """Completeness checks and step-gating rules for a project pipeline."""

    def __init__(
        self,
        engine: Engine,
        *,
        traceability_repo: TraceabilityRepository | None = None,
        task_repo: TaskRepository | None = None,
        user_flow_repo: UserFlowRepository | None = None,
        story_flow_repo: StoryUserFlowRepository | None = None,
        rfc_repo: RFCRepository | None = None,
        epic_repo: EpicRepository | None = None,
    ) -> None:
        self.traceability_repo = traceability_repo or TraceabilityRepository(engine)
        self.task_repo = task_repo or TaskRepository(engine)
        self.user_flow_repo = user_flow_repo or UserFlowRepository(engine)
        self.story_flow_repo = story_flow_repo or StoryUserFlowRepository(engine)
        self.rfc_repo = rfc_repo or RFCRepository(engine)
        self.epic_repo = epic_repo or EpicRepository(engine)

        self._rules: dict[tuple[ItemType, NextStep], RuleCheck] = {
            (ItemType.STORY, NextStep.DESIGN): self._story_to_design,
            (ItemType.STORY, NextStep.RFC): self._story_to_rfc,
            (ItemType.DESIGN, NextStep.RFC): self._design_to_rfc,
            (ItemType.RFC, NextStep.BREAKDOWN): self._rfc_to_breakdown,
            (ItemType.EPIC, NextStep.CODING): self._epic_to_coding,
            (ItemType.STORY, NextStep.CODING): self._story_to_coding,
        }

    def check_project_completeness(self, project_id: str) -> ProjectCompleteness:
        return self.traceability_repo.get_project_completeness(project_id)

    def get_story_traceability(self, story_id: str) -> StoryTraceability:
        return self.traceability_repo.get_story_traceability(story_id)

    # Step gating

    def validate_can_proceed(
        self,
        item_id: str,
        item_type: ItemType | str,
        next_step: NextStep | str,
    ) -> ValidationResult:
        """Decide whether ``item_id`` may move on to ``next_step``."""
        try:
            key = (ItemType(item_type), NextStep(next_step))
        except ValueError as exc:
            raise ValidationInputError(str(exc)) from exc

        rule = self._rules.get(key)
        if rule is None:
            # Pairs without prerequisites always pass
            result = ValidationResult(valid=True)
        else:
            result = rule(item_id)

        log_traceability_operation(
            logger,
            "Validated step transition",
            item_id=item_id,
            item_type=key[0].value,
            next_step=key[1].value,
            valid=result.valid,
        )
        return result

    @staticmethod
    def _not_found(entity: str) -> ValidationResult:
        return ValidationResult(valid=False, missing=[f"{entity} not found"])

    @staticmethod
    def _result(missing: list[str], warnings: list[str]) -> ValidationResult:
        return ValidationResult(valid=not missing, missing=missing, warnings=warnings)

    def _story_to_design(self, story_id: str) -> ValidationResult:
        story = self.task_repo.find_by_id(story_id)
        if story is None:
            return self._not_found("Story")

        missing = []
        if not story.prd_id:
            missing.append("Story must be linked to a PRD")
        return self._result(missing, [])

    def _story_to_rfc(self, story_id: str) -> ValidationResult:
        if self.task_repo.find_by_id(story_id) is None:
            return self._not_found("Story")

        warnings = []
        if not self.user_flow_repo.find_by_story_id(story_id):
            warnings.append("Story has no linked design (user flow). RFC generation may be less accurate.")
        return self._result([], warnings)

    def _design_to_rfc(self, user_flow_id: str) -> ValidationResult:
        if self.user_flow_repo.find_by_id(user_flow_id) is None:
            return self._not_found("User flow")

        warnings = []
        if not self.story_flow_repo.find_by_user_flow_id(user_flow_id):
            warnings.append("User flow has no linked stories. RFC generation may be less accurate.")
        return self._result([], warnings)

    def _rfc_to_breakdown(self, rfc_id: str) -> ValidationResult:
        rfc = self.rfc_repo.find_by_id(rfc_id)
        if rfc is None:
            return self._not_found("RFC")

        missing = []
        if not _is_approved(rfc):
            missing.append(f"RFC must be approved before breakdown. Current status: {rfc.status.value}")
        return self._result(missing, [])

    def _epic_to_coding(self, epic_id: str) -> ValidationResult:
        epic = self.epic_repo.find_by_id(epic_id)
        if epic is None:
            return self._not_found("Epic")

        missing: list[str] = []
        warnings: list[str] = []
        if not epic.rfc_id:
            missing.append("Epic must have an RFC before coding")
        else:
            rfc = self.rfc_repo.find_by_id(epic.rfc_id)
            if rfc is None:
                missing.append("Epic references an RFC that does not exist")
            elif not _is_approved(rfc):
                warnings.append(
                    f"Epic's RFC is not approved (status: {rfc.status.value}). "
                    "Coding may proceed but RFC should be approved."
                )
        return self._result(missing, warnings)

    def _story_to_coding(self, story_id: str) -> ValidationResult:
        if self.task_repo.find_by_id(story_id) is None:
            return self._not_found("Story")

        trace = self.get_story_traceability(story_id)
        warnings = []
        if not trace.designs:
            warnings.append("Story has no linked design. Coding may proceed but design context is missing.")
        if trace.rfc is None:
            warnings.append(
                "Story has no linked RFC. Coding may proceed but technical specifications are missing."
            )
        return self._result([], warnings)

    # Dashboards

    def get_missing_items(self, project_id: str, step: PipelineStep | str) -> list[MissingItem]:
        """Items blocking one pipeline step, projected from a fresh snapshot."""
        try:
            step = PipelineStep(step)
        except ValueError as exc:
            raise ValidationInputError(str(exc)) from exc

        completeness = self.check_project_completeness(project_id)
        stories = completeness.stories
        designs = completeness.designs
        rfc = completeness.rfc
        breakdowns = completeness.breakdowns
        missing: list[MissingItem] = []

        def add(refs, gap_type: GapType) -> None:
            missing.extend(
                MissingItem(id=ref.id, title=ref.title, reason=missing_item_reason(gap_type)) for ref in refs
            )

        def add_designs(refs, gap_type: GapType) -> None:
            missing.extend(
                MissingItem(id=ref.id, title=ref.flow_name, reason=missing_item_reason(gap_type))
                for ref in refs
            )

        if step is PipelineStep.PRD:
            if not completeness.prd.exists:
                missing.append(MissingItem(id="", title="PRD", reason=NO_PRD_REASON))
        elif step is PipelineStep.STORIES:
            add(stories.without_prd, GapType.STORY_MISSING_PRD)
        elif step is PipelineStep.DESIGN:
            add(stories.without_design, GapType.STORY_MISSING_DESIGN)
            add_designs(designs.without_stories, GapType.DESIGN_MISSING_STORIES)
        elif step is PipelineStep.RFC:
            add(stories.without_rfc, GapType.STORY_MISSING_RFC)
            add_designs(designs.without_rfc, GapType.DESIGN_MISSING_RFC)
            missing.extend(
                MissingItem(
                    id=ref.id,
                    title=ref.title,
                    reason=missing_item_reason(GapType.RFC_NOT_APPROVED, ref.status),
                )
                for ref in rfc.not_approved
            )
        elif step is PipelineStep.BREAKDOWN:
            add(rfc.without_breakdown, GapType.RFC_MISSING_BREAKDOWN)
            add(breakdowns.without_rfc, GapType.EPIC_MISSING_RFC)
        elif step is PipelineStep.CODING:
            add(stories.without_coding, GapType.STORY_MISSING_CODING)
            add(breakdowns.without_coding, GapType.EPIC_MISSING_CODING)

        log_traceability_operation(
            logger, "Missing items computed", project_id=project_id, step=step.value, count=len(missing)
        )
        return missing

    def get_recommendations(
        self,
        project_id: str,
        completeness: ProjectCompleteness | None = None,
    ) -> list[Recommendation]:
        """Next actions in a fixed check order; every check is independent."""
        if completeness is None:
            completeness = self.check_project_completeness(project_id)

        stories = completeness.stories
        designs = completeness.designs
        rfc = completeness.rfc
        recommendations: list[Recommendation] = []

        def recommend(action: str, priority: str, items: list[ItemRef]) -> None:
            recommendations.append(Recommendation(action=action, priority=priority, items=items))

        if not completeness.prd.exists:
            recommend("Create PRD document", "high", [ItemRef(id="", title="PRD")])

        if stories.without_prd:
            recommend("Link stories to PRD", "high", stories.without_prd)

        if stories.without_design:
            recommend("Generate user flows for stories", "medium", stories.without_design)

        if designs.without_rfc:
            recommend(
                "Generate RFC for user flows",
                "medium",
                [ItemRef(id=ref.id, title=ref.flow_name) for ref in designs.without_rfc],
            )

        if rfc.not_approved:
            recommend(
                "Approve RFCs before breakdown",
                "high",
                [ItemRef(id=ref.id, title=ref.title) for ref in rfc.not_approved],
            )

        if rfc.without_breakdown:
            recommend("Generate breakdown for approved RFCs", "medium", rfc.without_breakdown)

        if stories.without_coding:
            recommend("Start coding sessions for stories", "low", stories.without_coding)

        return recommendations

    def get_project_dashboard(self, project_id: str, *, include_overall: bool = True) -> ProjectDashboard:
        """Completeness, recommendations and step status from one snapshot."""
        completeness = self.check_project_completeness(project_id)
        return ProjectDashboard(
            project_id=project_id,
            completeness=completeness,
            overall=compute_overall_completeness(completeness) if include_overall else None,
            recommendations=self.get_recommendations(project_id, completeness),
            flow_status=compute_flow_status(completeness),
        )


def _is_approved(rfc: RFC) -> bool:
    return rfc.status.value == APPROVED_RFC_STATUS
