from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from vendortal_cli.client import VendorTalClient
from vendortal_cli.exceptions import NotFoundError, ValidationError, VendorTalError
from vendortal_cli.lifecycle import assessment_stats, progress_for_status, require_transition
from vendortal_cli.models.assessments import (
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    STATUS_PENDING,
    STATUS_REVIEWED,
    STATUS_SENT,
    AssessmentFramework,
    AssessmentResponse,
    AssessmentStats,
    VendorAssessment,
)
from vendortal_cli.rows import parse_assessment, parse_framework, parse_response
from vendortal_cli.scoring import answer_coverage, is_answered
from vendortal_cli.services.base import BaseService, utc_timestamp
from vendortal_cli.services.notifications import DEFAULT_ASSESSMENT_NAME, EmailNotifier
from vendortal_cli.services.responses import RESPONSE_COLUMNS, RESPONSES_TABLE
from vendortal_cli.services.vendors import VendorService

ASSESSMENTS_TABLE = "vs_vendor_assessments"
FRAMEWORKS_TABLE = "vs_assessment_frameworks"
PROFILES_TABLE = "vs_profiles"

ASSESSMENT_COLUMNS = (
    "*, vendor:vs_vendors(id, name, contact_email), "
    "framework:vs_assessment_frameworks(id, name, description, framework_type, "
    "question_count, estimated_time)"
)
FRAMEWORK_COLUMNS = "*, questions:vs_assessment_questions(*)"

DEFAULT_ORGANIZATION = "VendorTal Risk Review Customer"
DEFAULT_VENDOR_NAME = "Vendor"


class AssessmentService(BaseService):
    """Vendor assessments owned by one user, and their lifecycle.

    Status changes go through ``lifecycle.require_transition``. Emails are
    sent after the backend accepted the change; a failed email is logged and
    does not undo it.
    """

    def __init__(
        self,
        client: VendorTalClient,
        user_id: Optional[str] = None,
        notifier: Optional[EmailNotifier] = None,
        vendors: Optional[VendorService] = None,
    ) -> None:
        super().__init__(client, user_id)
        self.notifier = notifier
        self.vendors = vendors
        self.assessments: List[VendorAssessment] = []
        self.frameworks: List[AssessmentFramework] = []
        self.frameworks_error: Optional[str] = None

    def refresh(self) -> List[VendorAssessment]:
        if not self.user_id:
            self.assessments = []
            return self.assessments

        try:
            rows = self.client.select(
                ASSESSMENTS_TABLE,
                columns=ASSESSMENT_COLUMNS,
                filters={"user_id": self.user_id},
                order="created_at",
                ascending=False,
            )
        except VendorTalError as exc:
            self._record_error(exc, "Failed to fetch assessments")
            return self.assessments

        self.assessments = [parse_assessment(row) for row in rows]
        self.error = None
        return self.assessments

    def refresh_frameworks(self) -> List[AssessmentFramework]:
        try:
            rows = self.client.select(
                FRAMEWORKS_TABLE, filters={"is_active": True}, order="name",
            )
        except VendorTalError as exc:
            self.frameworks_error = str(exc) or "Failed to fetch frameworks"
            self._logger.error("Failed to fetch frameworks: %s", self.frameworks_error)
            return self.frameworks

        self.frameworks = [parse_framework(row) for row in rows]
        self.frameworks_error = None
        return self.frameworks

    def get_framework(self, framework_id: str) -> AssessmentFramework:
        """Fetch a framework with its questions in display order."""
        try:
            row = self.client.select_one(
                FRAMEWORKS_TABLE, columns=FRAMEWORK_COLUMNS, filters={"id": framework_id},
            )
        except VendorTalError as exc:
            self._record_error(exc, "Failed to fetch framework questions")
            raise
        return parse_framework(row)

    def find(self, assessment_id: str) -> Optional[VendorAssessment]:
        for assessment in self.assessments:
            if assessment.id == assessment_id:
                return assessment
        return None

    def get(self, assessment_id: str) -> VendorAssessment:
        user_id = self._require_user()
        try:
            row = self.client.select_one(
                ASSESSMENTS_TABLE,
                columns=ASSESSMENT_COLUMNS,
                filters={"id": assessment_id, "user_id": user_id},
            )
        except VendorTalError as exc:
            self._record_error(exc, "Failed to fetch assessment")
            raise
        return parse_assessment(row)

    def create(
        self,
        vendor_id: str,
        framework_id: str,
        assessment_name: str,
        **fields: Any,
    ) -> VendorAssessment:
        user_id = self._require_user()
        if not assessment_name.strip():
            raise ValidationError("Assessment name is required")

        payload: Dict[str, Any] = dict(fields)
        payload.update({
            "user_id": user_id,
            "vendor_id": vendor_id,
            "framework_id": framework_id,
            "assessment_name": assessment_name,
            "status": STATUS_PENDING,
        })
        try:
            row = self.client.insert(ASSESSMENTS_TABLE, payload, columns=ASSESSMENT_COLUMNS)
        except VendorTalError as exc:
            self._record_error(exc, "Failed to create assessment")
            raise

        assessment = parse_assessment(row)
        self.assessments.insert(0, assessment)
        return assessment

    def update(
        self,
        assessment_id: str,
        changes: Dict[str, Any],
        fallback: str = "Failed to update assessment",
    ) -> VendorAssessment:
        user_id = self._require_user()
        try:
            row = self.client.update(
                ASSESSMENTS_TABLE,
                changes,
                filters={"id": assessment_id, "user_id": user_id},
                columns=ASSESSMENT_COLUMNS,
            )
        except VendorTalError as exc:
            self._record_error(exc, fallback)
            raise

        assessment = parse_assessment(row)
        self.assessments = [assessment if a.id == assessment_id else a for a in self.assessments]
        return assessment

    def delete(self, assessment_id: str) -> None:
        user_id = self._require_user()
        try:
            self.client.delete(
                ASSESSMENTS_TABLE, filters={"id": assessment_id, "user_id": user_id},
            )
        except VendorTalError as exc:
            self._record_error(exc, "Failed to delete assessment")
            raise

        self.assessments = [a for a in self.assessments if a.id != assessment_id]

    def send(self, assessment_id: str, now: Optional[datetime] = None) -> VendorAssessment:
        current = self._current(assessment_id)
        require_transition(current.status, STATUS_SENT)
        assessment = self.update(
            assessment_id,
            {"status": STATUS_SENT, "sent_at": utc_timestamp(now)},
            fallback="Failed to send assessment",
        )

        vendor_email = self._vendor_email(assessment)
        if self.notifier and vendor_email:
            self.notifier.notify_assessment_sent(
                vendor_email,
                self._vendor_name(assessment),
                self.organization_name(),
                self._display_name(assessment),
                assessment.id,
                due_date=assessment.due_date[:10] or None,
            )
        return assessment

    def start(self, assessment_id: str) -> VendorAssessment:
        """Move a sent assessment to in progress when the vendor first answers."""
        current = self._current(assessment_id)
        if current.status == STATUS_IN_PROGRESS:
            return current
        require_transition(current.status, STATUS_IN_PROGRESS)
        return self.update(
            assessment_id, {"status": STATUS_IN_PROGRESS}, fallback="Failed to start assessment",
        )

    def submit(
        self,
        assessment_id: str,
        responses: Sequence[AssessmentResponse],
        now: Optional[datetime] = None,
    ) -> VendorAssessment:
        """Complete an assessment from the vendor's answers.

        Every required question needs an answer or evidence. Scores are the
        share of questions answered, overall and per section.
        """
        current = self._current(assessment_id)
        require_transition(current.status, STATUS_COMPLETED)

        framework = self.get_framework(current.framework_id)
        by_question = {r.question_id: r for r in responses}
        missing = [
            q for q in framework.questions
            if q.is_required and not is_answered(by_question.get(q.id))
        ]
        if missing:
            raise ValidationError(
                f"Please answer all required questions before submitting "
                f"({len(missing)} unanswered)."
            )

        overall, sections = answer_coverage(framework.questions, responses)
        assessment = self._finish(assessment_id, overall, sections, now, "Failed to submit assessment")

        if self.notifier:
            owner_email = self._owner_profile().get("email")
            if owner_email:
                self.notifier.notify_assessment_submitted(
                    owner_email,
                    self._vendor_name(assessment),
                    self._display_name(assessment),
                    assessment.id,
                )
        return assessment

    def complete(
        self,
        assessment_id: str,
        overall_score: int,
        section_scores: Dict[str, int],
        now: Optional[datetime] = None,
    ) -> VendorAssessment:
        current = self._current(assessment_id)
        require_transition(current.status, STATUS_COMPLETED)
        return self._finish(
            assessment_id, overall_score, section_scores, now, "Failed to complete assessment",
        )

    def review(
        self,
        assessment_id: str,
        approved: bool,
        comments: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> VendorAssessment:
        """Approve a completed assessment, or send it back for revision."""
        target = STATUS_REVIEWED if approved else STATUS_IN_PROGRESS
        current = self._current(assessment_id)
        require_transition(current.status, target)
        assessment = self.update(
            assessment_id,
            {"status": target, "updated_at": utc_timestamp(now)},
            fallback="Failed to review assessment",
        )

        vendor_email = self._vendor_email(assessment)
        if not (self.notifier and vendor_email):
            return assessment

        if approved:
            self.notifier.notify_assessment_approved(
                vendor_email,
                self._vendor_name(assessment),
                self.organization_name(),
                self._display_name(assessment),
            )
        else:
            self.notifier.notify_assessment_revision(
                vendor_email,
                self._vendor_name(assessment),
                self.organization_name(),
                self._display_name(assessment),
                assessment.id,
                comments=comments,
            )
        return assessment

    def responses(self, assessment_id: str) -> List[AssessmentResponse]:
        try:
            rows = self.client.select(
                RESPONSES_TABLE,
                columns=RESPONSE_COLUMNS,
                filters={"assessment_id": assessment_id},
            )
        except VendorTalError as exc:
            self._record_error(exc, "Failed to fetch responses")
            raise
        return [parse_response(row) for row in rows]

    def stats(self, now: Optional[datetime] = None) -> AssessmentStats:
        return assessment_stats(self.assessments, now)

    @staticmethod
    def progress(assessment: VendorAssessment) -> int:
        return progress_for_status(assessment.status)

    def organization_name(self) -> str:
        profile = self._owner_profile()
        return profile.get("company") or profile.get("full_name") or DEFAULT_ORGANIZATION

    def _owner_profile(self) -> Dict[str, Any]:
        if not self.user_id:
            return {}
        try:
            return self.client.select_one(
                PROFILES_TABLE, columns="company, full_name, email", filters={"id": self.user_id},
            )
        except VendorTalError as exc:
            self._logger.warning("Could not load profile for %s: %s", self.user_id, exc)
            return {}

    def _current(self, assessment_id: str) -> VendorAssessment:
        cached = self.find(assessment_id)
        return cached if cached is not None else self.get(assessment_id)

    def _finish(
        self,
        assessment_id: str,
        overall_score: int,
        section_scores: Dict[str, int],
        now: Optional[datetime],
        fallback: str,
    ) -> VendorAssessment:
        assessment = self.update(
            assessment_id,
            {
                "status": STATUS_COMPLETED,
                "overall_score": overall_score,
                "section_scores": section_scores,
                "completed_at": utc_timestamp(now),
            },
            fallback=fallback,
        )
        if self.vendors is not None and assessment.vendor_id:
            try:
                self.vendors.record_assessment_outcome(assessment.vendor_id, overall_score, now)
            except NotFoundError:
                self._logger.warning("Vendor %s no longer exists", assessment.vendor_id)
        return assessment

    @staticmethod
    def _vendor_email(assessment: VendorAssessment) -> str:
        if assessment.vendor and assessment.vendor.contact_email:
            return assessment.vendor.contact_email
        return assessment.contact_email

    @staticmethod
    def _vendor_name(assessment: VendorAssessment) -> str:
        if assessment.vendor and assessment.vendor.name:
            return assessment.vendor.name
        return DEFAULT_VENDOR_NAME

    @staticmethod
    def _display_name(assessment: VendorAssessment) -> str:
        if assessment.framework and assessment.framework.name:
            return assessment.framework.name
        return assessment.assessment_name or DEFAULT_ASSESSMENT_NAME
