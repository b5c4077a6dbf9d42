from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from vendortal_cli.client import VendorTalClient
from vendortal_cli.exceptions import ValidationError, VendorTalError
from vendortal_cli.models.assessments import DEFAULT_SECTION, AssessmentResponse
from vendortal_cli.rows import parse_response
from vendortal_cli.services.base import BaseService, utc_timestamp
from vendortal_cli.services.evidence import EvidenceFile, EvidenceStore

RESPONSES_TABLE = "vs_assessment_responses"
RESPONSE_COLUMNS = (
    "*, question:vs_assessment_questions(id, question_text, question_type, section, is_required)"
)
_RESPONSE_KEY = "assessment_id,question_id"


def group_by_section(
    responses: Sequence[AssessmentResponse],
) -> Dict[str, List[AssessmentResponse]]:
    """Group responses by question section, in first-seen order."""
    grouped: Dict[str, List[AssessmentResponse]] = {}
    for response in responses:
        section = response.question.section if response.question else ""
        grouped.setdefault(section or DEFAULT_SECTION, []).append(response)
    return grouped


class ResponseService(BaseService):
    """Answers for a single assessment, one row per question."""

    def __init__(
        self,
        client: VendorTalClient,
        assessment_id: Optional[str],
        storage: Optional[EvidenceStore] = None,
    ) -> None:
        super().__init__(client)
        self.assessment_id = assessment_id
        self.storage = storage or EvidenceStore(client)
        self.responses: List[AssessmentResponse] = []

    def refresh(self) -> List[AssessmentResponse]:
        if not self.assessment_id:
            self.responses = []
            return self.responses

        try:
            rows = self.client.select(
                RESPONSES_TABLE,
                columns=RESPONSE_COLUMNS,
                filters={"assessment_id": self.assessment_id},
                order="created_at",
            )
        except VendorTalError as exc:
            self._record_error(exc, "Failed to fetch responses")
            return self.responses

        self.responses = [parse_response(row) for row in rows]
        self.error = None
        return self.responses

    def find(self, question_id: str) -> Optional[AssessmentResponse]:
        for response in self.responses:
            if response.question_id == question_id:
                return response
        return None

    def save(
        self,
        question_id: str,
        answer: str = "",
        answer_data: Any = None,
        evidence_urls: Optional[Sequence[str]] = None,
        now: Optional[datetime] = None,
    ) -> AssessmentResponse:
        """Create or replace the answer to *question_id*.

        The backend keeps one row per (assessment, question), so saving the
        same question twice overwrites the earlier answer.
        """
        if not self.assessment_id:
            raise ValidationError("Assessment ID is required")

        payload: Dict[str, Any] = {
            "assessment_id": self.assessment_id,
            "question_id": question_id,
            "answer": answer,
            "answer_data": answer_data,
            "evidence_urls": list(evidence_urls or []),
            "submitted_at": utc_timestamp(now),
        }
        try:
            row = self.client.upsert(
                RESPONSES_TABLE, payload, on_conflict=_RESPONSE_KEY, columns=RESPONSE_COLUMNS,
            )
        except VendorTalError as exc:
            self._record_error(exc, "Failed to save response")
            raise

        saved = parse_response(row)
        for index, existing in enumerate(self.responses):
            if existing.question_id == saved.question_id:
                self.responses[index] = saved
                break
        else:
            self.responses.append(saved)
        return saved

    def update(self, response_id: str, changes: Dict[str, Any]) -> AssessmentResponse:
        try:
            row = self.client.update(
                RESPONSES_TABLE, changes, filters={"id": response_id}, columns=RESPONSE_COLUMNS,
            )
        except VendorTalError as exc:
            self._record_error(exc, "Failed to update response")
            raise

        updated = parse_response(row)
        self.responses = [updated if r.id == response_id else r for r in self.responses]
        return updated

    def delete(self, response_id: str) -> None:
        try:
            self.client.delete(RESPONSES_TABLE, filters={"id": response_id})
        except VendorTalError as exc:
            self._record_error(exc, "Failed to delete response")
            raise

        self.responses = [r for r in self.responses if r.id != response_id]

    def by_section(self) -> Dict[str, List[AssessmentResponse]]:
        return group_by_section(self.responses)

    def _stored_response(self, question_id: str) -> Optional[AssessmentResponse]:
        """Read the saved answer for *question_id* straight from the backend."""
        try:
            rows = self.client.select(
                RESPONSES_TABLE,
                columns=RESPONSE_COLUMNS,
                filters={"assessment_id": self.assessment_id, "question_id": question_id},
                limit=1,
            )
        except VendorTalError as exc:
            self._record_error(exc, "Failed to load the current response")
            raise
        return parse_response(rows[0]) if rows else None

    def upload_evidence(
        self,
        question_id: str,
        files: Sequence[EvidenceFile],
        now: Optional[datetime] = None,
    ) -> AssessmentResponse:
        """Store *files* and attach their URLs to the question's response.

        Every file is validated before anything is uploaded; an existing
        answer and earlier evidence are kept.
        """
        if not self.assessment_id:
            raise ValidationError("Assessment ID is required")

        for evidence in files:
            self.storage.validate(evidence)

        existing = self._stored_response(question_id)

        urls: List[str] = []
        for evidence in files:
            try:
                urls.append(self.storage.upload(self.assessment_id, question_id, evidence, now))
            except VendorTalError as exc:
                self._record_error(exc, f"Failed to upload {evidence.name}")
                raise

        answer = existing.answer if existing else ""
        answer_data = existing.answer_data if existing else None
        previous = existing.evidence_urls if existing else []
        return self.save(
            question_id,
            answer=answer,
            answer_data=answer_data,
            evidence_urls=previous + urls,
            now=now,
        )
