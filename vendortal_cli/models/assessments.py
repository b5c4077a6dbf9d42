from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

STATUS_PENDING = "pending"
STATUS_SENT = "sent"
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"
STATUS_REVIEWED = "reviewed"

ASSESSMENT_STATUSES = (
    STATUS_PENDING,
    STATUS_SENT,
    STATUS_IN_PROGRESS,
    STATUS_COMPLETED,
    STATUS_REVIEWED,
)

QUESTION_TYPES = ("yes_no", "text", "file_upload", "scale", "multiple_choice")

DEFAULT_SECTION = "General"


@dataclass
class Question:
    id: str
    framework_id: str
    question_text: str
    question_type: str = "text"
    section: str = ""
    order_index: int = 0
    is_required: bool = False
    options: List[str] = field(default_factory=list)


@dataclass
class AssessmentFramework:
    id: str
    name: str
    description: str = ""
    framework_type: str = ""
    question_count: Optional[int] = None
    estimated_time: str = ""
    is_active: bool = True
    questions: List[Question] = field(default_factory=list)


@dataclass
class VendorSummary:
    id: str
    name: str
    contact_email: str = ""


@dataclass
class VendorAssessment:
    id: str
    user_id: str
    vendor_id: str
    framework_id: str
    assessment_name: str
    status: str = STATUS_PENDING
    due_date: str = ""
    sent_at: str = ""
    completed_at: str = ""
    overall_score: Optional[int] = None
    section_scores: Dict[str, int] = field(default_factory=dict)
    contact_email: str = ""
    custom_message: str = ""
    send_reminders: bool = False
    allow_save_progress: bool = True
    created_at: str = ""
    updated_at: str = ""
    vendor: Optional[VendorSummary] = None
    framework: Optional[AssessmentFramework] = None


@dataclass
class QuestionSummary:
    id: str
    question_text: str
    question_type: str = ""
    section: str = ""
    is_required: bool = False


@dataclass
class AssessmentResponse:
    id: str
    assessment_id: str
    question_id: str
    answer: str = ""
    answer_data: Optional[Any] = None
    evidence_urls: List[str] = field(default_factory=list)
    submitted_at: str = ""
    created_at: str = ""
    question: Optional[QuestionSummary] = None


@dataclass
class AssessmentStats:
    total: int
    completed: int
    in_progress: int
    overdue: int
    average_score: int
    completion_rate: int
