from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class Vendor:
    id: str
    user_id: str
    name: str
    industry: str = ""
    website: str = ""
    contact_email: str = ""
    risk_score: Optional[float] = None  # None until the first assessment completes
    risk_level: str = ""
    compliance_status: str = ""
    last_assessment_date: str = ""
    notes: str = ""
    created_at: str = ""
    updated_at: str = ""
