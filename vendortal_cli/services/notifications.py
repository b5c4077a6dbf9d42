from __future__ import annotations

import logging
from typing import Dict, Optional

from vendortal_cli.client import VendorTalClient
from vendortal_cli.exceptions import VendorTalError
from vendortal_cli.models.config import DEFAULT_SITE_URL

logger = logging.getLogger(__name__)

EMAIL_FUNCTION = "send-assessment-email"
DEFAULT_ASSESSMENT_NAME = "Security Assessment"

TEMPLATE_SENT = "assessment_sent"
TEMPLATE_SUBMITTED = "assessment_submitted"
TEMPLATE_APPROVED = "assessment_approved"
TEMPLATE_REVISION = "assessment_revision"

_SUBJECT_PREFIXES: Dict[str, str] = {
    TEMPLATE_SENT: "New Assessment Request",
    TEMPLATE_SUBMITTED: "Assessment Submitted",
    TEMPLATE_APPROVED: "Assessment Approved",
    TEMPLATE_REVISION: "Assessment Revision Requested",
}


def email_subject(template: str, assessment_name: Optional[str]) -> str:
    prefix = _SUBJECT_PREFIXES.get(template)
    if prefix is None:
        raise ValueError(f"Unknown email template: {template}")
    return f"{prefix}: {assessment_name or DEFAULT_ASSESSMENT_NAME}"


class EmailNotifier:
    """Send lifecycle emails through the hosted email function.

    Delivery problems are logged and reported as ``False``; they never undo
    the status change that triggered the email.
    """

    def __init__(self, client: VendorTalClient, site_url: str = DEFAULT_SITE_URL) -> None:
        self.client = client
        self.site_url = site_url.rstrip("/")

    def portal_url(self, assessment_id: str) -> str:
        return f"{self.site_url}/vendor-assessments/{assessment_id}"

    def send_email(self, to: str, template: str, data: Dict[str, str]) -> bool:
        body = {
            "to": to,
            "subject": email_subject(template, data.get("assessmentName")),
            "template": template,
            "data": {k: v for k, v in data.items() if v is not None},
        }
        try:
            self.client.invoke_function(EMAIL_FUNCTION, body)
        except VendorTalError as exc:
            logger.warning("Failed to send %s email to %s: %s", template, to, exc)
            return False
        logger.info("Email notification sent: %s to %s", template, to)
        return True

    def notify_assessment_sent(
        self,
        vendor_email: str,
        vendor_name: str,
        organization_name: str,
        assessment_name: str,
        assessment_id: str,
        due_date: Optional[str] = None,
    ) -> bool:
        return self.send_email(vendor_email, TEMPLATE_SENT, {
            "vendorName": vendor_name,
            "organizationName": organization_name,
            "assessmentName": assessment_name,
            "assessmentId": assessment_id,
            "portalUrl": self.portal_url(assessment_id),
            "dueDate": due_date,
        })

    def notify_assessment_submitted(
        self,
        reviewer_email: str,
        vendor_name: str,
        assessment_name: str,
        assessment_id: str,
    ) -> bool:
        return self.send_email(reviewer_email, TEMPLATE_SUBMITTED, {
            "vendorName": vendor_name,
            "assessmentName": assessment_name,
            "assessmentId": assessment_id,
        })

    def notify_assessment_approved(
        self,
        vendor_email: str,
        vendor_name: str,
        organization_name: str,
        assessment_name: str,
    ) -> bool:
        return self.send_email(vendor_email, TEMPLATE_APPROVED, {
            "vendorName": vendor_name,
            "organizationName": organization_name,
            "assessmentName": assessment_name,
        })

    def notify_assessment_revision(
        self,
        vendor_email: str,
        vendor_name: str,
        organization_name: str,
        assessment_name: str,
        assessment_id: str,
        comments: Optional[str] = None,
    ) -> bool:
        return self.send_email(vendor_email, TEMPLATE_REVISION, {
            "vendorName": vendor_name,
            "organizationName": organization_name,
            "assessmentName": assessment_name,
            "assessmentId": assessment_id,
            "portalUrl": self.portal_url(assessment_id),
            "comments": comments,
        })
