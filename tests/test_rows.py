from __future__ import annotations

from vendortal_cli.rows import (
    parse_assessment,
    parse_framework,
    parse_response,
    parse_vendor,
)


class TestParseVendor:
    def test_full_row(self) -> None:
        vendor = parse_vendor({
            "id": "v1",
            "user_id": "u1",
            "name": " Acme Cloud ",
            "industry": "SaaS",
            "risk_score": "72.5",
            "risk_level": "medium",
            "notes": None,
        })
        assert vendor.name == "Acme Cloud"
        assert vendor.risk_score == 72.5
        assert vendor.notes == ""

    def test_bad_score_is_none(self) -> None:
        assert parse_vendor({"id": "v1", "risk_score": "n/a"}).risk_score is None
        assert parse_vendor({"id": "v1", "risk_score": True}).risk_score is None


class TestParseFramework:
    def test_questions_sorted_by_order_index(self) -> None:
        framework = parse_framework({
            "id": "fw",
            "name": "NIST SP 800-161",
            "question_count": "2",
            "questions": [
                {"id": "q2", "question_text": "Second", "order_index": 2, "is_required": "true"},
                {"id": "q1", "question_text": "First", "order_index": 1, "options": ["Yes", None, "No"]},
                "garbage",
            ],
        })
        assert framework.question_count == 2
        assert framework.is_active is True
        assert [q.id for q in framework.questions] == ["q1", "q2"]
        assert framework.questions[0].options == ["Yes", "No"]
        assert framework.questions[0].question_type == "text"
        assert framework.questions[1].is_required is True


class TestParseAssessment:
    def test_embedded_relations(self) -> None:
        assessment = parse_assessment({
            "id": "a1",
            "user_id": "u1",
            "vendor_id": "v1",
            "framework_id": "fw",
            "assessment_name": "Annual review",
            "status": None,
            "overall_score": 88.0,
            "section_scores": {"Access": "75", "Crypto": 100},
            "vendor": {"id": "v1", "name": "Acme", "contact_email": "sec@acme.test"},
            "framework": {"id": "fw", "name": "NIST"},
        })
        assert assessment.status == "pending"
        assert assessment.overall_score == 88
        assert assessment.section_scores == {"Access": 75, "Crypto": 100}
        assert assessment.vendor is not None
        assert assessment.vendor.contact_email == "sec@acme.test"
        assert assessment.framework is not None
        assert assessment.framework.name == "NIST"
        assert assessment.allow_save_progress is True

    def test_missing_relations(self) -> None:
        assessment = parse_assessment({"id": "a1", "vendor": None, "section_scores": []})
        assert assessment.vendor is None
        assert assessment.framework is None
        assert assessment.section_scores == {}
        assert assessment.overall_score is None

    def test_non_finite_scores_become_zero(self) -> None:
        assessment = parse_assessment({
            "id": "a1",
            "overall_score": "inf",
            "section_scores": {"Access": float("inf"), "Crypto": float("nan"), "Ops": "-Infinity"},
        })
        assert assessment.overall_score == 0
        assert assessment.section_scores == {"Access": 0, "Crypto": 0, "Ops": 0}


class TestParseResponse:
    def test_response_with_question(self) -> None:
        response = parse_response({
            "id": "r1",
            "assessment_id": "a1",
            "question_id": "q1",
            "answer": "Yes",
            "answer_data": {"value": True},
            "evidence_urls": ["https://x/a.pdf"],
            "question": {"id": "q1", "question_text": "MFA?", "section": "Access", "is_required": True},
        })
        assert response.answer_data == {"value": True}
        assert response.evidence_urls == ["https://x/a.pdf"]
        assert response.question is not None
        assert response.question.section == "Access"

    def test_evidence_urls_not_a_list(self) -> None:
        assert parse_response({"id": "r1", "evidence_urls": None}).evidence_urls == []
