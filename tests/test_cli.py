from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import yaml

from vendortal_cli.cli import (
    _SUBDIRS,
    load_compliance_input,
    load_dimension_scores,
    load_risk_factors,
    main,
)
from vendortal_cli.config import CONFIG_FILENAME, read_config, write_config
from vendortal_cli.exceptions import ConfigError, InvalidTransitionError, ValidationError
from vendortal_cli.models.config import AppConfig
from vendortal_cli.models.vendors import Vendor

API_URL = "https://demo.supabase.co/"


def _init(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, url: str = API_URL) -> None:
    monkeypatch.chdir(tmp_path)
    with patch("sys.argv", ["vendortal-cli", "--init", url]), \
         patch("vendortal_cli.cli.getpass.getpass", side_effect=["anon-key", "my-token"]), \
         patch("builtins.input", return_value="user-1"):
        main()


def _write_config(directory: Path) -> None:
    write_config(directory, AppConfig(API_URL, "anon-key", "my-token", "user-1"))


class TestNoArgs:
    def test_no_args_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        with patch("sys.argv", ["vendortal-cli"]):
            main()
        captured = capsys.readouterr()
        assert "usage:" in captured.out.lower()


class TestInit:
    def test_init_creates_config_and_dirs(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _init(tmp_path, monkeypatch)

        assert (tmp_path / CONFIG_FILENAME).is_file()
        for subdir in _SUBDIRS:
            assert (tmp_path / subdir).is_dir()

        config = read_config(tmp_path)
        assert config.api_url == API_URL
        assert config.api_key == "anon-key"
        assert config.access_token == "my-token"
        assert config.user_id == "user-1"

    def test_init_prints_success(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        _init(tmp_path, monkeypatch)
        captured = capsys.readouterr()
        assert "Configuration saved" in captured.out
        assert "Created directories: vendors/, assessments/" in captured.out

    def test_init_url_normalized(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        _init(tmp_path, monkeypatch, url="https://demo.supabase.co")
        assert read_config(tmp_path).api_url == API_URL

    def test_init_existing_dirs_no_error(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        (tmp_path / "vendors").mkdir()
        _init(tmp_path, monkeypatch)
        assert (tmp_path / "vendors").is_dir()


class TestInitErrors:
    def test_invalid_url_scheme(self) -> None:
        with patch("sys.argv", ["vendortal-cli", "--init", "http://demo.supabase.co/"]):
            with pytest.raises(ConfigError, match="must start with https://"):
                main()

    def test_empty_api_key(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        with patch("sys.argv", ["vendortal-cli", "--init", API_URL]), \
             patch("vendortal_cli.cli.getpass.getpass", return_value=""):
            with pytest.raises(ConfigError, match="API key cannot be empty"):
                main()

    def test_empty_access_token(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        with patch("sys.argv", ["vendortal-cli", "--init", API_URL]), \
             patch("vendortal_cli.cli.getpass.getpass", side_effect=["key", " "]):
            with pytest.raises(ConfigError, match="Access token cannot be empty"):
                main()

    def test_empty_user_id(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        with patch("sys.argv", ["vendortal-cli", "--init", API_URL]), \
             patch("vendortal_cli.cli.getpass.getpass", side_effect=["key", "tok"]), \
             patch("builtins.input", return_value=""):
            with pytest.raises(ConfigError, match="User ID cannot be empty"):
                main()
        assert not (tmp_path / CONFIG_FILENAME).exists()


class TestScore:
    def test_score_prints_overall_and_level(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        path = tmp_path / "factors.yaml"
        path.write_text(
            "factors:\n"
            "  - name: Security Posture\n    weight: 0.5\n    score: 90\n"
            "  - name: Financial Stability\n    weight: 0.5\n    score: 50\n",
            encoding="utf-8",
        )
        with patch("sys.argv", ["vendortal-cli", "--score", str(path)]):
            main()
        out = capsys.readouterr().out
        assert "Security Posture: 90 (weight 0.5)" in out
        assert "Overall risk score: 70 (Medium)" in out

    def test_score_rejects_bad_weights(self, tmp_path: Path) -> None:
        path = tmp_path / "factors.yaml"
        path.write_text(
            "factors:\n  - name: A\n    weight: 0.5\n    score: 90\n",
            encoding="utf-8",
        )
        with patch("sys.argv", ["vendortal-cli", "--score", str(path)]):
            with pytest.raises(ValidationError, match="weights must sum to 1"):
                main()

    def test_missing_file(self, tmp_path: Path) -> None:
        with patch("sys.argv", ["vendortal-cli", "--score", str(tmp_path / "nope.yaml")]):
            with pytest.raises(ValidationError, match="File not found"):
                main()


class TestInputFiles:
    def test_load_risk_factors_derives_ids(self, tmp_path: Path) -> None:
        path = tmp_path / "f.yaml"
        path.write_text("factors:\n  - name: Data Protection\n    weight: 1\n    score: 40\n")
        factors = load_risk_factors(path)
        assert factors[0].id == "data_protection"
        assert factors[0].weight == 1.0

    def test_load_risk_factors_requires_list(self, tmp_path: Path) -> None:
        path = tmp_path / "f.yaml"
        path.write_text("factors: nope\n")
        with pytest.raises(ValidationError, match="must contain a 'factors' list"):
            load_risk_factors(path)

    def test_load_risk_factors_rejects_unknown_category(self, tmp_path: Path) -> None:
        path = tmp_path / "f.yaml"
        path.write_text("factors:\n  - name: A\n    weight: 1\n    score: 40\n    category: legal\n")
        with pytest.raises(ValidationError, match="'A' has unknown category 'legal'"):
            load_risk_factors(path)

    def test_load_risk_factors_normalises_category(self, tmp_path: Path) -> None:
        path = tmp_path / "f.yaml"
        path.write_text("factors:\n  - name: A\n    weight: 1\n    score: 40\n    category: Financial\n")
        assert load_risk_factors(path)[0].category == "financial"

    def test_load_risk_factors_rejects_non_numeric_score(self, tmp_path: Path) -> None:
        path = tmp_path / "f.yaml"
        path.write_text("factors:\n  - name: A\n    weight: 1\n    score: high\n")
        with pytest.raises(ValidationError, match="'A' needs a numeric score"):
            load_risk_factors(path)

    def test_load_dimension_scores(self, tmp_path: Path) -> None:
        path = tmp_path / "d.yaml"
        path.write_text(
            "dimensions:\n  - dimension: Access Control\n    score: 65\n    notes: No MFA\n"
        )
        scores = load_dimension_scores(path)
        assert scores[0].dimension == "Access Control"
        assert scores[0].score == 65
        assert scores[0].notes == "No MFA"

    def test_empty_file_has_no_entries(self, tmp_path: Path) -> None:
        path = tmp_path / "d.yaml"
        path.write_text("")
        with pytest.raises(ValidationError, match="'dimensions' list"):
            load_dimension_scores(path)


class TestNistReport:
    def test_report_printed_as_markdown(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        path = tmp_path / "dims.yaml"
        path.write_text(
            "dimensions:\n"
            "  - dimension: Access Control\n    score: 65\n"
            "  - dimension: Encryption Standards\n    score: 90\n",
            encoding="utf-8",
        )
        with patch("sys.argv", ["vendortal-cli", "--nist-report", str(path)]):
            main()
        out = capsys.readouterr().out
        assert out.startswith("---\n")
        assert "compliance_score: 80" in out
        assert "# NIST SP 800-161 Compliance Report" in out
        assert "**PR.IP-1:** Access Control score is below threshold (65/100)." in out


class TestCopyFlagsRequireConfig:
    @pytest.mark.parametrize("argv", [
        ["--copy-all"], ["--copy-vendors"], ["--copy-assessments"],
        ["--send", "a1"], ["--approve", "a1"], ["--request-revision", "a1"],
        ["--risk-template", "v1"],
    ])
    def test_flags_fail_without_config(
        self, argv: list, tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.chdir(tmp_path)
        with patch("sys.argv", ["vendortal-cli", *argv]):
            with pytest.raises(ConfigError):
                main()


class TestExportDispatch:
    def test_copy_all_runs_both_exporters(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.chdir(tmp_path)
        _write_config(tmp_path)
        with patch("sys.argv", ["vendortal-cli", "--copy-all", "--force"]), \
             patch("vendortal_cli.cli.VendorsExporter") as vendors_cls, \
             patch("vendortal_cli.cli.AssessmentsExporter") as assessments_cls:
            main()

        vendors_cls.return_value.export.assert_called_once()
        assessments_cls.return_value.export.assert_called_once()
        args, kwargs = vendors_cls.call_args
        assert args[1] == "user-1"
        assert args[2] == tmp_path / "vendors"
        assert kwargs == {"force": True, "keep_raw_json": False}


class TestLifecycleActions:
    def _run(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, argv: list) -> MagicMock:
        monkeypatch.chdir(tmp_path)
        _write_config(tmp_path)
        with patch("sys.argv", ["vendortal-cli", *argv]), \
             patch("vendortal_cli.cli.AssessmentService") as service_cls:
            service_cls.return_value.send.return_value.assessment_name = "Q3 Review"
            service_cls.return_value.review.return_value.assessment_name = "Q3 Review"
            main()
        return service_cls.return_value

    def test_send(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        service = self._run(tmp_path, monkeypatch, ["--send", "a1"])
        service.send.assert_called_once_with("a1")
        assert "Assessment 'Q3 Review' sent." in capsys.readouterr().out

    def test_approve(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        service = self._run(tmp_path, monkeypatch, ["--approve", "a1"])
        service.review.assert_called_once_with("a1", approved=True)

    def test_request_revision_passes_comments(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        service = self._run(
            tmp_path, monkeypatch, ["--request-revision", "a1", "--comments", "Add SOC 2 report"],
        )
        service.review.assert_called_once_with("a1", approved=False, comments="Add SOC 2 report")


class TestUploadEvidence:
    def test_missing_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        with patch("sys.argv", ["vendortal-cli", "--upload-evidence", "a1", "q1", "missing.pdf"]):
            with pytest.raises(ValidationError, match="File not found"):
                main()

    def test_uploads_and_starts_sent_assessment(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.chdir(tmp_path)
        _write_config(tmp_path)
        (tmp_path / "soc2.pdf").write_bytes(b"%PDF-1.4")

        with patch("sys.argv", ["vendortal-cli", "--upload-evidence", "a1", "q1", "soc2.pdf"]), \
             patch("vendortal_cli.cli.ResponseService") as responses_cls, \
             patch("vendortal_cli.cli.AssessmentService") as service_cls:
            responses = responses_cls.return_value
            responses.error = None
            responses.upload_evidence.return_value.evidence_urls = ["https://x/soc2.pdf"]
            service_cls.return_value.get.return_value.status = "sent"
            main()

        (question_id, files), _ = responses.upload_evidence.call_args
        assert question_id == "q1"
        assert files[0].name == "soc2.pdf"
        assert files[0].content_type == "application/pdf"
        service_cls.return_value.start.assert_called_once_with("a1")
        assert "Uploaded soc2.pdf (1 evidence files attached)." in capsys.readouterr().out

    def _upload(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, status: str) -> tuple:
        monkeypatch.chdir(tmp_path)
        _write_config(tmp_path)
        (tmp_path / "soc2.pdf").write_bytes(b"%PDF-1.4")
        calls: list = []

        with patch("sys.argv", ["vendortal-cli", "--upload-evidence", "a1", "q1", "soc2.pdf"]), \
             patch("vendortal_cli.cli.ResponseService") as responses_cls, \
             patch("vendortal_cli.cli.AssessmentService") as service_cls:
            responses = responses_cls.return_value
            responses.upload_evidence.side_effect = lambda *a, **kw: calls.append("upload") or MagicMock(
                evidence_urls=["https://x/old.pdf", "https://x/soc2.pdf"],
            )
            service = service_cls.return_value
            service.get.return_value.status = status
            service.start.side_effect = lambda *a: calls.append("start")
            main()
        return responses, service, calls

    def test_in_progress_assessment_is_not_restarted(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        _, service, calls = self._upload(tmp_path, monkeypatch, "in_progress")
        service.start.assert_not_called()
        assert calls == ["upload"]
        assert "Uploaded soc2.pdf (2 evidence files attached)." in capsys.readouterr().out

    def test_sent_assessment_is_started_before_upload(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        _, _, calls = self._upload(tmp_path, monkeypatch, "sent")
        assert calls == ["start", "upload"]

    @pytest.mark.parametrize("status", ["pending", "completed", "reviewed"])
    def test_closed_assessment_is_left_untouched(
        self, status: str, tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.chdir(tmp_path)
        _write_config(tmp_path)
        (tmp_path / "soc2.pdf").write_bytes(b"%PDF-1.4")

        with patch("sys.argv", ["vendortal-cli", "--upload-evidence", "a1", "q1", "soc2.pdf"]), \
             patch("vendortal_cli.cli.ResponseService") as responses_cls, \
             patch("vendortal_cli.cli.AssessmentService") as service_cls:
            service_cls.return_value.get.return_value.status = status
            with pytest.raises(InvalidTransitionError, match=f"status: '{status}'"):
                main()

        responses_cls.return_value.upload_evidence.assert_not_called()
        service_cls.return_value.start.assert_not_called()


class TestCompliance:
    def _write(self, tmp_path: Path, body: str) -> Path:
        path = tmp_path / "controls.yaml"
        path.write_text(body, encoding="utf-8")
        return path

    def test_prints_gaps_and_recommendations(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        path = self._write(
            tmp_path,
            "assessment_id: asm-1\n"
            "controls:\n"
            "  - control_id: PR.IP-1\n    score: 45\n"
            "  - control_id: ID.SC-2\n    score: 85\n"
            "  - control_id: PR.AC-1\n    score: 95\n"
            "workflow:\n  gap_severity: [critical, high]\n",
        )
        with patch("sys.argv", ["vendortal-cli", "--compliance", str(path)]):
            main()
        out = capsys.readouterr().out
        assert "Compliance score: 75% (3 controls)" in out
        assert "Gaps (1):" in out
        assert "- PR.IP-1 (high): Current implementation level: 45%" in out
        assert out.count("[workflow]") == 1
        assert "Recommendations (2):" in out
        assert "- Improve control implementation for PR.IP-1 (high, ~17h, ~$2750)" in out
        assert "- Improve control implementation for ID.SC-2 (low, ~5h, ~$750)" in out
        assert "PR.AC-1" not in out

    def test_workflow_filter_excludes_gap(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        path = self._write(
            tmp_path,
            "controls:\n  - control_id: PR.IP-1\n    score: 45\n"
            "workflow:\n  gap_severity: [critical]\n",
        )
        with patch("sys.argv", ["vendortal-cli", "--compliance", str(path)]):
            main()
        assert "[workflow]" not in capsys.readouterr().out

    def test_load_compliance_input(self, tmp_path: Path) -> None:
        path = self._write(
            tmp_path,
            "assessment_id: asm-1\ncontrols:\n  - control_id: PR.IP-1\n    score: 45\n"
            "workflow:\n  gap_types: [Implementation]\n",
        )
        assessment_id, scores, conditions = load_compliance_input(path)
        assert assessment_id == "asm-1"
        assert scores == {"PR.IP-1": 45.0}
        assert conditions.gap_types == ["implementation"]
        assert conditions.gap_severity == []

    def test_control_needs_id(self, tmp_path: Path) -> None:
        path = self._write(tmp_path, "controls:\n  - score: 45\n")
        with pytest.raises(ValidationError, match="Control #1 in controls.yaml needs a control_id"):
            load_compliance_input(path)

    def test_top_level_must_be_mapping(self, tmp_path: Path) -> None:
        path = self._write(tmp_path, "- control_id: PR.IP-1\n")
        with pytest.raises(ValidationError, match="must contain a YAML mapping"):
            load_compliance_input(path)


class TestRiskTemplate:
    def test_default_template_feeds_score(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        with patch("sys.argv", ["vendortal-cli", "--risk-template"]):
            main()
        path = tmp_path / "factors.yaml"
        path.write_text(capsys.readouterr().out, encoding="utf-8")

        factors = load_risk_factors(path)
        assert [f.id for f in factors][:2] == ["security_posture", "financial_stability"]
        assert sum(f.weight for f in factors) == pytest.approx(1)

        with patch("sys.argv", ["vendortal-cli", "--score", str(path)]):
            main()
        assert "Overall risk score: 0 (Critical)" in capsys.readouterr().out

    def test_vendor_template_is_prefilled(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.chdir(tmp_path)
        _write_config(tmp_path)
        vendor = Vendor(id="v1", user_id="user-1", name="Acme", risk_score=82, compliance_status="compliant")

        with patch("sys.argv", ["vendortal-cli", "--risk-template", "v1"]), \
             patch("vendortal_cli.cli.VendorService") as vendors_cls:
            vendors_cls.return_value.get.return_value = vendor
            main()

        vendors_cls.return_value.get.assert_called_once_with("v1")
        assert vendors_cls.call_args.args[1] == "user-1"
        factors = {f["id"]: f for f in yaml.safe_load(capsys.readouterr().out)["factors"]}
        assert factors["security_posture"]["score"] == 82
        assert factors["compliance_status"]["score"] == 90
        assert factors["financial_stability"]["score"] == 75


class TestInitSubprocess:
    def test_python_m_init_creates_config_and_dirs(self, tmp_path: Path) -> None:
        repo_root = Path(__file__).resolve().parents[1]
        env = os.environ.copy()
        env["PYTHONPATH"] = str(repo_root)
        completed = subprocess.run(
            [sys.executable, "-m", "vendortal_cli", "--init", API_URL],
            cwd=tmp_path,
            env=env,
            input="key-from-stdin\ntoken-from-stdin\nuser-1\n",
            text=True,
            capture_output=True,
            check=False,
            start_new_session=True,
        )

        assert completed.returncode == 0
        assert (tmp_path / CONFIG_FILENAME).is_file()
        for subdir in _SUBDIRS:
            assert (tmp_path / subdir).is_dir()

        cfg = read_config(tmp_path)
        assert cfg.api_key == "key-from-stdin"
        assert cfg.access_token == "token-from-stdin"
        assert cfg.user_id == "user-1"
