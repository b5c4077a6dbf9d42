from __future__ import annotations

import argparse
import getpass
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from vendortal_cli.client import VendorTalClient
from vendortal_cli.compliance import calculate_compliance, should_trigger_workflow
from vendortal_cli.config import CONFIG_FILENAME, read_config, write_config
from vendortal_cli.exceptions import ConfigError, InvalidTransitionError, ValidationError
from vendortal_cli.exporters.assessments import AssessmentsExporter
from vendortal_cli.exporters.base import BaseExporter
from vendortal_cli.exporters.nist_report import build_nist_report
from vendortal_cli.exporters.vendors import VendorsExporter
from vendortal_cli.formatters.yaml_formatter import YamlFormatter
from vendortal_cli.models.assessments import STATUS_IN_PROGRESS, STATUS_SENT
from vendortal_cli.models.compliance import DimensionScore, WorkflowConditions
from vendortal_cli.models.config import AppConfig
from vendortal_cli.models.risks import RISK_CATEGORIES, RiskFactor
from vendortal_cli.scoring import assess_factors, default_risk_factors, prefill_risk_factors
from vendortal_cli.services.assessments import AssessmentService
from vendortal_cli.services.evidence import EvidenceFile
from vendortal_cli.services.notifications import EmailNotifier
from vendortal_cli.services.responses import ResponseService
from vendortal_cli.services.vendors import VendorService

_SUBDIRS = ("vendors", "assessments")
_ANSWERABLE = (STATUS_SENT, STATUS_IN_PROGRESS)

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vendortal-cli",
        description="Command-line client for VendorTal vendor risk assessments.",
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--init",
        metavar="API_URL",
        help="Initialize configuration with the VendorTal API URL.",
    )
    group.add_argument(
        "--score", metavar="FILE", type=Path,
        help="Compute a weighted risk score from a YAML file of risk factors.",
    )
    group.add_argument(
        "--nist-report", metavar="FILE", type=Path,
        help="Print a NIST SP 800-161 compliance report for YAML dimension scores.",
    )
    group.add_argument(
        "--compliance", metavar="FILE", type=Path,
        help="List compliance gaps and recommendations for YAML control scores.",
    )
    group.add_argument(
        "--risk-template", metavar="VENDOR_ID", nargs="?", const="",
        help="Print the default risk factors as a --score input file, prefilled for a vendor if given.",
    )
    group.add_argument("--copy-all", action="store_true", help="Export all data.")
    group.add_argument("--copy-vendors", action="store_true", help="Export vendors.")
    group.add_argument("--copy-assessments", action="store_true", help="Export vendor assessments.")
    group.add_argument("--send", metavar="ASSESSMENT_ID", help="Send a pending assessment to its vendor.")
    group.add_argument("--approve", metavar="ASSESSMENT_ID", help="Approve a completed assessment.")
    group.add_argument(
        "--request-revision", metavar="ASSESSMENT_ID",
        help="Send a completed assessment back to the vendor for revision.",
    )
    group.add_argument(
        "--upload-evidence", nargs=3, metavar=("ASSESSMENT_ID", "QUESTION_ID", "FILE"),
        help="Attach an evidence file to the answer of an assessment question.",
    )
    parser.add_argument(
        "--comments",
        help="Comments for the vendor when requesting a revision.",
    )
    parser.add_argument(
        "--force", action="store_true",
        help="Overwrite existing files without confirmation.",
    )
    parser.add_argument(
        "--keep-raw-json", action="store_true",
        help="Also write raw JSON files alongside Markdown.",
    )
    parser.add_argument(
        "--verbose", action="store_true",
        help="Log API activity for debugging.",
    )
    return parser


def _run_init(api_url: str) -> None:
    if not api_url.startswith("https://"):
        raise ConfigError("API URL must start with https://")

    api_key = getpass.getpass("Enter your project API key: ")
    if not api_key.strip():
        raise ConfigError("API key cannot be empty.")

    access_token = getpass.getpass("Enter your access token: ")
    if not access_token.strip():
        raise ConfigError("Access token cannot be empty.")

    user_id = input("Enter your user ID: ")
    if not user_id.strip():
        raise ConfigError("User ID cannot be empty.")

    config = AppConfig(
        api_url=api_url,
        api_key=api_key.strip(),
        access_token=access_token.strip(),
        user_id=user_id.strip(),
    )

    cwd = Path.cwd()
    write_config(cwd, config)

    for subdir in _SUBDIRS:
        (cwd / subdir).mkdir(exist_ok=True)

    print(f"Configuration saved to {CONFIG_FILENAME}")
    print("Created directories: " + ", ".join(f"{d}/" for d in _SUBDIRS))


def _load_mapping(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        raise ValidationError(f"File not found: {path}")
    data = YamlFormatter.load(path)
    if not isinstance(data, dict):
        raise ValidationError(f"{path.name} must contain a YAML mapping.")
    return data


def _load_entries(path: Path, key: str, data: Optional[Dict[str, Any]] = None) -> List[Any]:
    if data is None:
        data = _load_mapping(path)
    entries = data.get(key)
    if not isinstance(entries, list):
        raise ValidationError(f"{path.name} must contain a '{key}' list.")
    return entries


def _number(entry: Any, key: str, label: str) -> float:
    value = entry.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"'{label}' needs a numeric {key}.")
    return float(value)


def load_risk_factors(path: Path) -> List[RiskFactor]:
    factors: List[RiskFactor] = []
    for index, entry in enumerate(_load_entries(path, "factors"), start=1):
        if not isinstance(entry, dict) or not str(entry.get("name") or "").strip():
            raise ValidationError(f"Risk factor #{index} in {path.name} needs a name.")
        name = str(entry["name"]).strip()
        category = str(entry.get("category") or "security").strip().lower()
        if category not in RISK_CATEGORIES:
            raise ValidationError(
                f"'{name}' has unknown category '{category}'; use one of: {', '.join(RISK_CATEGORIES)}."
            )
        factors.append(RiskFactor(
            id=str(entry.get("id") or re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")),
            name=name,
            weight=_number(entry, "weight", name),
            score=_number(entry, "score", name),
            category=category,
        ))
    return factors


def load_dimension_scores(path: Path) -> List[DimensionScore]:
    scores: List[DimensionScore] = []
    for index, entry in enumerate(_load_entries(path, "dimensions"), start=1):
        if not isinstance(entry, dict) or not str(entry.get("dimension") or "").strip():
            raise ValidationError(f"Dimension #{index} in {path.name} needs a dimension name.")
        dimension = str(entry["dimension"]).strip()
        scores.append(DimensionScore(
            dimension=dimension,
            score=_number(entry, "score", dimension),
            notes=str(entry.get("notes") or "").strip(),
        ))
    return scores


def _run_score(path: Path) -> None:
    result = assess_factors(load_risk_factors(path))
    for factor in result.factors:
        print(f"{factor.name}: {factor.score:g} (weight {factor.weight:g})")
    print(f"Overall risk score: {result.overall_score} ({result.risk_level})")


def _run_nist_report(path: Path) -> None:
    print(build_nist_report(load_dimension_scores(path)), end="")


def _string_list(value: Any, label: str, path: Path) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(f"'{label}' in {path.name} must be a list.")
    return [str(item).strip().lower() for item in value if str(item).strip()]


def load_compliance_input(path: Path) -> Tuple[str, Dict[str, float], WorkflowConditions]:
    data = _load_mapping(path)
    control_scores: Dict[str, float] = {}
    for index, entry in enumerate(_load_entries(path, "controls", data), start=1):
        if not isinstance(entry, dict) or not str(entry.get("control_id") or "").strip():
            raise ValidationError(f"Control #{index} in {path.name} needs a control_id.")
        control_id = str(entry["control_id"]).strip()
        control_scores[control_id] = _number(entry, "score", control_id)

    workflow = data.get("workflow") or {}
    if not isinstance(workflow, dict):
        raise ValidationError(f"'workflow' in {path.name} must be a mapping.")
    conditions = WorkflowConditions(
        gap_severity=_string_list(workflow.get("gap_severity"), "gap_severity", path),
        gap_types=_string_list(workflow.get("gap_types"), "gap_types", path),
    )
    return str(data.get("assessment_id") or "").strip(), control_scores, conditions


def _run_compliance(path: Path) -> None:
    assessment_id, control_scores, conditions = load_compliance_input(path)
    result = calculate_compliance(assessment_id, control_scores)

    print(f"Compliance score: {result.overall_score}% ({len(control_scores)} controls)")
    print(f"Gaps ({len(result.gaps)}):")
    for gap in result.gaps:
        flag = " [workflow]" if should_trigger_workflow(conditions, gap) else ""
        print(f"- {gap.control_id} ({gap.severity}): {gap.current_state}, due {gap.due_date[:10]}{flag}")
    print(f"Recommendations ({len(result.recommendations)}):")
    for recommendation in result.recommendations:
        print(
            f"- {recommendation.title} ({recommendation.priority}, "
            f"~{recommendation.estimated_effort}h, ~${recommendation.estimated_cost})"
        )


def _run_risk_template(vendor_id: str) -> None:
    factors = default_risk_factors()
    if vendor_id:
        config = read_config(Path.cwd())
        vendor = VendorService(VendorTalClient(config), config.user_id).get(vendor_id)
        factors = prefill_risk_factors(factors, vendor)

    print(YamlFormatter.dump({
        "factors": [
            {
                "id": factor.id,
                "name": factor.name,
                "category": factor.category,
                "weight": factor.weight,
                "score": factor.score,
            }
            for factor in factors
        ],
    }), end="")


def _run_export(args: argparse.Namespace) -> None:
    cwd = Path.cwd()
    config = read_config(cwd)
    client = VendorTalClient(config)

    export_kwargs = {
        "force": args.force,
        "keep_raw_json": args.keep_raw_json,
    }

    exporters: List[BaseExporter] = []
    if args.copy_all or args.copy_vendors:
        exporters.append(VendorsExporter(client, config.user_id, cwd / "vendors", **export_kwargs))
    if args.copy_all or args.copy_assessments:
        exporters.append(
            AssessmentsExporter(client, config.user_id, cwd / "assessments", **export_kwargs)
        )

    for exporter in exporters:
        exporter.export()


def _assessment_service(config: AppConfig, client: VendorTalClient) -> AssessmentService:
    return AssessmentService(
        client,
        config.user_id,
        notifier=EmailNotifier(client, config.site_url),
        vendors=VendorService(client, config.user_id),
    )


def _run_lifecycle(args: argparse.Namespace) -> None:
    config = read_config(Path.cwd())
    client = VendorTalClient(config)
    service = _assessment_service(config, client)

    if args.send:
        assessment = service.send(args.send)
        print(f"Assessment '{assessment.assessment_name}' sent.")
    elif args.approve:
        assessment = service.review(args.approve, approved=True)
        print(f"Assessment '{assessment.assessment_name}' approved.")
    else:
        assessment = service.review(args.request_revision, approved=False, comments=args.comments)
        print(f"Revision requested for assessment '{assessment.assessment_name}'.")


def _run_upload_evidence(assessment_id: str, question_id: str, file_name: str) -> None:
    path = Path(file_name)
    if not path.is_file():
        raise ValidationError(f"File not found: {path}")

    config = read_config(Path.cwd())
    client = VendorTalClient(config)

    service = _assessment_service(config, client)
    status = service.get(assessment_id).status
    if status not in _ANSWERABLE:
        raise InvalidTransitionError(
            f"Evidence can only be added to a sent or in-progress assessment (status: '{status}')."
        )
    if status == STATUS_SENT:
        logger.info("Starting assessment %s before attaching evidence", assessment_id)
        service.start(assessment_id)

    responses = ResponseService(client, assessment_id)
    response = responses.upload_evidence(question_id, [EvidenceFile.from_path(path)])

    print(f"Uploaded {path.name} ({len(response.evidence_urls)} evidence files attached).")


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.init:
        _run_init(args.init)
    elif args.score:
        _run_score(args.score)
    elif args.nist_report:
        _run_nist_report(args.nist_report)
    elif args.compliance:
        _run_compliance(args.compliance)
    elif args.risk_template is not None:
        _run_risk_template(args.risk_template)
    elif args.copy_all or args.copy_vendors or args.copy_assessments:
        _run_export(args)
    elif args.send or args.approve or args.request_revision:
        _run_lifecycle(args)
    elif args.upload_evidence:
        _run_upload_evidence(*args.upload_evidence)
    else:
        parser.print_help()
