from __future__ import annotations

from typing import Any, Dict, List, Tuple

from vendortal_cli.exceptions import ApiError
from vendortal_cli.exporters.base import MAX_LINE_LENGTH, BaseExporter, format_bullet
from vendortal_cli.models.vendors import Vendor
from vendortal_cli.services.vendors import VendorService


def numbered_vendors(vendors: List[Vendor]) -> List[Tuple[str, Vendor]]:
    """Pair vendors with stable ``VND-<n>`` codes, oldest first."""
    ordered = sorted(vendors, key=lambda v: (v.created_at, v.id))
    return [(f"VND-{index}", vendor) for index, vendor in enumerate(ordered, start=1)]


def _dash(value: Any) -> str:
    return "-" if value is None or value == "" else str(value)


class VendorsExporter(BaseExporter):
    def export(self) -> None:
        self._ensure_output_dir()
        self._log("Exporting vendors...")

        service = VendorService(self.client, self.user_id)
        vendors = service.refresh()
        if service.error:
            raise ApiError(service.error)

        codes: List[str] = []
        entries: List[List[str]] = []
        for code, vendor in numbered_vendors(vendors):
            self._write_markdown(
                code,
                title=_document_title(code, vendor),
                body=_build_body(vendor),
                frontmatter=_build_frontmatter(code, vendor),
                raw=vendor,
            )
            codes.append(code)
            entries.append(_index_entry(code, vendor))

        self._write_index("Vendors", "vendor", entries)
        self._log_done("vendors", codes)


def _document_title(code: str, vendor: Vendor) -> str:
    if vendor.name:
        title = f"{code} {vendor.name}"
        if len(f"# {title}") <= MAX_LINE_LENGTH:
            return title
    return code


def _build_frontmatter(code: str, vendor: Vendor) -> Dict[str, Any]:
    fm: Dict[str, Any] = {
        "id": code,
        "vendor_id": vendor.id,
        "title": vendor.name,
        "industry": vendor.industry,
        "risk_score": vendor.risk_score,
        "risk_level": vendor.risk_level,
        "compliance_status": vendor.compliance_status,
    }
    if vendor.last_assessment_date:
        fm["last_assessment_date"] = vendor.last_assessment_date
    return fm


def _build_body(vendor: Vendor) -> str:
    parts: List[str] = ["## Profile", ""]
    parts.append(format_bullet(f"**Industry:** {_dash(vendor.industry)}"))
    parts.append(format_bullet(f"**Website:** {_dash(vendor.website)}", break_long_words=True))
    parts.append(format_bullet(f"**Contact:** {_dash(vendor.contact_email)}"))
    parts.append("")

    parts.append("## Risk")
    parts.append("")
    if vendor.risk_score is None:
        parts.append("[//]: # (Not assessed yet)")
    else:
        parts.append(format_bullet(f"**Risk Score:** {vendor.risk_score:g}"))
        parts.append(format_bullet(f"**Risk Level:** {_dash(vendor.risk_level)}"))
        parts.append(format_bullet(f"**Last Assessment:** {_dash(vendor.last_assessment_date)}"))
    parts.append(format_bullet(f"**Compliance Status:** {_dash(vendor.compliance_status)}"))
    parts.append("")

    parts.append("## Notes")
    parts.append("")
    parts.append(vendor.notes if vendor.notes else "[//]: # (No notes)")

    return "\n".join(parts)


def _index_entry(code: str, vendor: Vendor) -> List[str]:
    lines: List[str] = []
    heading = f"## [{code}]({code}.md) {vendor.name}"
    if vendor.name and len(heading) <= MAX_LINE_LENGTH:
        lines.append(heading)
    else:
        lines.append(f"## [{code}]({code}.md)")
    lines.append("")
    lines.append(format_bullet(f"**Industry:** {_dash(vendor.industry)}"))
    score = "-" if vendor.risk_score is None else f"{vendor.risk_score:g}"
    lines.append(format_bullet(f"**Risk Score:** {score}"))
    lines.append(format_bullet(f"**Risk Level:** {_dash(vendor.risk_level)}"))
    return lines
