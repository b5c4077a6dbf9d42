from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from vendortal_cli.client import VendorTalClient
from vendortal_cli.exceptions import VendorTalError
from vendortal_cli.models.vendors import Vendor
from vendortal_cli.rows import parse_vendor
from vendortal_cli.scoring import risk_level
from vendortal_cli.services.base import BaseService, utc_timestamp

VENDORS_TABLE = "vs_vendors"


class VendorService(BaseService):
    def __init__(self, client: VendorTalClient, user_id: Optional[str] = None) -> None:
        super().__init__(client, user_id)
        self.vendors: List[Vendor] = []

    def refresh(self) -> List[Vendor]:
        if not self.user_id:
            self.vendors = []
            return self.vendors

        try:
            rows = self.client.select(
                VENDORS_TABLE,
                filters={"user_id": self.user_id},
                order="created_at",
                ascending=False,
            )
        except VendorTalError as exc:
            self._record_error(exc, "Failed to fetch vendors")
            return self.vendors

        self.vendors = [parse_vendor(row) for row in rows]
        self.error = None
        return self.vendors

    def find(self, vendor_id: str) -> Optional[Vendor]:
        for vendor in self.vendors:
            if vendor.id == vendor_id:
                return vendor
        return None

    def get(self, vendor_id: str) -> Vendor:
        user_id = self._require_user()
        try:
            row = self.client.select_one(
                VENDORS_TABLE, filters={"id": vendor_id, "user_id": user_id},
            )
        except VendorTalError as exc:
            self._record_error(exc, "Failed to fetch vendor")
            raise
        return parse_vendor(row)

    def create(self, name: str, **fields: Any) -> Vendor:
        user_id = self._require_user()
        payload: Dict[str, Any] = dict(fields)
        payload["name"] = name
        payload["user_id"] = user_id
        try:
            row = self.client.insert(VENDORS_TABLE, payload)
        except VendorTalError as exc:
            self._record_error(exc, "Failed to create vendor")
            raise

        vendor = parse_vendor(row)
        self.vendors.insert(0, vendor)
        return vendor

    def update(self, vendor_id: str, changes: Dict[str, Any]) -> Vendor:
        user_id = self._require_user()
        try:
            row = self.client.update(
                VENDORS_TABLE, changes, filters={"id": vendor_id, "user_id": user_id},
            )
        except VendorTalError as exc:
            self._record_error(exc, "Failed to update vendor")
            raise

        vendor = parse_vendor(row)
        self.vendors = [vendor if v.id == vendor_id else v for v in self.vendors]
        return vendor

    def delete(self, vendor_id: str) -> None:
        user_id = self._require_user()
        try:
            self.client.delete(VENDORS_TABLE, filters={"id": vendor_id, "user_id": user_id})
        except VendorTalError as exc:
            self._record_error(exc, "Failed to delete vendor")
            raise

        self.vendors = [v for v in self.vendors if v.id != vendor_id]

    def record_assessment_outcome(
        self,
        vendor_id: str,
        overall_score: int,
        now: Optional[datetime] = None,
    ) -> Vendor:
        """Cache the latest assessment result on the vendor row."""
        return self.update(vendor_id, {
            "risk_score": overall_score,
            "risk_level": risk_level(overall_score).lower(),
            "last_assessment_date": utc_timestamp(now),
        })
