"""
Tender Projections

The tender registry is the "present" computed from the tender streams.
Values are kept in their JSON form (as found in payloads) and validated into
Tender models on the way out.
"""

from datetime import datetime
from typing import Any

from tenderflow.kernel.errors import NotFoundError
from tenderflow.kernel.events import Event
from tenderflow.kernel.time import parse_datetime
from tenderflow.tender.models import Tender, TenderStatus


class TenderRegistry:
    """
    Tender registry projection

    Rebuilt from TenderCreated, TenderUpdated, TenderPublished,
    TenderBidReceived, TenderClosed, TenderAwarded and TenderExpired events.
    """

    def __init__(self) -> None:
        self.tenders: dict[str, dict[str, Any]] = {}

    def apply_event(self, event: Event) -> None:
        if event.event_type == "TenderCreated":
            self._apply_tender_created(event)
        elif event.event_type == "TenderUpdated":
            self._apply_tender_updated(event)
        elif event.event_type == "TenderPublished":
            self._apply_tender_published(event)
        elif event.event_type == "TenderBidReceived":
            self._apply_bid_received(event)
        elif event.event_type == "TenderClosed":
            self._apply_tender_closed(event)
        elif event.event_type == "TenderAwarded":
            self._apply_tender_awarded(event)
        elif event.event_type == "TenderExpired":
            self._apply_tender_expired(event)

    def _apply_tender_created(self, event: Event) -> None:
        payload = event.payload
        self.tenders[payload["tender_id"]] = {
            "tender_id": payload["tender_id"],
            "title": payload["title"],
            "description": payload["description"],
            "category": payload["category"],
            "tags": payload.get("tags", []),
            "owner_company": payload["owner_company"],
            "created_by": payload["created_by"],
            "status": TenderStatus.DRAFT.value,
            "estimated_value": payload.get("estimated_value"),
            "emd_amount": payload.get("emd_amount"),
            "abnormally_low_bid_threshold": payload["abnormally_low_bid_threshold"],
            "start_date": payload.get("start_date"),
            "end_date": payload.get("end_date"),
            "bid_ids": [],
            "created_at": payload["created_at"],
            "version": event.version,
        }

    def _apply_tender_updated(self, event: Event) -> None:
        tender = self.tenders.get(event.payload["tender_id"])
        if tender:
            tender.update(event.payload["changes"])
            tender["updated_at"] = event.payload["updated_at"]
            tender["version"] = event.version

    def _apply_tender_published(self, event: Event) -> None:
        payload = event.payload
        tender = self.tenders.get(payload["tender_id"])
        if tender:
            tender["status"] = TenderStatus.PUBLISHED.value
            tender["start_date"] = payload["start_date"]
            tender["end_date"] = payload["end_date"]
            tender["published_at"] = payload["published_at"]
            tender["version"] = event.version

    def _apply_bid_received(self, event: Event) -> None:
        payload = event.payload
        tender = self.tenders.get(payload["tender_id"])
        if tender:
            if payload["bid_id"] not in tender["bid_ids"]:
                tender["bid_ids"].append(payload["bid_id"])
            tender["version"] = event.version

    def _apply_tender_closed(self, event: Event) -> None:
        payload = event.payload
        tender = self.tenders.get(payload["tender_id"])
        if tender:
            tender["status"] = TenderStatus.CLOSED.value
            tender["end_date"] = payload["end_date"]
            tender["closed_at"] = payload["closed_at"]
            tender["version"] = event.version

    def _apply_tender_awarded(self, event: Event) -> None:
        payload = event.payload
        tender = self.tenders.get(payload["tender_id"])
        if tender:
            tender["status"] = TenderStatus.AWARDED.value
            tender["awarded_bid_id"] = payload["winning_bid_id"]
            tender["awarded_at"] = payload["awarded_at"]
            tender["version"] = event.version

    def _apply_tender_expired(self, event: Event) -> None:
        payload = event.payload
        tender = self.tenders.get(payload["tender_id"])
        if tender:
            tender["status"] = TenderStatus.EXPIRED.value
            tender["expired_at"] = payload["expired_at"]
            tender["version"] = event.version

    # Queries

    def get(self, tender_id: str) -> dict[str, Any] | None:
        return self.tenders.get(tender_id)

    def require(self, tender_id: str) -> Tender:
        """
        Raises:
            NotFoundError: Unknown tender id
        """
        data = self.tenders.get(tender_id)
        if data is None:
            raise NotFoundError("Tender", tender_id)
        return Tender.model_validate(data)

    def list_tenders(
        self,
        status: TenderStatus | None = None,
        owner_company: str | None = None,
    ) -> list[Tender]:
        tenders = []
        for data in self.tenders.values():
            if status and data["status"] != status.value:
                continue
            if owner_company and data["owner_company"] != owner_company:
                continue
            tenders.append(Tender.model_validate(data))
        return tenders

    def list_past_deadline(self, now: datetime) -> list[Tender]:
        """PUBLISHED tenders whose end_date is strictly before now"""
        due = []
        for data in self.tenders.values():
            if data["status"] != TenderStatus.PUBLISHED.value:
                continue
            end_date = parse_datetime(data.get("end_date"))
            if end_date is not None and end_date < now:
                due.append(Tender.model_validate(data))
        return due

    def count_by_status(self) -> dict[str, int]:
        counts = {status.value: 0 for status in TenderStatus}
        for data in self.tenders.values():
            counts[data["status"]] += 1
        return counts
