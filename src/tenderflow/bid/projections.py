"""
Bid Projections

BidRegistry tracks every bid plus one slot per bidder stream. The slot is
what create_draft consults: the stream version to write at, the bid that
currently occupies it, and whether the company has disqualified itself by
withdrawing.
"""

from typing import Any

from tenderflow.bid.models import Bid, BidStatus
from tenderflow.kernel.errors import NotFoundError
from tenderflow.kernel.events import Event


class BidRegistry:
    """
    Bid registry projection

    Rebuilt from the Bid* events of all bidder streams.
    """

    def __init__(self) -> None:
        self.bids: dict[str, dict[str, Any]] = {}
        self.slots: dict[str, dict[str, Any]] = {}

    def apply_event(self, event: Event) -> None:
        if event.stream_type != "Bidder":
            return

        slot = self.slots.setdefault(
            event.stream_id,
            {
                "stream_id": event.stream_id,
                "tender_id": event.payload["tender_id"],
                "company_id": event.payload["bidder_company"],
                "live_bid_id": None,
                "disqualified": False,
                "version": 0,
            },
        )
        slot["version"] = event.version

        if event.event_type == "BidDraftCreated":
            self._apply_draft_created(event, slot)
        elif event.event_type == "BidDraftUpdated":
            self._apply_draft_updated(event)
        elif event.event_type == "BidSubmitted":
            self._apply_submitted(event)
        elif event.event_type == "BidPlacedUnderReview":
            self._apply_under_review(event)
        elif event.event_type == "BidAccepted":
            self._apply_accepted(event)
        elif event.event_type == "BidRejected":
            self._apply_rejected(event)
        elif event.event_type == "BidWithdrawn":
            self._apply_withdrawn(event, slot)
        elif event.event_type == "BidDraftDiscarded":
            self._apply_discarded(event, slot)

    def _apply_draft_created(self, event: Event, slot: dict[str, Any]) -> None:
        payload = event.payload
        self.bids[payload["bid_id"]] = {
            "bid_id": payload["bid_id"],
            "tender_id": payload["tender_id"],
            "bidder_company": payload["bidder_company"],
            "submitted_by": payload["submitted_by"],
            "status": BidStatus.DRAFT.value,
            "amount": payload.get("amount"),
            "delivery_days": payload.get("delivery_days"),
            "valid_till": payload.get("valid_till"),
            "notes": payload.get("notes"),
            "technical_docs": payload.get("technical_docs", []),
            "financial_docs": payload.get("financial_docs", []),
            "emd_payment_proof": payload.get("emd_payment_proof") or {},
            "anomaly_score": 0,
            "ai_notes": None,
            "created_at": payload["created_at"],
            "stream_id": event.stream_id,
            "version": event.version,
        }
        slot["live_bid_id"] = payload["bid_id"]

    def _touch(self, event: Event) -> dict[str, Any] | None:
        bid = self.bids.get(event.payload["bid_id"])
        if bid:
            bid["version"] = event.version
        return bid

    def _apply_draft_updated(self, event: Event) -> None:
        bid = self._touch(event)
        if bid:
            bid.update(event.payload["changes"])
            bid["updated_at"] = event.payload["updated_at"]

    def _apply_submitted(self, event: Event) -> None:
        bid = self._touch(event)
        if bid:
            bid["status"] = BidStatus.SUBMITTED.value
            bid["anomaly_score"] = event.payload.get("anomaly_score", 0)
            bid["ai_notes"] = event.payload.get("ai_notes")
            bid["submitted_at"] = event.payload["submitted_at"]

    def _apply_under_review(self, event: Event) -> None:
        bid = self._touch(event)
        if bid:
            bid["status"] = BidStatus.UNDER_REVIEW.value
            bid["reviewed_at"] = event.payload["reviewed_at"]

    def _apply_accepted(self, event: Event) -> None:
        bid = self._touch(event)
        if bid:
            bid["status"] = BidStatus.ACCEPTED.value
            bid["decided_at"] = event.payload["accepted_at"]
            bid["decided_by"] = event.payload["accepted_by"]

    def _apply_rejected(self, event: Event) -> None:
        bid = self._touch(event)
        if bid:
            bid["status"] = BidStatus.REJECTED.value
            bid["decided_at"] = event.payload["rejected_at"]
            bid["decided_by"] = event.payload["rejected_by"]
            bid["rejection_reason"] = event.payload.get("reason")

    def _apply_withdrawn(self, event: Event, slot: dict[str, Any]) -> None:
        bid = self._touch(event)
        if bid:
            bid["status"] = BidStatus.WITHDRAWN.value
            bid["withdrawn_at"] = event.payload["withdrawn_at"]
            bid["withdrawn_by"] = event.payload["withdrawn_by"]
        slot["disqualified"] = True

    def _apply_discarded(self, event: Event, slot: dict[str, Any]) -> None:
        self.bids.pop(event.payload["bid_id"], None)
        if slot["live_bid_id"] == event.payload["bid_id"]:
            slot["live_bid_id"] = None

    # Queries

    def get(self, bid_id: str) -> dict[str, Any] | None:
        return self.bids.get(bid_id)

    def require(self, bid_id: str) -> Bid:
        """
        Raises:
            NotFoundError: Unknown (or discarded) bid id
        """
        data = self.bids.get(bid_id)
        if data is None:
            raise NotFoundError("Bid", bid_id)
        return Bid.model_validate(data)

    def slot(self, stream_id: str) -> dict[str, Any] | None:
        return self.slots.get(stream_id)

    def stream_version(self, stream_id: str) -> int:
        slot = self.slots.get(stream_id)
        return slot["version"] if slot else 0

    def for_tender(self, tender_id: str, statuses: frozenset[BidStatus] | None = None) -> list[Bid]:
        """Bids of a tender in creation order, optionally filtered by status"""
        return [
            Bid.model_validate(data)
            for data in self.bids.values()
            if data["tender_id"] == tender_id
            and (statuses is None or BidStatus(data["status"]) in statuses)
        ]

    def for_company(self, company_id: str) -> list[Bid]:
        return [
            Bid.model_validate(data)
            for data in self.bids.values()
            if data["bidder_company"] == company_id
        ]
