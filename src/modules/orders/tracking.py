"""Tracking projector: the read-only progress view of an order.

Derives workflow position, per-step completion and timestamps from the
canonical order state.  Never mutates the order and never raises for an
unknown or legacy status; such a status projects to index -1 with no
step completed.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Mapping, Optional, Sequence

from django.utils.dateparse import parse_datetime

from modules.orders.constants import (
    STATUS_ALIASES,
    STEP_TIMESTAMP_MILESTONES,
    OrderStatus,
)
from modules.orders.dtos import (
    DeliveryOTPDTO,
    OrderTrackingDTO,
    TimelineEntryDTO,
    TrackingStepDTO,
)
from modules.orders.otp import otp_visible_to
from modules.orders.workflow import current_workflow, is_custom_order

UNKNOWN_INDEX = -1


def status_index(workflow: Sequence[str], status: str) -> int:
    """Position of *status* in *workflow*, resolving aliases; -1 if unknown."""
    if status in workflow:
        return workflow.index(status)
    alias = STATUS_ALIASES.get(status)
    if alias is not None and alias in workflow:
        return workflow.index(alias)
    return UNKNOWN_INDEX


def is_step_completed(status: str, current_index: int, index: int) -> bool:
    """Cancelled and unknown orders show no completed steps."""
    if status == OrderStatus.CANCELLED:
        return False
    if current_index == UNKNOWN_INDEX:
        return False
    return index <= current_index


def step_timestamp(
    status: str,
    timestamps: Optional[Mapping[str, str]],
    timeline: Iterable[Any],
) -> Optional[datetime]:
    """Milestone timestamp for the step, else the first matching timeline entry."""
    milestone = STEP_TIMESTAMP_MILESTONES.get(status)
    if milestone and timestamps and timestamps.get(milestone):
        return parse_datetime(timestamps[milestone])
    for entry in timeline:
        if entry.status == status:
            return entry.at
    return None


def production_progress(order: Any, custom: bool) -> int:
    if custom and order.status == OrderStatus.IN_PRODUCTION:
        return order.progress_percentage
    return 0


class TrackingProjector:
    """Builds ``OrderTrackingDTO`` views.

    Reads ``order.items`` and ``order.timeline`` (prefetched by the
    repository) and nothing else.
    """

    def project(self, order: Any, viewer_role: str) -> OrderTrackingDTO:
        custom = is_custom_order(order)
        workflow = current_workflow(order)
        timeline = list(order.timeline.all())
        current = status_index(workflow, order.status)

        steps = [
            TrackingStepDTO(
                position=index,
                status=step,
                completed=is_step_completed(order.status, current, index),
                current=index == current,
                timestamp=step_timestamp(step, order.timestamps, timeline),
            )
            for index, step in enumerate(workflow)
        ]

        otp = None
        if order.delivery_otp is not None and otp_visible_to(viewer_role):
            otp = DeliveryOTPDTO(
                code=order.delivery_otp.code,
                generated_at=order.delivery_otp.generated_at,
                verified=order.delivery_otp.verified,
            )

        return OrderTrackingDTO(
            order_id=order.id,
            order_number=order.order_number,
            order_type=order.order_type,
            current_status=order.status,
            current_index=current,
            steps=steps,
            progress_percentage=production_progress(order, custom),
            timeline=[
                TimelineEntryDTO(
                    sequence=entry.sequence,
                    status=entry.status,
                    at=entry.at,
                    note=entry.note,
                    location=entry.location,
                )
                for entry in timeline
            ],
            shipping_address=dict(order.shipping_address or {}),
            designer_id=order.designer_id,
            delivery_person_id=order.delivery_person_id,
            delivery_otp=otp,
            proof_of_delivery=order.proof_of_delivery,
        )
