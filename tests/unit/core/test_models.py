"""Unit tests for BaseModel bookkeeping (UUIDv7 keys, timestamps).

``OutboxEvent`` is the simplest concrete BaseModel, so it stands in for
the abstract class here.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import pytest
from freezegun import freeze_time

from modules.core.models import BaseModel, OutboxEvent

pytestmark = pytest.mark.unit


def _make(**overrides) -> OutboxEvent:
    fields = {
        "event_type": "OrderCreated",
        "payload": {},
        "aggregate_id": "order-1",
        "topic": "orders",
    }
    fields.update(overrides)
    return OutboxEvent.objects.create(**fields)


class TestBaseModel:
    def test_outbox_is_a_base_model(self):
        assert issubclass(OutboxEvent, BaseModel)

    def test_id_is_uuid_version_7(self):
        obj = _make()
        assert isinstance(obj.id, uuid.UUID)
        assert obj.id.version == 7

    def test_ids_are_time_ordered(self):
        with freeze_time("2026-01-01 10:00:00"):
            first = _make()
        with freeze_time("2026-01-01 10:00:01"):
            second = _make()
        assert str(first.id) < str(second.id)

    def test_explicit_id_is_kept(self):
        event_id = uuid.uuid4()
        assert _make(id=event_id).id == event_id

    def test_id_is_not_editable(self):
        assert OutboxEvent._meta.get_field("id").editable is False

    def test_timestamps_on_create(self):
        with freeze_time("2026-01-01 10:00:00"):
            obj = _make()
        expected = datetime(2026, 1, 1, 10, 0, tzinfo=timezone.utc)
        assert obj.created_at == expected
        assert obj.updated_at == expected

    def test_save_with_update_fields_refreshes_updated_at(self):
        with freeze_time("2026-01-01 10:00:00"):
            obj = _make()
        with freeze_time("2026-01-01 11:00:00"):
            obj.topic = "orders.v2"
            obj.save(update_fields=["topic"])
        obj.refresh_from_db()

        assert obj.topic == "orders.v2"
        assert obj.updated_at == datetime(2026, 1, 1, 11, 0, tzinfo=timezone.utc)
        assert obj.created_at == datetime(2026, 1, 1, 10, 0, tzinfo=timezone.utc)
