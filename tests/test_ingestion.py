"""Tests for the ingestion/dedup service (in-memory store)."""

from datetime import datetime, timezone

from helpers import MemoryStore, raw_message

from opsdesk.domain.identifiers import derive_message_key
from opsdesk.domain.ingestion import ingest_batch, ingest_one


def _store_with_cabinet(idex_id: int = 42) -> tuple[MemoryStore, int]:
    store = MemoryStore()
    store.add_user(7, "Alice")
    store.add_user(8, "Bob")
    return store, store.add_cabinet(idex_id, login="cab42")


class TestNotificationRouting:
    def test_example_single_open_session(self):
        store, cabinet = _store_with_cabinet()
        store.open_session(7, [cabinet])

        [result] = ingest_batch(
            [raw_message("555", "[X#42] Автоматическое оповещение: новая заявка")],
            stream="notifications",
            store=store,
        )

        assert result.status == "saved_with_users"
        assert result.users == ("Alice",)
        [row] = store.notifications()
        assert row.user_id == 7
        assert row.cabinet_id == "42"
        assert row.idex_cabinet_id == cabinet
        data = row.to_dict()
        assert data["timestamp"] == 1700000000000
        assert data["display_message"] == "новая заявка"

    def test_no_session_stores_unowned_row(self):
        store, _ = _store_with_cabinet()

        [result] = ingest_batch([raw_message("1")], stream="notifications", store=store)

        assert result.status == "saved"
        [row] = store.notifications()
        assert row.user_id is None

    def test_two_sessions_fan_out(self):
        store, cabinet = _store_with_cabinet()
        store.open_session(7, [cabinet])
        store.open_session(8, [cabinet])

        [result] = ingest_batch(
            [raw_message("2", "[X#42] Автоматическое оповещение: hi")],
            stream="notifications",
            store=store,
        )

        assert result.status == "saved_with_users"
        assert sorted(result.users) == ["Alice", "Bob"]
        rows = store.notifications()
        assert sorted(r.user_id for r in rows) == [7, 8]
        assert len({r.id for r in rows}) == 2

    def test_closed_session_excluded(self):
        store, cabinet = _store_with_cabinet()
        session = store.open_session(7, [cabinet])
        store.close_session(session)

        [result] = ingest_batch(
            [raw_message("3", "[X#42] Автоматическое оповещение: hi")],
            stream="notifications",
            store=store,
        )

        assert result.status == "saved"
        assert store.notifications()[0].user_id is None

    def test_session_on_other_cabinet_excluded(self):
        store, _ = _store_with_cabinet()
        other = store.add_cabinet(99)
        store.open_session(7, [other])

        [result] = ingest_batch([raw_message("4")], stream="notifications", store=store)

        assert result.status == "saved"

    def test_non_numeric_cabinet_routes_to_nobody(self):
        store, cabinet = _store_with_cabinet()
        store.open_session(7, [cabinet])

        [result] = ingest_batch(
            [raw_message("5", "no tag", cabinet_id="abc", cabinet_name="Weird")],
            stream="notifications",
            store=store,
        )

        assert result.status == "saved"
        assert store.notifications()[0].idex_cabinet_id is None

    def test_chat_id_bounded_and_external_kept(self):
        store, _ = _store_with_cabinet()

        ingest_batch([raw_message("6", chat_id=-1001234567890)], stream="notifications", store=store)

        [row] = store.notifications()
        assert 1 <= row.chat_id <= 2_147_483_647

    def test_takes_message_lock(self):
        store, _ = _store_with_cabinet()

        ingest_batch([raw_message("777")], stream="notifications", store=store)

        assert store.locked_keys == [derive_message_key("777", chat_id=100)]


class TestDedup:
    def test_reingest_is_idempotent(self):
        store, cabinet = _store_with_cabinet()
        store.open_session(7, [cabinet])
        batch = [raw_message("10"), raw_message("11")]

        first = ingest_batch(batch, stream="notifications", store=store)
        second = ingest_batch(batch, stream="notifications", store=store)

        assert [r.status for r in first] == ["saved_with_users", "saved_with_users"]
        assert [r.status for r in second] == ["duplicate", "duplicate"]
        assert len(store.notifications()) == 2

    def test_duplicate_after_session_opened_later(self):
        store, cabinet = _store_with_cabinet()
        ingest_batch([raw_message("12")], stream="notifications", store=store)
        store.open_session(7, [cabinet])

        [result] = ingest_batch([raw_message("12")], stream="notifications", store=store)

        assert result.status == "duplicate"
        assert [r.user_id for r in store.notifications()] == [None]

    def test_same_message_id_in_different_chats_both_saved(self):
        store, _ = _store_with_cabinet()

        results = ingest_batch(
            [
                raw_message("555", chat_id=100),
                raw_message("555", "[B#2] Автоматическое оповещение: other", chat_id=200),
            ],
            stream="notifications",
            store=store,
        )

        assert [r.status for r in results] == ["saved", "saved"]
        rows = store.notifications()
        assert sorted(r.chat_id for r in rows) == [100, 200]
        assert rows[0].message_key != rows[1].message_key

    def test_non_numeric_ids_dedup(self):
        store, _ = _store_with_cabinet()
        batch = [raw_message("msg-abc")]

        ingest_batch(batch, stream="notifications", store=store)
        [result] = ingest_batch(batch, stream="notifications", store=store)

        assert result.status == "duplicate"
        assert store.notifications()[0].message_key == derive_message_key("msg-abc", chat_id=100)


class TestCancellations:
    def test_marker_creates_cancellation_without_user(self):
        store, cabinet = _store_with_cabinet()
        store.open_session(7, [cabinet])

        [result] = ingest_batch(
            [raw_message("20", "[X#42] Операцию невозможно обработать")],
            stream="notifications",
            store=store,
        )

        assert result.status == "saved"
        assert result.kind == "cancellation"
        assert store.notifications() == []
        [row] = store.cancellations()
        assert row.message_id == "20"
        assert row.chat_id == 100

    def test_cancellation_dedup_on_chat_and_message(self):
        store = MemoryStore()
        item = raw_message("21", "невозможно обработать")

        ingest_batch([item], stream="cancellations", store=store)
        [again] = ingest_batch([item], stream="cancellations", store=store)
        [other_chat] = ingest_batch(
            [raw_message("21", "невозможно обработать", chat_id=200)],
            stream="cancellations",
            store=store,
        )

        assert again.status == "duplicate"
        assert other_chat.status == "saved"
        assert len(store.cancellations()) == 2

    def test_notification_on_cancellation_stream_ignored(self):
        store = MemoryStore()

        [result] = ingest_batch([raw_message("22", "hello")], stream="cancellations", store=store)

        assert result.status == "ignored"
        assert store.notifications() == []
        assert store.cancellations() == []


class TestFailureIsolation:
    def test_schema_not_ready(self):
        store = MemoryStore()
        store.schema_ready = False

        results = ingest_batch(
            [raw_message("30"), raw_message("31", "невозможно обработать")],
            stream="notifications",
            store=store,
        )

        assert [r.status for r in results] == ["not_saved", "not_saved"]
        assert all(r.reason == "initializing" for r in results)

    def test_invalid_item_reported_and_batch_continues(self):
        store = MemoryStore()

        results = ingest_batch(
            [{"message_id": "40"}, "garbage", raw_message("41")],
            stream="notifications",
            store=store,
        )

        assert [r.status for r in results] == ["error", "error", "saved"]
        assert results[0].message_id == "40"

    def test_insert_failure_isolated_and_rolled_back(self):
        store, cabinet = _store_with_cabinet()
        store.open_session(7, [cabinet])
        store.fail_message_ids.add("50")

        results = ingest_batch(
            [raw_message("50"), raw_message("51")],
            stream="notifications",
            store=store,
        )

        assert results[0].status == "error"
        assert "simulated" in results[0].error
        assert results[1].status == "saved_with_users"
        assert [r.message_id for r in store.notifications()] == ["51"]

    def test_result_dict_shape(self):
        store, cabinet = _store_with_cabinet()
        store.open_session(7, [cabinet])

        result = ingest_one(raw_message("60"), stream="notifications", store=store)

        assert result.to_dict() == {
            "status": "saved_with_users",
            "message_id": "60",
            "kind": "notification",
            "users": ["Alice"],
        }


def test_timestamp_stored_as_utc():
    store = MemoryStore()

    ingest_batch([raw_message("70", timestamp=1700000000)], stream="notifications", store=store)

    assert store.notifications()[0].timestamp == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
