import asyncio
from datetime import datetime

from printshop.realtime.connection import Envelope
from printshop.realtime.hub import RealtimeHub
from printshop.realtime.principal import Principal


class FakeStore:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[dict] = []

    async def __call__(self, order_id, sender_id, recipient_id, message):
        self.calls.append(
            {
                "order_id": order_id,
                "sender_id": sender_id,
                "recipient_id": recipient_id,
                "message": message,
            }
        )
        if self.fail:
            raise RuntimeError("database is locked")
        return {
            "id": len(self.calls),
            "order_id": order_id,
            "sender_id": sender_id,
            "recipient_id": recipient_id,
            "message": message,
            "is_read": False,
            "created_at": datetime(2024, 1, 1).isoformat(),
        }


CUSTOMER = Principal(user_id=1, role="customer", name="Carla")
OWNER = Principal(user_id=2, role="shop_owner", shop_id=7, name="Owen")


def _send(hub, principal, conn, payload):
    asyncio.run(hub.dispatch(principal, conn, Envelope(type="send_message", payload=payload)))


def test_message_relayed_to_online_recipient_and_acked(make_conn):
    store = FakeStore()
    hub = RealtimeHub(save_message=store)
    sender, recipient = make_conn(1), make_conn(2)
    hub.connect(CUSTOMER, sender)
    hub.connect(OWNER, recipient)

    _send(hub, CUSTOMER, sender, {"orderId": "UF000001", "message": " hi there ", "recipientId": 2})

    assert store.calls == [
        {"order_id": "UF000001", "sender_id": 1, "recipient_id": 2, "message": " hi there "}
    ]
    assert recipient.types() == ["new_message"]
    pushed = recipient.sent[0]["payload"]
    assert pushed["message"] == " hi there "
    assert pushed["senderName"] == "Carla"
    assert pushed["sender_id"] == 1
    assert sender.types() == ["message_sent"]
    assert sender.sent[0]["payload"]["id"] == pushed["id"]
    assert "senderName" not in sender.sent[0]["payload"]


def test_message_persisted_when_recipient_offline(make_conn):
    store = FakeStore()
    hub = RealtimeHub(save_message=store)
    sender = make_conn(1)
    hub.connect(CUSTOMER, sender)

    _send(hub, CUSTOMER, sender, {"orderId": "UF000001", "message": "anyone?", "recipientId": 2})

    assert len(store.calls) == 1
    assert sender.types() == ["message_sent"]


def test_persistence_failure_reports_error_to_sender_only(make_conn):
    store = FakeStore(fail=True)
    hub = RealtimeHub(save_message=store)
    sender, recipient = make_conn(1), make_conn(2)
    hub.connect(CUSTOMER, sender)
    hub.connect(OWNER, recipient)

    _send(hub, CUSTOMER, sender, {"orderId": "UF000001", "message": "hello", "recipientId": 2})

    assert sender.types() == ["error"]
    assert sender.sent[0]["payload"] == {"message": "Failed to send message"}
    assert recipient.sent == []


def test_invalid_payload_is_rejected_without_persisting(make_conn):
    store = FakeStore()
    hub = RealtimeHub(save_message=store)
    sender = make_conn(1)
    hub.connect(CUSTOMER, sender)

    _send(hub, CUSTOMER, sender, {"orderId": "UF000001", "message": "   ", "recipientId": 0})

    assert store.calls == []
    assert sender.types() == ["error"]
    errors = sender.sent[0]["payload"]["field_errors"]
    assert "message" in errors
    assert "recipientId" in errors


def test_missing_payload_is_rejected(make_conn):
    store = FakeStore()
    hub = RealtimeHub(save_message=store)
    sender = make_conn(1)
    asyncio.run(hub.dispatch(CUSTOMER, sender, Envelope(type="send_message")))
    assert store.calls == []
    assert sender.types() == ["error"]


def test_overlong_message_is_rejected(make_conn):
    store = FakeStore()
    hub = RealtimeHub(save_message=store)
    sender = make_conn(1)
    _send(hub, CUSTOMER, sender, {"orderId": "UF000001", "message": "x" * 1001, "recipientId": 2})
    assert store.calls == []
    assert "message" in sender.sent[0]["payload"]["field_errors"]


def test_access_check_blocks_non_participants(make_conn):
    store = FakeStore()
    checked = []

    async def authorize(user_id, order_id):
        checked.append((user_id, order_id))
        return False

    hub = RealtimeHub(save_message=store, authorize=authorize)
    sender, recipient = make_conn(1), make_conn(2)
    hub.connect(CUSTOMER, sender)
    hub.connect(OWNER, recipient)

    _send(hub, CUSTOMER, sender, {"orderId": "WI000003", "message": "let me in", "recipientId": 2})

    assert checked == [(1, "WI000003")]
    assert store.calls == []
    assert sender.sent[0]["payload"] == {"message": "Order not found or access denied"}
    assert recipient.sent == []


def test_numeric_order_id_is_accepted(make_conn):
    store = FakeStore()
    hub = RealtimeHub(save_message=store)
    sender = make_conn(1)
    _send(hub, CUSTOMER, sender, {"orderId": 12, "message": "ok", "recipientId": "2"})
    assert store.calls[0]["order_id"] == "12"
    assert store.calls[0]["recipient_id"] == 2


def test_sender_messages_relayed_in_arrival_order(make_conn):
    store = FakeStore()
    hub = RealtimeHub(save_message=store)
    sender, recipient = make_conn(1), make_conn(2)
    hub.connect(CUSTOMER, sender)
    hub.connect(OWNER, recipient)

    for text in ("one", "two", "three"):
        _send(hub, CUSTOMER, sender, {"orderId": "UF000001", "message": text, "recipientId": 2})

    assert [e["payload"]["message"] for e in recipient.sent] == ["one", "two", "three"]


def test_typing_is_forwarded_and_never_persisted(make_conn):
    store = FakeStore()
    hub = RealtimeHub(save_message=store)
    sender, recipient = make_conn(1), make_conn(2)
    hub.connect(CUSTOMER, sender)
    hub.connect(OWNER, recipient)

    payload = {"orderId": "UF000001", "recipientId": 2}
    asyncio.run(hub.dispatch(CUSTOMER, sender, Envelope(type="typing_start", payload=payload)))
    asyncio.run(hub.dispatch(CUSTOMER, sender, Envelope(type="typing_stop", payload=payload)))

    assert store.calls == []
    assert sender.sent == []
    assert recipient.sent == [
        {"v": 1, "type": "user_typing", "payload": {"userId": 1, "userName": "Carla", "orderId": "UF000001"}},
        {"v": 1, "type": "user_stopped_typing", "payload": {"userId": 1, "orderId": "UF000001"}},
    ]


def test_typing_to_offline_or_bad_payload_is_silent(make_conn):
    store = FakeStore()
    hub = RealtimeHub(save_message=store)
    sender = make_conn(1)
    hub.connect(CUSTOMER, sender)

    assert asyncio.run(hub.typing.typing_start(CUSTOMER, {"orderId": "UF000001", "recipientId": 99})) is False
    assert asyncio.run(hub.typing.typing_stop(CUSTOMER, {"recipientId": "nope"})) is False
    assert sender.sent == []
    assert store.calls == []
