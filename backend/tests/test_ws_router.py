import pytest
from datetime import timedelta
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from printshop.main import app
from printshop.api.auth import create_access_token
from printshop.models import ChatMessage, Order, OrderType, Shop, User, UserRole

WS_URL = "/api/v1/ws"


def create_data(Session):
    db = Session()
    owner = User(email="owner@test.com", password="x", name="Owen", role=UserRole.SHOP_OWNER)
    customer = User(email="customer@test.com", password="x", name="Carla", role=UserRole.CUSTOMER)
    outsider = User(email="outsider@test.com", password="x", name="Otto", role=UserRole.CUSTOMER)
    admin = User(email="admin@test.com", password="x", name="Ada", role=UserRole.ADMIN)
    inactive = User(
        email="gone@test.com", password="x", name="Gone", role=UserRole.CUSTOMER, is_active=False
    )
    db.add_all([owner, customer, outsider, admin, inactive])
    db.commit()
    shop = Shop(id=7, owner_id=owner.id, name="Quick Prints")
    db.add(shop)
    db.commit()
    order = Order(
        id="UF000001",
        shop_id=shop.id,
        customer_id=customer.id,
        customer_name="Carla",
        order_type=OrderType.UPLOADED_FILES,
    )
    db.add(order)
    db.commit()
    ids = {
        "owner": owner.id,
        "customer": customer.id,
        "outsider": outsider.id,
        "admin": admin.id,
        "order": order.id,
    }
    db.close()
    return ids


def ws_url(email: str) -> str:
    return f"{WS_URL}?token={create_access_token({'sub': email})}"


def assert_nothing_queued(ws):
    """A pong must be the next frame, so nothing else was pushed before it."""
    ws.send_json({"v": 1, "type": "ping"})
    assert ws.receive_json() == {"v": 1, "type": "pong"}


def test_ws_missing_token_is_refused(Session):
    create_data(Session)
    with TestClient(app) as client:
        with pytest.raises(WebSocketDisconnect) as exc:
            with client.websocket_connect(WS_URL):
                pass
    assert exc.value.code == 4401


def test_ws_invalid_token_is_refused(Session):
    create_data(Session)
    with TestClient(app) as client:
        with pytest.raises(WebSocketDisconnect) as exc:
            with client.websocket_connect(f"{WS_URL}?token=bad"):
                pass
    assert exc.value.code == 4401


def test_ws_expired_and_refresh_tokens_are_refused(Session):
    create_data(Session)
    expired = create_access_token({"sub": "customer@test.com"}, expires_delta=timedelta(minutes=-10))
    refresh = create_access_token({"sub": "customer@test.com", "typ": "refresh"})
    with TestClient(app) as client:
        for token in (expired, refresh):
            with pytest.raises(WebSocketDisconnect) as exc:
                with client.websocket_connect(f"{WS_URL}?token={token}"):
                    pass
            assert exc.value.code == 4401


def test_ws_inactive_or_unknown_user_is_refused(fresh_hub, Session):
    create_data(Session)
    with TestClient(app) as client:
        for email in ("gone@test.com", "nobody@test.com"):
            with pytest.raises(WebSocketDisconnect):
                with client.websocket_connect(ws_url(email)):
                    pass
    assert len(fresh_hub.registry) == 0


def test_ws_connect_reports_role_channels(Session):
    ids = create_data(Session)
    with TestClient(app) as client:
        with client.websocket_connect(ws_url("owner@test.com")) as ws:
            assert ws.receive_json() == {
                "v": 1,
                "type": "connected",
                "payload": {"userId": ids["owner"], "channels": ["shop:7"]},
            }
        with client.websocket_connect(ws_url("customer@test.com")) as ws:
            hello = ws.receive_json()
            assert hello["payload"]["channels"] == [f"customer:{ids['customer']}"]
        with client.websocket_connect(ws_url("admin@test.com")) as ws:
            assert ws.receive_json()["payload"]["channels"] == []


def test_ws_bearer_subprotocol_is_accepted(Session):
    create_data(Session)
    token = create_access_token({"sub": "customer@test.com"})
    with TestClient(app) as client:
        with client.websocket_connect(WS_URL, subprotocols=["bearer", token]) as ws:
            assert ws.receive_json()["type"] == "connected"
            assert ws.accepted_subprotocol == "bearer"


def test_ws_disconnect_unregisters(fresh_hub, Session):
    ids = create_data(Session)
    with TestClient(app) as client:
        with client.websocket_connect(ws_url("customer@test.com")) as ws:
            ws.receive_json()
            assert fresh_hub.registry.is_online(ids["customer"])
            assert client.get("/healthz").json() == {"status": "ok", "connections": 1}
        assert not fresh_hub.registry.is_online(ids["customer"])
        assert fresh_hub.rooms.members(f"customer:{ids['customer']}") == set()


def test_send_message_both_online(Session):
    ids = create_data(Session)
    with TestClient(app) as client:
        with client.websocket_connect(ws_url("owner@test.com")) as owner_ws, \
                client.websocket_connect(ws_url("customer@test.com")) as customer_ws:
            owner_ws.receive_json()
            customer_ws.receive_json()

            customer_ws.send_json({
                "v": 1,
                "type": "send_message",
                "payload": {"orderId": "UF000001", "message": "Is it ready?", "recipientId": ids["owner"]},
            })

            pushed = owner_ws.receive_json()
            assert pushed["type"] == "new_message"
            assert pushed["payload"]["message"] == "Is it ready?"
            assert pushed["payload"]["order_id"] == "UF000001"
            assert pushed["payload"]["sender_id"] == ids["customer"]
            assert pushed["payload"]["recipient_id"] == ids["owner"]
            assert pushed["payload"]["is_read"] is False
            assert pushed["payload"]["senderName"] == "Carla"

            ack = customer_ws.receive_json()
            assert ack["type"] == "message_sent"
            assert ack["payload"]["id"] == pushed["payload"]["id"]

            assert_nothing_queued(owner_ws)
            assert_nothing_queued(customer_ws)

    db = Session()
    rows = db.query(ChatMessage).all()
    assert [(r.order_id, r.sender_id, r.recipient_id, r.message) for r in rows] == [
        ("UF000001", ids["customer"], ids["owner"], "Is it ready?")
    ]
    db.close()


def test_send_message_recipient_offline(Session):
    ids = create_data(Session)
    with TestClient(app) as client:
        with client.websocket_connect(ws_url("customer@test.com")) as ws:
            ws.receive_json()
            ws.send_json({
                "type": "send_message",
                "payload": {"orderId": "UF000001", "message": "Ping me later", "recipientId": ids["owner"]},
            })
            ack = ws.receive_json()
            assert ack["type"] == "message_sent"
            assert_nothing_queued(ws)

    db = Session()
    assert db.query(ChatMessage).count() == 1
    db.close()


def test_send_message_outsider_denied(Session):
    ids = create_data(Session)
    with TestClient(app) as client:
        with client.websocket_connect(ws_url("owner@test.com")) as owner_ws, \
                client.websocket_connect(ws_url("outsider@test.com")) as outsider_ws:
            owner_ws.receive_json()
            outsider_ws.receive_json()
            outsider_ws.send_json({
                "type": "send_message",
                "payload": {"orderId": "UF000001", "message": "hi", "recipientId": ids["owner"]},
            })
            err = outsider_ws.receive_json()
            assert err == {
                "v": 1,
                "type": "error",
                "payload": {"message": "Order not found or access denied"},
            }
            assert_nothing_queued(owner_ws)

    db = Session()
    assert db.query(ChatMessage).count() == 0
    db.close()


def test_send_message_unknown_order_denied(Session):
    ids = create_data(Session)
    with TestClient(app) as client:
        with client.websocket_connect(ws_url("customer@test.com")) as ws:
            ws.receive_json()
            ws.send_json({
                "type": "send_message",
                "payload": {"orderId": "UF999999", "message": "hi", "recipientId": ids["owner"]},
            })
            assert ws.receive_json()["payload"]["message"] == "Order not found or access denied"


def test_send_message_validation_error(Session):
    create_data(Session)
    with TestClient(app) as client:
        with client.websocket_connect(ws_url("customer@test.com")) as ws:
            ws.receive_json()
            ws.send_json({"type": "send_message", "payload": {"orderId": "UF000001", "message": ""}})
            err = ws.receive_json()
            assert err["type"] == "error"
            assert err["payload"]["message"] == "Invalid send_message payload"
            assert set(err["payload"]["field_errors"]) == {"message", "recipientId"}


def test_malformed_frame_reports_error_and_keeps_socket(Session):
    create_data(Session)
    with TestClient(app) as client:
        with client.websocket_connect(ws_url("customer@test.com")) as ws:
            ws.receive_json()
            ws.send_text("not json")
            assert ws.receive_json()["payload"] == {"message": "Malformed frame"}
            assert_nothing_queued(ws)


def test_typing_indicators_reach_recipient(Session):
    ids = create_data(Session)
    with TestClient(app) as client:
        with client.websocket_connect(ws_url("owner@test.com")) as owner_ws, \
                client.websocket_connect(ws_url("customer@test.com")) as customer_ws:
            owner_ws.receive_json()
            customer_ws.receive_json()
            payload = {"orderId": "UF000001", "recipientId": ids["customer"]}
            owner_ws.send_json({"type": "typing_start", "payload": payload})
            owner_ws.send_json({"type": "typing_stop", "payload": payload})

            assert customer_ws.receive_json() == {
                "v": 1,
                "type": "user_typing",
                "payload": {"userId": ids["owner"], "userName": "Owen", "orderId": "UF000001"},
            }
            assert customer_ws.receive_json() == {
                "v": 1,
                "type": "user_stopped_typing",
                "payload": {"userId": ids["owner"], "orderId": "UF000001"},
            }
            assert_nothing_queued(owner_ws)

    db = Session()
    assert db.query(ChatMessage).count() == 0
    db.close()
