"""Wire event names for the realtime socket (``Envelope.type``)."""

# client -> server
SEND_MESSAGE = "send_message"
TYPING_START = "typing_start"
TYPING_STOP = "typing_stop"
PING = "ping"

# server -> client
CONNECTED = "connected"
PONG = "pong"
NEW_MESSAGE = "new_message"
MESSAGE_SENT = "message_sent"
USER_TYPING = "user_typing"
USER_STOPPED_TYPING = "user_stopped_typing"
ORDER_UPDATED = "order_updated"
ORDER_STATUS_CHANGED = "order_status_changed"
NEW_ORDER = "new_order"
NOTIFICATION = "notification"
ERROR = "error"
