"""Error taxonomy shared by the chat flows and the admin API."""


class StoreBotError(Exception):
    """Base class for every domain error raised by the store bot."""

    user_message = "⚠️ Something went wrong. Please try again."


class NotFound(StoreBotError):
    """Selection, product or order missing, or the selection went stale."""

    user_message = "⚠️ That item is no longer available. Please open the product list again."


class InvalidVariant(StoreBotError):
    user_message = "⚠️ That package option changed. Please open the product again."


class InvalidTransition(StoreBotError):
    """Order is not in the state the requested operation starts from."""

    def __init__(self, order_id, current_status, expected):
        self.order_id = order_id
        self.current_status = current_status
        self.expected = tuple(expected)
        super().__init__(
            f"Order {order_id} is '{current_status}', expected one of {', '.join(self.expected)}"
        )


class NoPendingOrder(StoreBotError):
    user_message = (
        "⚠️ <b>No pending invoice!</b>\n"
        "Please order a product first before sending a transfer receipt."
    )


class UploadFailed(StoreBotError):
    user_message = "⚠️ Upload failed. Please send the photo again."


class PersistenceError(StoreBotError):
    user_message = "❌ Database error. Please try again in a moment."


class NotificationFailed(StoreBotError):
    """Outbound notification failed after the state change was committed."""


class TelegramError(StoreBotError):
    """Telegram Bot API call failed or answered ok=false."""

    def __init__(self, method: str, description: str, status_code: int = None):
        self.method = method
        self.description = description
        self.status_code = status_code
        super().__init__(f"Telegram {method} failed: {description}")
