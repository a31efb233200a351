"""Telegram Bot API client used to forward notifications to the clinic chat."""

import httpx
from structlog import get_logger

from physiobook.config import settings
from physiobook.core.exceptions import TransportException

logger = get_logger(__name__)


class TelegramClient:
    """Minimal client for the ``sendMessage`` Bot API method."""

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        api_base: str = "https://api.telegram.org",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the client.

        Args:
            bot_token: Bot token issued by BotFather
            chat_id: Target chat
            api_base: Bot API base URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport, e.g. a mock in tests
        """
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self._bot_token and self._chat_id)

    @property
    def send_message_url(self) -> str:
        """Get URL for sending messages."""
        return f"{self._api_base}/bot{self._bot_token}/sendMessage"

    @staticmethod
    def format_text(title: str, message: str) -> str:
        return f"🔔 *{title}*\n\n{message}"

    async def send_message(self, title: str, message: str) -> bool:
        """
        Post a notification to the configured chat.

        Args:
            title: Notification title
            message: Notification body

        Returns:
            True if Telegram accepted the message, False if not configured

        Raises:
            TransportException: On non-2xx responses, timeouts or connection errors
        """
        if not self.is_configured:
            logger.info("telegram_not_configured")
            return False

        payload = {
            "chat_id": self._chat_id,
            "text": self.format_text(title, message),
            "parse_mode": "Markdown",
        }

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(self.send_message_url, json=payload)
        except httpx.TimeoutException:
            raise TransportException("Timeout connecting to Telegram")
        except httpx.HTTPError as e:
            raise TransportException(f"Connection error with Telegram: {e!s}")

        if not response.is_success:
            raise TransportException(
                f"Telegram rejected the message with status {response.status_code}"
            )

        logger.info("telegram_message_sent", chat_id=self._chat_id)
        return True


def get_telegram_client() -> TelegramClient:
    """Build a client from application settings."""
    return TelegramClient(
        bot_token=settings.telegram_bot_token,
        chat_id=settings.telegram_chat_id,
        api_base=settings.telegram_api_base,
        timeout=settings.telegram_timeout_seconds,
    )
