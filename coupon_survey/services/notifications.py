"""Coupon delivery through the LINE Messaging API.

The survey workflow only needs ``deliver(line_user_id, coupon_code) -> bool``.
Which implementation backs it is decided once, from settings, when the app
starts.
"""
from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Optional

import httpx

from coupon_survey.config import Settings
from coupon_survey.utils.datetime_helpers import local_now

logger = logging.getLogger(__name__)

PUSH_ENDPOINT = "/v2/bot/message/push"
BRAND_COLOR = "#0D9488"


class NotificationError(RuntimeError):
    """Raised when a coupon push message could not be delivered."""


@dataclass(frozen=True)
class CouponMessageOptions:
    """Presentation settings for the coupon push message."""

    discount_text: str = "10% OFF"
    redeem_url: str = "https://example.com/redeem"
    expiry_days: int = 30

    @classmethod
    def from_settings(cls, settings: Settings) -> "CouponMessageOptions":
        return cls(
            discount_text=settings.coupon_discount_text,
            redeem_url=settings.coupon_redeem_url,
            expiry_days=settings.coupon_expiry_days,
        )


def build_coupon_message(coupon_code: str, options: CouponMessageOptions, today: date) -> dict[str, Any]:
    """Build the Flex message payload carrying a coupon code."""
    expires_on = today + timedelta(days=options.expiry_days)
    return {
        "type": "flex",
        "altText": f"Your {options.discount_text} coupon code: {coupon_code}",
        "contents": {
            "type": "bubble",
            "body": {
                "type": "box",
                "layout": "vertical",
                "contents": [
                    {"type": "text", "text": options.discount_text, "weight": "bold",
                     "size": "3xl", "color": BRAND_COLOR, "align": "center"},
                    {"type": "text", "text": "YOUR CODE", "size": "xs", "align": "center", "margin": "lg"},
                    {"type": "text", "text": coupon_code, "weight": "bold", "size": "xxl", "align": "center"},
                    {"type": "text", "text": f"Valid until {expires_on:%Y-%m-%d}", "size": "xs",
                     "align": "center", "margin": "lg"},
                ],
            },
            "footer": {
                "type": "box",
                "layout": "vertical",
                "contents": [
                    {
                        "type": "button",
                        "style": "primary",
                        "color": BRAND_COLOR,
                        "action": {"type": "uri", "label": "Redeem Now", "uri": options.redeem_url},
                    },
                ],
            },
        },
    }


class NotificationSender(ABC):
    """Capability for pushing an issued coupon to a user."""

    async def startup(self) -> None:
        """Acquire resources; no-op by default."""

    async def shutdown(self) -> None:
        """Release resources; no-op by default."""

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    async def deliver(self, line_user_id: str, coupon_code: str) -> bool:
        """Deliver a coupon; return True on success, False on failure."""


class LineNotificationSender(NotificationSender):
    """Pushes coupon Flex messages through the LINE Messaging API."""

    def __init__(
        self,
        channel_access_token: str,
        base_url: str = "https://api.line.me",
        timeout: float = 10.0,
        message_options: Optional[CouponMessageOptions] = None,
        tz_name: str = "UTC",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._token = channel_access_token
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._message_options = message_options or CouponMessageOptions()
        self._tz_name = tz_name
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return "line"

    async def startup(self) -> None:
        """Initialize the underlying HTTP client."""
        async with self._lock:
            if self._client is None:
                logger.info(f"Connecting to LINE Messaging API at {self._base_url}")
                self._client = httpx.AsyncClient(
                    base_url=self._base_url,
                    timeout=self._timeout,
                    transport=self._transport,
                    headers={"Authorization": f"Bearer {self._token}"},
                )

    async def shutdown(self) -> None:
        """Close the underlying HTTP client."""
        async with self._lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            await self.startup()
        if self._client is None:
            raise RuntimeError("LINE client not initialized. Call startup() first.")
        return self._client

    async def push_message(self, line_user_id: str, coupon_code: str) -> None:
        """Send the coupon message, raising NotificationError on any failure."""
        if not self._token:
            raise NotificationError("LINE channel access token is not configured")

        message = build_coupon_message(coupon_code, self._message_options, local_now(self._tz_name).date())
        client = await self._ensure_client()
        try:
            response = await client.post(PUSH_ENDPOINT, json={"to": line_user_id, "messages": [message]})
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise NotificationError(
                f"LINE push rejected with status {exc.response.status_code}: {exc.response.text[:200]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise NotificationError(f"LINE push failed: {exc}") from exc

    async def deliver(self, line_user_id: str, coupon_code: str) -> bool:
        try:
            await self.push_message(line_user_id, coupon_code)
        except NotificationError as exc:
            logger.error(f"Failed to send coupon {coupon_code} to LINE user {line_user_id}: {exc}")
            return False
        logger.info(f"Coupon sent to LINE user {line_user_id}, code: {coupon_code}")
        return True


class LoggingNotificationSender(NotificationSender):
    """Logs the message that would be pushed and reports success."""

    def __init__(self, message_options: Optional[CouponMessageOptions] = None) -> None:
        self._message_options = message_options or CouponMessageOptions()

    @property
    def name(self) -> str:
        return "log"

    async def deliver(self, line_user_id: str, coupon_code: str) -> bool:
        logger.info(
            f"LINE delivery disabled; would send coupon {coupon_code} "
            f"({self._message_options.discount_text}, expires in {self._message_options.expiry_days} days) "
            f"to LINE user {line_user_id}"
        )
        return True


@dataclass
class RecordingNotificationSender(NotificationSender):
    """Test double that records every delivery attempt."""

    succeed: bool = True
    deliveries: list[tuple[str, str]] = field(default_factory=list)

    @property
    def name(self) -> str:
        return "recording"

    async def deliver(self, line_user_id: str, coupon_code: str) -> bool:
        self.deliveries.append((line_user_id, coupon_code))
        return self.succeed


def build_notification_sender(settings: Settings) -> NotificationSender:
    """Select the sender variant named by ``settings.notification_backend``."""
    options = CouponMessageOptions.from_settings(settings)
    if settings.notification_backend == "line":
        return LineNotificationSender(
            channel_access_token=settings.line_channel_access_token,
            base_url=settings.line_api_base_url,
            timeout=settings.line_push_timeout_seconds,
            message_options=options,
            tz_name=settings.coupon_timezone,
        )
    return LoggingNotificationSender(message_options=options)
