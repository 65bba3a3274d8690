"""Tests for the queue-facing channel handlers."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock
import uuid

import pytest

from notification_service.core.exceptions import (
    TerminalDeliveryFailure,
    TransientDeliveryFailure,
)
from notification_service.core.models import User
from notification_service.core.repositories import UserRepository
from notification_service.features.notifications.channels import (
    EmailChannel,
    InAppChannel,
    PushChannel,
    push_message,
)
from notification_service.features.push.schemas import PushSendSummary, SubscriptionResult
from notification_service.infra.dispatch import Channel, DeliveryJob, Priority


def make_job(channel: Channel, **payload) -> DeliveryJob:
    return DeliveryJob(
        id=uuid.uuid4().hex,
        channel=channel,
        priority=Priority.NORMAL,
        payload={
            "notification_id": "n-1",
            "recipient_id": "user-1",
            "type": "comment",
            "title": "New comment",
            "body": "Nice post!",
            "data": {"post_id": 3},
            **payload,
        },
        not_before=0.0,
        max_attempts=3,
    )


def summary(*outcomes: str) -> PushSendSummary:
    results = [
        SubscriptionResult(subscription_id=uuid.uuid4(), success=o == "sent", outcome=o)
        for o in outcomes
    ]
    successful = sum(r.success for r in results)
    return PushSendSummary(
        success=successful > 0, total=len(results), successful=successful, results=results
    )


@pytest.mark.unit
class TestInAppChannel:
    @pytest.mark.asyncio
    async def test_delivers_to_online_recipient(self, notifier):
        notifier.online.add("user-1")

        await InAppChannel(notifier).deliver(make_job(Channel.IN_APP))

        assert notifier.events_for("user-1") == ["notification:new"]

    @pytest.mark.asyncio
    async def test_offline_recipient_is_retried(self, notifier):
        with pytest.raises(TransientDeliveryFailure):
            await InAppChannel(notifier).deliver(make_job(Channel.IN_APP))

    @pytest.mark.asyncio
    async def test_no_connection_accepted_is_retried(self, notifier):
        notifier.online.add("user-1")
        notifier.accept = False

        with pytest.raises(TransientDeliveryFailure):
            await InAppChannel(notifier).deliver(make_job(Channel.IN_APP))


@pytest.mark.unit
class TestPushChannel:
    @pytest.fixture
    def session_factory(self) -> MagicMock:
        session = AsyncMock()
        factory = MagicMock()
        factory.return_value.__aenter__ = AsyncMock(return_value=session)
        factory.return_value.__aexit__ = AsyncMock(return_value=False)
        return factory

    def test_push_message_shape(self):
        message = push_message(make_job(Channel.PUSH).payload)
        assert message == {
            "title": "New comment",
            "body": "Nice post!",
            "data": {"post_id": 3, "notification_id": "n-1", "type": "comment"},
            "tag": "n-1",
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "outcomes",
        [(), ("sent",), ("sent", "transient"), ("expired",), ("expired", "too_large")],
    )
    async def test_completes(self, session_factory, outcomes):
        service = MagicMock()
        service.send = AsyncMock(return_value=summary(*outcomes))

        await PushChannel(service, session_factory).deliver(make_job(Channel.PUSH))

        service.send.assert_awaited_once()
        assert service.send.await_args.args[1] == "user-1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("outcomes", [("transient",), ("expired", "transient")])
    async def test_transient_failures_are_retried(self, session_factory, outcomes):
        service = MagicMock()
        service.send = AsyncMock(return_value=summary(*outcomes))

        with pytest.raises(TransientDeliveryFailure):
            await PushChannel(service, session_factory).deliver(make_job(Channel.PUSH))


@pytest.mark.integration
class TestEmailChannel:
    @pytest.mark.asyncio
    async def test_sends_to_recipient_address(self, session_factory, make_user):
        await make_user("user-1", email="one@example.com")
        sender = MagicMock(enabled=True)
        sender.send = AsyncMock(return_value="<id@example.com>")

        await EmailChannel(sender, UserRepository(User), session_factory).deliver(
            make_job(Channel.EMAIL)
        )

        sender.send.assert_awaited_once_with("one@example.com", "New comment", "Nice post!")

    @pytest.mark.asyncio
    async def test_missing_address_is_terminal(self, session_factory, make_user):
        await make_user("user-1", email=None)
        sender = MagicMock(enabled=True)
        sender.send = AsyncMock()

        with pytest.raises(TerminalDeliveryFailure):
            await EmailChannel(sender, UserRepository(User), session_factory).deliver(
                make_job(Channel.EMAIL)
            )
        sender.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_disabled_sender_is_terminal(self, session_factory):
        sender = MagicMock(enabled=False)

        with pytest.raises(TerminalDeliveryFailure):
            await EmailChannel(sender, UserRepository(User), session_factory).deliver(
                make_job(Channel.EMAIL)
            )
