"""Notification dispatcher: compose a message and hand it to a channel.

Never raises for delivery problems and never touches the ledger; the
caller records the delivery only when :meth:`NotificationDispatcher.send`
returns True.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from jinja2 import TemplateError

from remindkit.core.errors import (
    ConfigurationMissing,
    MalformedEntityData,
    TransientChannelError,
)
from remindkit.core.types import ChannelKind, EntityKind
from remindkit.notifications.channels import Destination, Message

if TYPE_CHECKING:
    from remindkit.config.settings import NotificationSettings
    from remindkit.core.clock import BusinessClock
    from remindkit.core.rules import NotificationRule
    from remindkit.notifications.channels import Channel
    from remindkit.notifications.renderer import TemplateRenderer

log = logging.getLogger(__name__)


class NotificationDispatcher:
    """Sends one notification for one (entity, rule) pair."""

    def __init__(
        self,
        renderer: TemplateRenderer,
        channels: dict[ChannelKind, Channel],
        clock: BusinessClock,
        settings: NotificationSettings,
    ) -> None:
        self._renderer = renderer
        self._channels = channels
        self._clock = clock
        self._settings = settings

    def send(self, entity, rule: NotificationRule) -> bool:
        """Deliver *rule*'s message for *entity*; True only on confirmed success."""
        started = time.monotonic()
        try:
            channel = self._channels.get(rule.channel)
            if channel is None:
                msg = f"No {rule.channel.value} channel configured"
                raise ConfigurationMissing(msg)
            destination = self._destination(entity, rule)
            message = self._compose(entity, rule)
            channel.send_message(destination, message)
        except (ConfigurationMissing, MalformedEntityData) as exc:
            log.warning(
                "Skipping %s for %s: %s",
                rule.rule_type.value,
                entity.entity_id,
                exc,
                extra={"rule_type": rule.rule_type.value, "entity_id": entity.entity_id},
            )
            return False
        except TransientChannelError as exc:
            log.warning(
                "Dispatch of %s to %s failed, will retry next tick: %s",
                rule.rule_type.value,
                entity.entity_id,
                exc,
                extra={
                    "rule_type": rule.rule_type.value,
                    "entity_id": entity.entity_id,
                    "channel": exc.channel,
                    "status": exc.status,
                },
            )
            return False
        except TemplateError:
            log.exception(
                "Could not render %s for %s",
                rule.template,
                entity.entity_id,
            )
            return False

        log.info(
            "Sent %s to %s via %s (%.0f ms)",
            rule.rule_type.value,
            entity.entity_id,
            rule.channel.value,
            (time.monotonic() - started) * 1000,
            extra={"rule_type": rule.rule_type.value, "entity_id": entity.entity_id},
        )
        return True

    # -- internals -----------------------------------------------------------

    def _destination(self, entity, rule: NotificationRule) -> Destination:
        if rule.channel == ChannelKind.WHATSAPP:
            if not getattr(entity, "client_phone", None):
                msg = f"{entity.entity_id} has no phone number"
                raise ConfigurationMissing(msg)
            if not getattr(entity, "whatsapp_instance", None):
                msg = f"Tenant {entity.tenant_id} has no WhatsApp instance configured"
                raise ConfigurationMissing(msg)
            return Destination(address=entity.client_phone, instance=entity.whatsapp_instance)

        if not getattr(entity, "email", None):
            msg = f"{entity.entity_id} has no email address"
            raise ConfigurationMissing(msg)
        return Destination(address=entity.email)

    def _compose(self, entity, rule: NotificationRule) -> Message:
        context = self._context(entity, rule)
        if rule.channel == ChannelKind.WHATSAPP:
            return Message(body=self._renderer.render_text(rule.template, context))
        subject, body = self._renderer.render_email(rule.template, context)
        return Message(body=body, subject=subject)

    def _context(self, entity, rule: NotificationRule) -> dict[str, Any]:
        if entity.reference_time is None:
            msg = f"{entity.entity_id} has no reference time"
            raise MalformedEntityData(msg)
        reference = self._clock.localize(entity.reference_time)
        context: dict[str, Any] = {
            "product_name": self._settings.product_name,
            "portal_url": self._settings.portal_url,
            "lead": rule.label,
        }
        if rule.entity_kind == EntityKind.APPOINTMENT:
            context.update(
                client_name=entity.client_name,
                business_name=entity.business_name,
                business_phone=entity.business_phone,
                professional_name=entity.professional_name,
                service_summary=entity.service_summary,
                total_price=entity.total_price,
                start_date=reference.strftime("%d/%m/%Y"),
                start_time=reference.strftime("%H:%M"),
            )
        else:
            context.update(
                tenant_name=entity.name,
                plan=entity.business_plan,
                end_date=reference.strftime("%d/%m/%Y"),
                days_left=max(self._clock.day_difference(self._clock.now(), reference), 0),
            )
        return context
