# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Live check of the desktop notification service on the session bus."""

from __future__ import annotations

import logging

from dbus_fast import Message, MessageType
from dbus_fast.aio import MessageBus

logger = logging.getLogger(__name__)

DBUS_NAME = "org.freedesktop.DBus"
DBUS_PATH = "/org/freedesktop/DBus"
DBUS_INTERFACE = "org.freedesktop.DBus"
NOTIFICATIONS_NAME = "org.freedesktop.Notifications"


async def _call_names(bus: MessageBus, member: str) -> list[str]:
    reply = await bus.call(
        Message(
            destination=DBUS_NAME,
            path=DBUS_PATH,
            interface=DBUS_INTERFACE,
            member=member,
        )
    )
    if reply.message_type == MessageType.METHOD_RETURN and reply.body:
        return reply.body[0]
    return []


async def notification_service_available(bus_address: str) -> tuple[bool, str]:
    """Check that the session bus answers and can deliver notifications.

    The notification service counts as present when it owns its name or
    is activatable.

    Returns:
        (available, detail) for the test report.
    """
    try:
        bus = await MessageBus(bus_address=bus_address).connect()
    except Exception as e:
        logger.debug("Cannot connect to %s", bus_address, exc_info=True)
        return False, f"cannot connect to session bus: {e}"

    try:
        names = await _call_names(bus, "ListNames")
        if NOTIFICATIONS_NAME in names:
            return True, f"{NOTIFICATIONS_NAME} is running"

        activatable = await _call_names(bus, "ListActivatableNames")
        if NOTIFICATIONS_NAME in activatable:
            return True, f"{NOTIFICATIONS_NAME} is activatable"

        return False, f"no {NOTIFICATIONS_NAME} service on the session bus"
    finally:
        bus.disconnect()
