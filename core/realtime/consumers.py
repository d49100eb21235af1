import json

from channels.generic.websocket import AsyncWebsocketConsumer
from django.contrib.auth.models import AnonymousUser

from core.permissions import ROLE_ADMIN
from core.services.notify import ADMINS_GROUP, student_group


class RoomRequestUpdatesConsumer(AsyncWebsocketConsumer):
    """Live room request updates.

    Admins receive every request event; a student only receives events
    about their own requests.
    """

    async def connect(self):
        user = self.scope.get("user") or AnonymousUser()
        if not user.is_authenticated:
            await self.close(code=4003)
            return

        if getattr(user, "role", None) == ROLE_ADMIN:
            self.group_name = ADMINS_GROUP
        else:
            self.group_name = student_group(user.id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "message": "connected"}))

    async def disconnect(self, close_code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def room_request_update(self, event):
        # event: {"type": "room_request.update", "payload": {...}}
        await self.send(json.dumps({"type": "room_request.update", **event["payload"]}))
