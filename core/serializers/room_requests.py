import bleach
from django.conf import settings
from rest_framework import serializers

STATUS_CHOICES = ['pending', 'approved', 'rejected']


def _clean_notes(v):
    v = bleach.clean((v or '').strip(), strip=True)
    if len(v) > settings.ROOM_REQUEST_NOTES_MAX_LENGTH:
        raise serializers.ValidationError(f'notes must be at most {settings.ROOM_REQUEST_NOTES_MAX_LENGTH} characters')
    return v


class RoomRequestCreateSerializer(serializers.Serializer):
    roomId = serializers.IntegerField(min_value=1, error_messages={'required': 'roomId is required'})
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate_notes(self, v):
        return _clean_notes(v)


class RoomRequestRejectSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate_notes(self, v):
        return _clean_notes(v)


class RoomRequestListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=STATUS_CHOICES, required=False, allow_blank=True)
    page = serializers.IntegerField(min_value=1, required=False)
    limit = serializers.IntegerField(min_value=1, required=False)


class RoomListQuerySerializer(serializers.Serializer):
    available = serializers.BooleanField(required=False, default=False)
    page = serializers.IntegerField(min_value=1, required=False)
    limit = serializers.IntegerField(min_value=1, required=False)
