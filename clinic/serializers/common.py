import bleach
from rest_framework import serializers


def iso(dt):
    return dt.isoformat() if dt else None


def clean_text(v):
    return bleach.clean((v or '').strip(), tags=[], strip=True)


class PageQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=100, default=10)
