from rest_framework import serializers

from base.models import HistoryRecord
from ingestors.error_handling import InvalidKindError
from ingestors.health_data_constants import ManualSyncPeriod, RecordKind, SyncFrequency


class RecordKindField(serializers.CharField):
    """Record kind given by value ("heart_rate") or label ("Heart Rate")"""

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        try:
            return RecordKind.parse(value)
        except InvalidKindError as e:
            raise serializers.ValidationError(str(e)) from e

    def to_representation(self, value):
        return RecordKind.parse(value).value


class ManualSyncRequestSerializer(serializers.Serializer):
    """Serializer for manual sync requests"""
    kind = RecordKindField()
    period = serializers.ChoiceField(
        choices=[period.value for period in ManualSyncPeriod], default=ManualSyncPeriod.LAST_WEEK.value
    )
    background = serializers.BooleanField(default=False)


class SyncOutcomeSerializer(serializers.Serializer):
    """Serializer for sync outcome responses"""
    kind = serializers.CharField()
    source = serializers.CharField()
    start = serializers.DateTimeField()
    end = serializers.DateTimeField()
    records_fetched = serializers.IntegerField()
    records_new = serializers.IntegerField()
    observations_mapped = serializers.IntegerField()
    uploaded_count = serializers.IntegerField()
    records_marked = serializers.IntegerField()
    truncated = serializers.BooleanField()
    lock_contended = serializers.BooleanField()
    errors = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    success = serializers.BooleanField()
    processing_time_ms = serializers.IntegerField()


class HistoryRecordSerializer(serializers.ModelSerializer):
    """Serializer for HistoryRecord model"""

    class Meta:
        model = HistoryRecord
        fields = ['id', 'timestamp', 'data_type', 'data_point_count', 'period_start', 'period_end', 'source']
        read_only_fields = fields


class SyncSettingsSerializer(serializers.Serializer):
    """Serializer for the sync preferences"""
    allow_duplicates = serializers.BooleanField(required=False)
    cleanup_age_days = serializers.IntegerField(min_value=0, required=False)
    auto_sync_frequency = serializers.ChoiceField(choices=[int(f) for f in SyncFrequency], required=False)
    auto_sync_kinds = serializers.ListField(child=RecordKindField(), required=False)


class PatientSerializer(serializers.Serializer):
    """Serializer for the local patient profile"""
    given_name = serializers.CharField(max_length=255)
    family_name = serializers.CharField(max_length=255)
    remote_id = serializers.CharField(read_only=True, allow_null=True)
