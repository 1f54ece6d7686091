"""
Tests for record kinds, coding tables and value types
"""
from datetime import datetime, timedelta, timezone

import pytest

from ingestors.error_handling import ErrorType, InvalidKindError
from ingestors.health_data_constants import (
    RECORD_KIND_CODINGS, DateRange, ManualSyncPeriod, ObservationCategory, RecordKind, SyncOutcome,
    SyncSource, epoch_millis, from_epoch_millis
)


class TestRecordKind:
    """Test RecordKind parsing"""

    def test_parse_by_value(self):
        assert RecordKind.parse("heart_rate") == RecordKind.HEART_RATE

    def test_parse_by_label_is_case_insensitive(self):
        assert RecordKind.parse("Heart Rate") == RecordKind.HEART_RATE
        assert RecordKind.parse("  vo2 max ") == RecordKind.VO2_MAX

    def test_parse_passes_kinds_through(self):
        assert RecordKind.parse(RecordKind.STEPS) is RecordKind.STEPS

    def test_parse_unknown_kind(self):
        with pytest.raises(InvalidKindError) as exc_info:
            RecordKind.parse("blood_glucose")

        assert exc_info.value.error_type == ErrorType.VALIDATION_ERROR
        assert "blood_glucose" in str(exc_info.value)

    def test_every_kind_has_a_coding_and_label(self):
        for kind in RecordKind:
            assert kind in RECORD_KIND_CODINGS
            assert kind.label


class TestCodingTable:
    """Test the LOINC coding table"""

    @pytest.mark.parametrize("kind,loinc,unit,category", [
        (RecordKind.BASAL_BODY_TEMPERATURE, "8310-5", "°C", ObservationCategory.VITAL_SIGNS),
        (RecordKind.BASAL_METABOLIC_RATE, "69429-9", "kcal/day", ObservationCategory.VITAL_SIGNS),
        (RecordKind.BODY_FAT, "41982-0", "%", ObservationCategory.VITAL_SIGNS),
        (RecordKind.DISTANCE, "55430-3", "meters", ObservationCategory.ACTIVITY),
        (RecordKind.HEART_RATE, "8867-4", "beats/minute", ObservationCategory.VITAL_SIGNS),
        (RecordKind.SLEEP, "93832-4", "sleep stage", ObservationCategory.ACTIVITY),
        (RecordKind.STEPS, "55423-8", "steps", ObservationCategory.ACTIVITY),
        (RecordKind.VO2_MAX, "60842-2", "mL/kg/min", ObservationCategory.VITAL_SIGNS),
    ])
    def test_coding(self, kind, loinc, unit, category):
        coding = RECORD_KIND_CODINGS[kind]

        assert coding.loinc_code == loinc
        assert coding.unit == unit
        assert coding.category == category

    def test_body_temperatures_share_a_code(self):
        basal = RECORD_KIND_CODINGS[RecordKind.BASAL_BODY_TEMPERATURE]
        body = RECORD_KIND_CODINGS[RecordKind.BODY_TEMPERATURE]

        assert basal.loinc_code == body.loinc_code
        assert basal.display != body.display


class TestValueTypes:
    """Test DateRange, SyncOutcome and the time helpers"""

    def test_date_range_allows_empty_window(self, now):
        date_range = DateRange(now, now)

        assert date_range.start == date_range.end

    def test_date_range_rejects_inverted_window(self, now):
        with pytest.raises(ValueError):
            DateRange(now, now - timedelta(seconds=1))

    def test_manual_sync_lookbacks(self):
        assert ManualSyncPeriod.LAST_24_HOURS.lookback == timedelta(days=1)
        assert ManualSyncPeriod.LAST_WEEK.lookback == timedelta(days=7)
        assert ManualSyncPeriod.LAST_MONTH.lookback == timedelta(days=30)

    def test_epoch_millis(self):
        moment = datetime(2024, 1, 1, tzinfo=timezone.utc)

        assert epoch_millis(moment) == 1704067200000
        assert from_epoch_millis(1704067200000) == moment

    def test_sync_outcome_defaults(self, now):
        outcome = SyncOutcome(kind=RecordKind.STEPS, source=SyncSource.MANUAL, start=now, end=now)

        assert outcome.errors == []
        assert outcome.uploaded_count == 0
        assert outcome.success is False
        assert outcome.sync_timestamp is not None
        assert outcome.to_dict()["kind"] == "steps"
        assert outcome.to_dict()["source"] == "manual"
