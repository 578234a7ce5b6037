"""
tests/test_aggregator.py
────────────────────────
Tests for daily aggregation, hourly buckets and recommendations.
"""
import random
from datetime import datetime, timedelta, timezone

import pytest

from grid_analytics.analytics.aggregator import (
    aggregate_daily,
    derive_peak_hour,
    generate_recommendations,
    hourly_buckets,
    parse_date,
)
from grid_analytics.data.models import HourlyBucket
from grid_analytics.errors import InvalidInputError

DAY = "2024-05-31"
MIDNIGHT = datetime(2024, 5, 31, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def three_readings(make_reading):
    return [
        make_reading(10.0, MIDNIGHT),
        make_reading(20.0, MIDNIGHT + timedelta(minutes=30)),
        make_reading(30.0, MIDNIGHT + timedelta(hours=1)),
    ]


class TestParseDate:
    def test_iso_string(self):
        assert parse_date("2024-05-31") == "2024-05-31"

    def test_date_and_datetime(self):
        assert parse_date(MIDNIGHT) == DAY
        assert parse_date(MIDNIGHT.date()) == DAY

    @pytest.mark.parametrize("bad", ["31/05/2024", "2024-13-01", "yesterday", ""])
    def test_bad_format_raises(self, bad):
        with pytest.raises(InvalidInputError):
            parse_date(bad)


class TestHourlyBuckets:
    def test_groups_by_hour(self, three_readings):
        buckets = hourly_buckets(three_readings)
        assert set(buckets) == {"00", "01"}
        assert buckets["00"].count == 2
        assert buckets["00"].total_power == 30.0
        assert buckets["00"].avg_power == 15.0
        assert buckets["00"].max_power == 20.0
        assert buckets["01"].count == 1

    def test_local_timezone(self, make_reading):
        buckets = hourly_buckets([make_reading(5.0, MIDNIGHT + timedelta(hours=10))], tz="Europe/Berlin")
        assert list(buckets) == ["12"]

    def test_empty(self):
        assert hourly_buckets([]) == {}

    def test_peak_hour_tie_goes_to_earliest(self):
        b = HourlyBucket(count=1, total_power=5.0, avg_power=5.0, max_power=5.0)
        assert derive_peak_hour({"14": b, "03": b, "22": b}) == "03"

    def test_peak_hour_ignores_nan(self):
        nan = HourlyBucket(count=1, total_power=float("nan"), avg_power=float("nan"), max_power=float("nan"))
        ok = HourlyBucket(count=1, total_power=1.0, avg_power=1.0, max_power=1.0)
        assert derive_peak_hour({"00": nan, "05": ok}) == "05"


class TestAggregateDaily:
    def test_summary_values(self, three_readings, now):
        a = aggregate_daily(three_readings, DAY, created_at=now)
        assert a.facility_id == "facility-001"
        assert a.reading_count == 3
        assert a.total_consumption == 60.0
        assert a.total_consumption_mwh == 0.06
        assert a.average_power == 20.0
        assert a.peak_power == 30.0
        assert a.min_power == 10.0
        assert a.moving_average == [10.0, 15.0, 20.0]
        assert a.estimated_cost == 12.0
        assert a.cost_breakdown == {"peak": 4.8, "offpeak": 7.2}
        assert a.avg_voltage == 230.0
        assert a.voltage_stddev == 0.0
        assert a.peak_hour == "01"

    def test_power_factor_uses_mean_voltage_and_current(self, three_readings, now):
        a = aggregate_daily(three_readings, DAY, created_at=now)
        # 20 / (230 · 10)
        assert a.power_factor == 0.009

    def test_zero_current_gives_zero_power_factor(self, make_reading, now):
        a = aggregate_daily([make_reading(5.0, MIDNIGHT, current=0.0)], DAY, created_at=now)
        assert a.power_factor == 0.0

    @pytest.mark.parametrize("current", [-10.0, float("nan")])
    def test_negative_or_nan_apparent_power_gives_zero_power_factor(self, make_reading, now, current):
        readings = [
            make_reading(5.0, MIDNIGHT, current=current),
            make_reading(6.0, MIDNIGHT + timedelta(hours=1), current=current),
        ]
        a = aggregate_daily(readings, DAY, created_at=now)
        assert a.power_factor == 0.0
        assert "efficiency" not in [r.category for r in generate_recommendations(a)]

    def test_hourly_counts_sum_to_reading_count(self, three_readings, now):
        a = aggregate_daily(three_readings, DAY, created_at=now)
        assert a.reading_count == sum(b.count for b in a.hourly_data.values())
        for bucket in a.hourly_data.values():
            assert bucket.avg_power == pytest.approx(bucket.total_power / bucket.count)

    def test_peak_hour_follows_max_not_total(self, make_reading, now):
        readings = [
            make_reading(10.0, MIDNIGHT),
            make_reading(20.0, MIDNIGHT + timedelta(minutes=30)),
            make_reading(5.0, MIDNIGHT + timedelta(hours=1)),
        ]
        a = aggregate_daily(readings, DAY, created_at=now)
        assert a.peak_hour == "00"
        assert a.hourly_data["00"].count == 2
        assert a.hourly_data["00"].max_power == 20.0
        assert a.hourly_data["01"].count == 1

    def test_idempotent_apart_from_created_at(self, three_readings, now):
        first = aggregate_daily(three_readings, DAY, created_at=now).to_record()
        shuffled = list(three_readings)
        random.Random(3).shuffle(shuffled)
        second = aggregate_daily(shuffled, DAY, created_at=now + timedelta(hours=1)).to_record()
        first.pop("created_at"), second.pop("created_at")
        assert first == second

    def test_to_record_created_at_is_unix(self, three_readings, now):
        record = aggregate_daily(three_readings, DAY, created_at=now).to_record()
        assert record["created_at"] == int(now.timestamp())
        assert record["hourly_data"]["00"]["count"] == 2

    def test_empty_input_raises(self):
        with pytest.raises(InvalidInputError):
            aggregate_daily([], DAY)

    def test_bad_date_raises(self, three_readings):
        with pytest.raises(InvalidInputError):
            aggregate_daily(three_readings, "2024/05/31")

    def test_explicit_facility_wins(self, three_readings, now):
        a = aggregate_daily(three_readings, DAY, facility_id="plant-9", created_at=now)
        assert a.facility_id == "plant-9"


class TestRecommendations:
    @pytest.fixture
    def base(self, three_readings, now):
        return aggregate_daily(three_readings, DAY, created_at=now).model_copy(
            update={"power_factor": 0.95, "peak_hour": "03", "voltage_stddev": 1.0}
        )

    def test_quiet_day_has_none(self, base):
        assert generate_recommendations(base) == []

    def test_high_average_power(self, base):
        recs = generate_recommendations(base.model_copy(update={"average_power": 75.0}))
        assert [(r.priority, r.category) for r in recs] == [("high", "consumption")]

    def test_low_power_factor(self, base):
        recs = generate_recommendations(base.model_copy(update={"power_factor": 0.7}))
        assert recs[0].category == "efficiency"
        assert "0.700" in recs[0].message

    def test_zero_power_factor_is_ignored(self, base):
        assert generate_recommendations(base.model_copy(update={"power_factor": 0.0})) == []

    def test_voltage_variability(self, base):
        recs = generate_recommendations(base.model_copy(update={"voltage_stddev": 12.5}))
        assert recs[0].category == "quality"

    @pytest.mark.parametrize("hour, fires", [("08", False), ("09", True), ("17", True), ("18", False)])
    def test_business_hours_peak(self, base, hour, fires):
        recs = generate_recommendations(base.model_copy(update={"peak_hour": hour}))
        assert (len(recs) == 1 and recs[0].category == "optimization") is fires

    def test_rules_in_fixed_order(self, base):
        busy = base.model_copy(update={
            "average_power": 80.0, "power_factor": 0.5, "voltage_stddev": 15.0, "peak_hour": "12",
        })
        assert [r.category for r in generate_recommendations(busy)] == [
            "consumption", "efficiency", "quality", "optimization",
        ]
