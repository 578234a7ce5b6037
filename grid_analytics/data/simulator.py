"""
grid_analytics/data/simulator.py
────────────────────────────────
Synthetic meter readings for a facility.

Generates:
  - Per-meter readings on a fixed interval with a daily load profile
    (night trough, business-hours plateau, evening shoulder)
  - Optional consumption spikes (equipment faults, start-up surges)
  - Multi-day history for seeding a store

Design:
  - Reproducible through a numpy Generator (SIMULATION_SEED for demos)
  - Current is derived from power and voltage so V·I tracks P
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

import numpy as np

from config.settings import settings
from grid_analytics.data.models import Reading

# ── Baseline operating points ─────────────────────────────────────────────────

BASELINE: dict[str, float] = {
    "power_kw": 18.0,
    "voltage": 230.0,
    "power_factor": 0.92,
    "temperature": 35.0,
}

# Noise scales for normal operation (σ)
NOISE: dict[str, float] = {
    "power_kw": 1.2,
    "voltage": 2.0,
    "temperature": 0.8,
}

# Hour-of-day load multipliers
LOAD_PROFILE = np.array(
    [0.45, 0.42, 0.40, 0.40, 0.42, 0.50,   # 00–05
     0.70, 0.90, 1.10, 1.25, 1.30, 1.35,   # 06–11
     1.30, 1.35, 1.40, 1.35, 1.25, 1.10,   # 12–17
     0.95, 0.85, 0.75, 0.65, 0.55, 0.50],  # 18–23
)


@dataclass
class SpikeEvent:
    meter_id: str
    at: datetime
    multiplier: float   # power multiplier at that instant


def meter_ids(count: int) -> list[str]:
    return [f"meter-{i:03d}" for i in range(1, count + 1)]


def _reading(
    facility_id: str,
    meter_id: str,
    ts: datetime,
    scale: float,
    rng: np.random.Generator,
) -> Reading:
    power = BASELINE["power_kw"] * LOAD_PROFILE[ts.hour] * scale + rng.normal(0.0, NOISE["power_kw"])
    power = float(max(power, 0.0))
    voltage = float(np.clip(rng.normal(BASELINE["voltage"], NOISE["voltage"]), 0.0, None))
    # P (kW) = V · I · pf / 1000  →  I = P · 1000 / (V · pf)
    current = power * 1000.0 / (voltage * BASELINE["power_factor"]) if voltage > 0 else 0.0
    return Reading(
        facility_id=facility_id,
        meter_id=meter_id,
        timestamp=ts,
        voltage=round(voltage, 2),
        current=round(current, 3),
        power_kw=round(power, 3),
        status="ok",
        temperature=round(float(rng.normal(BASELINE["temperature"], NOISE["temperature"])), 1),
    )


def generate_readings(
    facility_id: str,
    meters: list[str],
    start: datetime,
    hours: int,
    rng: np.random.Generator,
    interval_minutes: int = 60,
    spikes: list[SpikeEvent] | None = None,
) -> list[Reading]:
    """Readings for every meter every `interval_minutes`, ascending by time."""
    spike_at = {(s.meter_id, s.at): s.multiplier for s in spikes or []}
    # Meters differ in size; fixed per call so each meter is internally stable
    scales = {m: float(rng.uniform(0.6, 1.4)) for m in meters}

    readings: list[Reading] = []
    steps = hours * 60 // interval_minutes
    for step in range(steps):
        ts = start + timedelta(minutes=step * interval_minutes)
        for meter in meters:
            reading = _reading(facility_id, meter, ts, scales[meter], rng)
            multiplier = spike_at.get((meter, ts))
            if multiplier is not None:
                reading = reading.model_copy(update={
                    "power_kw": round(reading.power_kw * multiplier, 3),
                    "current": round(reading.current * multiplier, 3),
                    "status": "surge",
                })
            readings.append(reading)
    return readings


def generate_history(
    facility_id: str,
    end: datetime,
    days: int = settings.HISTORY_DAYS,
    meter_count: int = settings.METERS_PER_FACILITY,
    seed: int = settings.SIMULATION_SEED,
    interval_minutes: int = 60,
) -> list[Reading]:
    """`days` of readings ending at `end`, with a few random spikes planted."""
    rng = np.random.default_rng(seed)
    meters = meter_ids(meter_count)
    start = (end - timedelta(days=days)).replace(minute=0, second=0, microsecond=0)
    hours = days * 24
    steps = hours * 60 // interval_minutes

    spikes: list[SpikeEvent] = []
    n_spikes = int(rng.integers(1, 4))
    for _ in range(n_spikes):
        step = int(rng.integers(steps // 4, steps))
        spikes.append(SpikeEvent(
            meter_id=str(rng.choice(meters)),
            at=start + timedelta(minutes=step * interval_minutes),
            multiplier=float(rng.uniform(2.5, 4.0)),
        ))

    return generate_readings(
        facility_id,
        meters,
        start,
        hours,
        rng,
        interval_minutes=interval_minutes,
        spikes=spikes,
    )
