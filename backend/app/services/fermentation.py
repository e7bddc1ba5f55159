from app.repositories.scheduling import SchedulingRepository
from app.schemas.batch import FermentationTrendPointRead, FermentationTrendRead
from app.services.gravity import attenuation_pct

PLATEAU_WINDOW = 0.0015
PLATEAU_MIN_GRAVITY = 1.020
TEMP_LOW_C = 16.0
TEMP_HIGH_C = 24.0


def build_fermentation_trend(repo: SchedulingRepository, batch_id: int) -> FermentationTrendRead:
    batch = repo.get_batch(batch_id)
    readings = repo.readings_for_batch(batch.id)

    points = [
        FermentationTrendPointRead(
            id=reading.id,
            recorded_at=reading.recorded_at,
            gravity=reading.gravity,
            temperature=reading.temperature,
        )
        for reading in readings
    ]

    first = readings[0] if readings else None
    latest = readings[-1] if readings else None

    gravity_drop: float | None = None
    average_hourly_gravity_drop: float | None = None
    if first is not None and latest is not None and len(readings) >= 2:
        raw_drop = first.gravity - latest.gravity
        gravity_drop = round(raw_drop, 4)

        elapsed_hours = (latest.recorded_at - first.recorded_at).total_seconds() / 3600
        if elapsed_hours > 0:
            average_hourly_gravity_drop = round(raw_drop / elapsed_hours, 5)

    apparent_attenuation: float | None = None
    if latest is not None and batch.original_gravity:
        apparent_attenuation = attenuation_pct(batch.original_gravity, latest.gravity)

    plateau_risk = False
    if len(readings) >= 3:
        window = [reading.gravity for reading in readings[-3:]]
        plateau_risk = max(window) - min(window) <= PLATEAU_WINDOW and window[-1] > PLATEAU_MIN_GRAVITY

    latest_temp = latest.temperature if latest else None
    temperature_warning = latest_temp is not None and (latest_temp < TEMP_LOW_C or latest_temp > TEMP_HIGH_C)

    alerts: list[str] = []
    if not readings:
        alerts.append("No gravity readings logged yet.")
    else:
        if plateau_risk:
            alerts.append("Gravity has flattened while still high. Check yeast health and tank temperature.")

        if latest_temp is not None and latest_temp > TEMP_HIGH_C:
            alerts.append("Latest tank temperature is high for most ale fermentations.")
        elif latest_temp is not None and latest_temp < TEMP_LOW_C:
            alerts.append("Latest tank temperature is low and may stall fermentation.")

        if not alerts:
            alerts.append("Fermentation trend appears stable.")

    return FermentationTrendRead(
        batch_id=batch.id,
        reading_count=len(readings),
        first_recorded_at=first.recorded_at if first else None,
        latest_recorded_at=latest.recorded_at if latest else None,
        latest_gravity=latest.gravity if latest else None,
        latest_temperature=latest_temp,
        gravity_drop=gravity_drop,
        average_hourly_gravity_drop=average_hourly_gravity_drop,
        apparent_attenuation_pct=apparent_attenuation,
        plateau_risk=plateau_risk,
        temperature_warning=temperature_warning,
        alerts=alerts,
        readings=points,
    )
