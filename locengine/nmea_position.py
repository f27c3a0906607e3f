"""NMEA 0183 sentences built from a position report."""

from __future__ import annotations

import logging
import math
import time
from typing import Iterator

from locengine.nmea import (
    BLANK_FIX_SENTENCES,
    ExtendedFlags,
    Location,
    LocationExtended,
    LocationFlags,
    NmeaState,
    PositionMode,
    _checked,
    put_checksum,
)

log = logging.getLogger(__name__)

MAX_USED_SVS = 32
GSA_SV_SLOTS = 12
KNOTS_PER_METRE_PER_SECOND = 3600.0 / 1852.0
KMH_PER_METRE_PER_SECOND = 3.6


def _seconds(timestamp_ms: int) -> int:
    """Whole seconds, truncated toward zero like integer division in C."""
    seconds = abs(timestamp_ms) // 1000
    return seconds if timestamp_ms >= 0 else -seconds


def _used_svs(mask: int) -> list[int]:
    mask &= 0xFFFFFFFF
    return [prn for prn in range(1, MAX_USED_SVS + 1) if mask & (1 << (prn - 1))]


def _has_cached_dop(state: NmeaState) -> bool:
    return state.pdop > 0 and state.hdop > 0 and state.vdop > 0


def _mode_char(state: NmeaState, location: Location) -> str:
    if not location.flags & LocationFlags.HAS_LAT_LONG:
        return "N"  # no fix
    if state.position_mode is PositionMode.STANDALONE:
        return "A"  # autonomous
    return "D"  # differential


def _gps_quality(state: NmeaState, location: Location) -> str:
    if not location.flags & LocationFlags.HAS_LAT_LONG:
        return "0"
    if state.position_mode is PositionMode.STANDALONE:
        return "1"
    return "2"


def _lat_lon(location: Location) -> str:
    if not location.flags & LocationFlags.HAS_LAT_LONG:
        return ",,,,"
    latitude = location.latitude
    longitude = location.longitude
    if latitude > 0:
        lat_hemisphere = "N"
    else:
        lat_hemisphere = "S"
        latitude = -latitude
    if longitude < 0:
        lon_hemisphere = "W"
        longitude = -longitude
    else:
        lon_hemisphere = "E"
    lat_minutes = math.fmod(latitude * 60.0, 60.0)
    lon_minutes = math.fmod(longitude * 60.0, 60.0)
    lat_degrees = int(math.floor(latitude)) % 256
    lon_degrees = int(math.floor(longitude)) % 256
    return (
        f"{lat_degrees:02d}{lat_minutes:09.6f},{lat_hemisphere},"
        f"{lon_degrees:03d}{lon_minutes:09.6f},{lon_hemisphere},"
    )


def _fix_sentences(state: NmeaState, location: Location,
                   extended: LocationExtended, utc: time.struct_time) -> Iterator[str]:
    used = _used_svs(state.sv_used_mask)
    # Clear the cache so the mask cannot be used again.
    state.sv_used_mask = 0
    used_count = len(used)
    has_dop = bool(extended.flags & ExtendedFlags.HAS_DOP)
    has_msl = bool(extended.flags & ExtendedFlags.HAS_ALTITUDE_MEAN_SEA_LEVEL)
    has_mag_dev = bool(extended.flags & ExtendedFlags.HAS_MAG_DEV)
    hhmmss = f"{utc.tm_hour:02d}{utc.tm_min:02d}{utc.tm_sec:02d}"

    # $GPGSA
    if used_count == 0:
        fix_type = "1"
    elif used_count <= 3:
        fix_type = "2"
    else:
        fix_type = "3"
    slots = "".join(
        f"{prn:02d}," for prn in used[:GSA_SV_SLOTS]
    ) + "," * (GSA_SV_SLOTS - min(used_count, GSA_SV_SLOTS))
    if has_dop:
        dop = f"{extended.pdop:.1f},{extended.hdop:.1f},{extended.vdop:.1f}"
    elif _has_cached_dop(state):
        dop = f"{state.pdop:.1f},{state.hdop:.1f},{state.vdop:.1f}"
    else:
        dop = ",,"
    yield _checked(f"$GPGSA,A,{fix_type},{slots}{dop}")

    # $GPVTG
    if location.flags & LocationFlags.HAS_BEARING:
        # The magnetic track is reported equal to the true track; the
        # magnetic deviation does not enter this sentence.
        track = f"$GPVTG,{location.bearing:.1f},T,{location.bearing:.1f},M,"
    else:
        track = "$GPVTG,,T,,M,"
    if location.flags & LocationFlags.HAS_SPEED:
        knots = location.speed * KNOTS_PER_METRE_PER_SECOND
        kmh = location.speed * KMH_PER_METRE_PER_SECOND
        speed = f"{knots:.1f},N,{kmh:.1f},K,"
    else:
        speed = ",N,,K,"
    yield _checked(f"{track}{speed}{_mode_char(state, location)}")

    # $GPRMC
    parts = [f"$GPRMC,{hhmmss},A,", _lat_lon(location)]
    if location.flags & LocationFlags.HAS_SPEED:
        parts.append(f"{location.speed * KNOTS_PER_METRE_PER_SECOND:.1f},")
    else:
        parts.append(",")
    if location.flags & LocationFlags.HAS_BEARING:
        parts.append(f"{location.bearing:.1f},")
    else:
        parts.append(",")
    parts.append(f"{utc.tm_mday:02d}{utc.tm_mon:02d}{utc.tm_year % 100:02d},")
    if has_mag_dev:
        variation = extended.magnetic_deviation
        if variation < 0.0:
            direction = "W"
            variation = -variation
        else:
            direction = "E"
        parts.append(f"{variation:.1f},{direction},")
    else:
        parts.append(",,")
    parts.append(_mode_char(state, location))
    yield _checked("".join(parts))

    # $GPGGA
    parts = [f"$GPGGA,{hhmmss},", _lat_lon(location)]
    quality = _gps_quality(state, location)
    if has_dop:
        parts.append(f"{quality},{used_count:02d},{extended.hdop:.1f},")
    elif _has_cached_dop(state):
        parts.append(f"{quality},{used_count:02d},{state.hdop:.1f},")
    else:
        parts.append(f"{quality},{used_count:02d},,")
    if has_msl:
        parts.append(f"{extended.altitude_mean_sea_level:.1f},M,")
    else:
        parts.append(",,")
    if location.flags & LocationFlags.HAS_ALTITUDE and has_msl:
        separation = location.altitude - extended.altitude_mean_sea_level
        parts.append(f"{separation:.1f},M,,")
    else:
        parts.append(",,,")
    yield _checked("".join(parts))


def generate_pos(state: NmeaState, location: Location,
                 location_extended: LocationExtended, generate_nmea: bool) -> None:
    """Send $GPGSA, $GPVTG, $GPRMC and $GPGGA for a position report.

    When generate_nmea is false the fix is not final and blank sentences
    are sent instead. The cached DOP values are cleared afterwards.
    """
    try:
        utc = time.gmtime(_seconds(location.timestamp))
    except (OverflowError, OSError, ValueError) as exc:
        raise ValueError(f"cannot convert timestamp {location.timestamp}") from exc

    if generate_nmea:
        bodies: Iterator[str] = _fix_sentences(state, location, location_extended, utc)
    else:
        bodies = iter(BLANK_FIX_SENTENCES)
    for body in bodies:
        state.send(put_checksum(body))

    # Clear the DOP cache so it cannot be used again.
    state.pdop = state.hdop = state.vdop = 0.0