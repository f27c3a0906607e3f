"""NMEA 0183 sentence generation: shared types, checksums and satellite reports."""

from __future__ import annotations

import enum
import functools
import logging
import operator
import time
from dataclasses import dataclass, field
from itertools import chain
from typing import Callable, Iterator, List, Optional, Sequence

log = logging.getLogger(__name__)

NMEA_SENTENCE_MAX_LENGTH = 200
GPS_PRN_RANGE = range(1, 33)
GLONASS_PRN_RANGE = range(65, 97)
SVS_PER_GSV_SENTENCE = 4

BLANK_FIX_SENTENCES = (
    "$GPGSA,A,1,,,,,,,,,,,,,,,",
    "$GPVTG,,T,,M,,N,,K,N",
    "$GPRMC,,V,,,,,,,,,,N",
    "$GPGGA,,,,,,0,,,,,,,,",
)


class LocationFlags(enum.IntFlag):
    """Which fields of a Location carry valid data."""

    HAS_LAT_LONG = 0x0001
    HAS_ALTITUDE = 0x0002
    HAS_SPEED = 0x0004
    HAS_BEARING = 0x0008
    HAS_ACCURACY = 0x0010


class ExtendedFlags(enum.IntFlag):
    """Which fields of a LocationExtended carry valid data."""

    HAS_ALTITUDE_MEAN_SEA_LEVEL = 0x0001
    HAS_DOP = 0x0002
    HAS_MAG_DEV = 0x0004


class PositionMode(enum.Enum):
    """How the engine computes a fix."""

    STANDALONE = 0
    MS_BASED = 1
    MS_ASSISTED = 2


@dataclass
class Location:
    """A position report; timestamp is in milliseconds since the epoch."""

    flags: LocationFlags = LocationFlags(0)
    latitude: float = 0.0
    longitude: float = 0.0
    altitude: float = 0.0
    speed: float = 0.0
    bearing: float = 0.0
    accuracy: float = 0.0
    timestamp: int = 0


@dataclass
class LocationExtended:
    """Additional position data not carried in a Location."""

    flags: ExtendedFlags = ExtendedFlags(0)
    altitude_mean_sea_level: float = 0.0
    pdop: float = 0.0
    hdop: float = 0.0
    vdop: float = 0.0
    magnetic_deviation: float = 0.0


@dataclass
class SvInfo:
    """One satellite in view."""

    prn: int
    snr: float = 0.0
    elevation: float = 0.0
    azimuth: float = 0.0


@dataclass
class SvStatus:
    """A satellite status report."""

    sv_list: List[SvInfo] = field(default_factory=list)
    used_in_fix_mask: int = 0

    @property
    def num_svs(self) -> int:
        return len(self.sv_list)


NmeaCallback = Callable[[int, str, int], None]


@dataclass
class NmeaState:
    """Engine state shared between satellite and position reports."""

    nmea_cb: Optional[NmeaCallback] = None
    position_mode: PositionMode = PositionMode.STANDALONE
    sv_used_mask: int = 0
    pdop: float = 0.0
    hdop: float = 0.0
    vdop: float = 0.0

    def send(self, sentence: str) -> None:
        """Hand a finished sentence to the callback with the current time in ms.

        The length passed on excludes the leading '$'.
        """
        now = time.time_ns() // 1_000_000
        if self.nmea_cb is not None:
            self.nmea_cb(now, sentence, len(sentence) - 1)
        log.debug("NMEA <%s", sentence)


def put_checksum(body: str) -> str:
    """Append '*XX\\r\\n' to a sentence body that starts with '$'."""
    checksum = functools.reduce(operator.xor, body[1:].encode(), 0)
    sentence = f"{body}*{checksum:02X}\r\n"
    return sentence[: NMEA_SENTENCE_MAX_LENGTH - 1]


def _checked(body: str) -> str:
    if len(body) >= NMEA_SENTENCE_MAX_LENGTH:
        raise ValueError(f"NMEA sentence too long: {len(body)} characters")
    return body


def _gsv_sentences(talker: str, satellites: Sequence[SvInfo]) -> Iterator[str]:
    if not satellites:
        yield f"${talker}GSV,1,1,0,"
        return
    count = len(satellites)
    groups = [
        satellites[start:start + SVS_PER_GSV_SENTENCE]
        for start in range(0, count, SVS_PER_GSV_SENTENCE)
    ]
    for number, group in enumerate(groups, start=1):
        parts = [f"${talker}GSV,{len(groups)},{number},{count:02d}"]
        for sv in group:
            parts.append(
                f",{sv.prn:02d},{int(0.5 + sv.elevation):02d},"
                f"{int(0.5 + sv.azimuth):03d},"
            )
            if sv.snr > 0:
                parts.append(f"{int(0.5 + sv.snr):02d}")
        yield _checked("".join(parts))


def generate_sv(state: NmeaState, sv_status: SvStatus,
                location_extended: LocationExtended) -> None:
    """Send $GPGSV and $GLGSV sentences and cache fix data for the next position."""
    gps = [sv for sv in sv_status.sv_list if sv.prn in GPS_PRN_RANGE]
    glonass = [sv for sv in sv_status.sv_list if sv.prn in GLONASS_PRN_RANGE]

    for body in chain(_gsv_sentences("GP", gps), _gsv_sentences("GL", glonass)):
        state.send(put_checksum(body))

    if sv_status.used_in_fix_mask == 0:
        # No satellite used: there will be no position report, so send blanks.
        for body in BLANK_FIX_SENTENCES:
            state.send(put_checksum(body))
        return

    state.sv_used_mask = sv_status.used_in_fix_mask
    if location_extended.flags & ExtendedFlags.HAS_DOP:
        state.pdop = location_extended.pdop
        state.hdop = location_extended.hdop
        state.vdop = location_extended.vdop
    else:
        state.pdop = state.hdop = state.vdop = 0.0