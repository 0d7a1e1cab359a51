"""Fold decoded sentences into the running position state.

Which sentence owns which field:

    RMC -> latitude, longitude, speed (km/h, mph), course, course_direction,
           status
    GGA -> latitude, longitude, altitude, satellites, fix_quality, hdop
    VTG -> speed (km/h as reported, mph from knots), course,
           course_direction

A field the sentence left empty never overwrites a known value.
"""

import logging

from gpscapture.nmea import DecodedSentence, GGAData, RMCData, VTGData
from gpscapture.position.types import PositionState

__all__ = ["PositionAccumulator"]

logger = logging.getLogger(__name__)


def _merge(state: PositionState, **values: object) -> None:
    for name, value in values.items():
        if value is not None:
            setattr(state, name, value)


class PositionAccumulator:
    """Owns a :class:`PositionState` and applies sentences to it."""

    def __init__(self, device_id: str | None = None) -> None:
        self.state = PositionState(device_id=device_id)

    def apply(self, sentence: DecodedSentence) -> None:
        if isinstance(sentence, RMCData):
            self._apply_rmc(sentence)
        elif isinstance(sentence, GGAData):
            self._apply_gga(sentence)
        elif isinstance(sentence, VTGData):
            self._apply_vtg(sentence)
        else:
            logger.debug("Ignoring unsupported sentence %r", type(sentence).__name__)

    def _apply_rmc(self, rmc: RMCData) -> None:
        _merge(
            self.state,
            latitude=rmc.latitude_degrees,
            longitude=rmc.longitude_degrees,
            speed_kmh=rmc.speed_kilometers_per_hour,
            speed_mph=rmc.speed_miles_per_hour,
            course=rmc.course_degrees,
            course_direction=rmc.course_direction,
        )
        # Status is always present on RMC ("A" or "V").
        self.state.status = rmc.status

    def _apply_gga(self, gga: GGAData) -> None:
        _merge(
            self.state,
            latitude=gga.latitude_degrees,
            longitude=gga.longitude_degrees,
            altitude=gga.altitude_meters,
            satellites=gga.num_satellites,
            fix_quality=gga.fix_quality,
            hdop=gga.horizontal_dilution_of_precision,
        )

    def _apply_vtg(self, vtg: VTGData) -> None:
        _merge(
            self.state,
            speed_kmh=vtg.speed_kilometers_per_hour,
            speed_mph=vtg.speed_miles_per_hour,
            course=vtg.track_true_degrees,
            course_direction=vtg.course_direction,
        )
