# dronefleet/errors.py
# ------------------------------------------------------------
# Internal exceptions.
#
# None of these escape the engine's public API: commands turn
# them into CommandResult failures, the tick loop isolates them
# per vehicle, and weather failures degrade to "no weather".
# ------------------------------------------------------------


class FleetError(Exception):
    """Base class for fleet engine errors."""


class UnknownStationError(FleetError, LookupError):
    def __init__(self, station_id: str):
        super().__init__(f"unknown station {station_id!r}")
        self.station_id = station_id


class WeatherUnavailableError(FleetError):
    """Raised by the weather gateway when no classification can be produced."""
