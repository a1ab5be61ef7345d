# dronefleet/config.py
# ------------------------------------------------------------
# Central configuration using pydantic-settings.
#
# All values can be overridden via environment variables.
# ------------------------------------------------------------

from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """
    Runtime configuration for the fleet backend.
    """

    # --------------------------------------------------------
    # CORS / Frontend integration
    # --------------------------------------------------------
    api_cors_origins: str = (
        "http://localhost:5173,"
        "http://localhost:3000"
    )

    # --------------------------------------------------------
    # Simulation toggles
    # --------------------------------------------------------
    simulation_enabled: bool = True
    weather_enabled: bool = True

    # --------------------------------------------------------
    # Simulation rates (seconds)
    # --------------------------------------------------------
    tick_interval_sec: float = 3.0
    weather_poll_sec: float = 300.0
    command_latency_sec: float = 0.5   # artificial command round-trip
    scenario_step_scale: float = 1.0   # 0 plays the demo scenario instantly

    # --------------------------------------------------------
    # Bounded in-memory stores
    # --------------------------------------------------------
    event_log_capacity: int = 300
    flight_ledger_capacity: int = 200

    # --------------------------------------------------------
    # Weather gateway (Open-Meteo, no API key)
    # --------------------------------------------------------
    weather_url: str = "https://api.open-meteo.com/v1/forecast"
    weather_lat: float = 55.03
    weather_lon: float = 82.92
    weather_timeout_sec: float = 5.0

    # --------------------------------------------------------
    # Logging
    # --------------------------------------------------------
    log_level: str = "INFO"

    # --------------------------------------------------------
    # Helpers
    # --------------------------------------------------------
    def cors_list(self) -> List[str]:
        """
        Parse comma-separated CORS origins into a clean list.
        """
        return [
            x.strip()
            for x in self.api_cors_origins.split(",")
            if x.strip()
        ]


# Singleton settings object
settings = Settings()
