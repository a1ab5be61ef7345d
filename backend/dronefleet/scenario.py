# dronefleet/scenario.py
# ------------------------------------------------------------
# Scripted demo scenario for presentations.
#
# Plays a fixed chain of operator actions on top of the live
# fleet: stations come online, two drones are dispatched and
# recalled, station 3 faults and recovers.
# ------------------------------------------------------------

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import Awaitable, Callable, List, Optional

from .models import EventSource
from .registry import FleetRegistry

log = logging.getLogger("dronefleet.scenario")


@dataclass
class DemoStep:
    delay_sec: float
    name: str
    run: Callable[[], Awaitable[None]]


class DemoScenario:
    def __init__(self, registry: FleetRegistry, step_scale: float = 1.0):
        self.registry = registry
        self.step_scale = step_scale
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def steps(self, actor: str, source: EventSource) -> List[DemoStep]:
        reg = self.registry

        async def prepare_stations():
            reg.set_station_status("st-1", "online", source=source)
            reg.set_station_status("st-2", "online", source=source)

        async def dispatch_101():
            await reg.dispatch("dr-101", actor=actor, source=source)

        async def dispatch_102():
            await reg.dispatch("dr-102", actor=actor, source=source)

        async def recall_101():
            await reg.recall("dr-101", actor=actor, source=source)

        async def recall_102():
            await reg.recall("dr-102", actor=actor, source=source)

        async def station_fault():
            reg.set_station_status("st-3", "error", source=source)

        async def station_recover():
            reg.set_station_status("st-3", "online", source=source)
            reg.bus.publish(
                "Demo scenario finished. System is back to normal operation.",
                level="info",
                source="system",
            )

        return [
            DemoStep(0.5, "prepare stations", prepare_stations),
            DemoStep(1.5, "dispatch DR-101", dispatch_101),
            DemoStep(2.5, "dispatch DR-102", dispatch_102),
            DemoStep(3.0, "recall DR-101", recall_101),
            DemoStep(3.0, "recall DR-102", recall_102),
            DemoStep(3.0, "station 3 fault", station_fault),
            DemoStep(3.0, "station 3 recovery", station_recover),
        ]

    def start(self, actor: str = "admin", source: EventSource = "admin") -> bool:
        """
        Launch the scenario in the background. Returns False (and logs an
        event) when it is already running.
        """
        if self.running:
            self.registry.bus.publish("Demo scenario is already running.", level="info", source="system")
            return False

        self.registry.bus.publish(
            f"Operator {actor} started the station demo scenario.",
            level="info",
            source=source,
        )
        self._task = asyncio.get_running_loop().create_task(self.play(actor, source), name="demo-scenario")
        return True

    async def play(self, actor: str = "admin", source: EventSource = "admin") -> None:
        for step in self.steps(actor, source):
            delay = step.delay_sec * self.step_scale
            if delay > 0:
                await asyncio.sleep(delay)
            log.info("demo step: %s", step.name)
            try:
                await step.run()
            except Exception:
                log.exception("demo step %r failed", step.name)

    def cancel(self) -> None:
        if self.running:
            self._task.cancel()
        self._task = None
