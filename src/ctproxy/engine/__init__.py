"""External proxy engine process supervision."""

from __future__ import annotations

__all__ = ["EngineState", "ProcessSupervisor"]

from ctproxy.engine.supervisor import EngineState, ProcessSupervisor
