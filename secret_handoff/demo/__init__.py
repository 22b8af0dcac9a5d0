"""Local simulation of the execution substrate."""

from .substrate import Simulation, SimulatedSubstrate, build_simulation

__all__ = ["Simulation", "SimulatedSubstrate", "build_simulation"]
