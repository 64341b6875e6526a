"""Transport module: Stepping engine and event loop."""

from bichsel_mc.transport.stepping import EventResult, StepState, SteppingEngine
from bichsel_mc.transport.engine import DepositionEngine

__all__ = ["EventResult", "StepState", "SteppingEngine", "DepositionEngine"]
