"""Red-Green-Refactor cycle enforcement."""

from gatekeep.tdd.cycle import TDDCycle

__all__ = ["TDDCycle"]
