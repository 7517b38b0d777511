"""OnSchedule: recurring inspection scheduling and reminder dispatch."""

__version__ = "0.1.0"
