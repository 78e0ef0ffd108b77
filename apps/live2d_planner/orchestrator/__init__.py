from .planner import PlanReport, TimelinePlanner

__all__ = ["PlanReport", "TimelinePlanner"]
