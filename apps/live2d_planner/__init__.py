"""Speech-timed Live2D parameter timelines.

Parses a rig parameter catalog, asks an LLM for a candidate animation plan,
validates and clamps it, and falls back to a rule-based idle animation when
the plan is unusable.
"""

__version__ = "0.1.0"
