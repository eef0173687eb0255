"""
earwise: adaptive ear-training practice scheduler.

Schedules interval, chord and chord-progression drills with SM-2 spaced
repetition, a mastery estimate per card and a tiered unlock progression.
"""

__version__ = "1.0.0"
