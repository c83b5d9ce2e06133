"""Punch'd time-accounting engine.

Clock sessions, overtime allocation, pay periods and timesheets for
hourly, contractor and volunteer workforces.
"""

__version__ = "0.1.0"
