"""
chartguard: verification and quality gating for AI-drafted project schedules.
"""

__version__ = "0.1.0"
