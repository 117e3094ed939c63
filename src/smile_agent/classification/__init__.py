"""
Classification Module
=====================

Landmark geometry to smile decision.

Components:
    - SmileClassifier: Ratio-based smile heuristic
    - SmileThresholds: Decision thresholds
"""

from smile_agent.classification.smile import SmileClassifier, SmileThresholds, distance

__all__ = [
    "SmileClassifier",
    "SmileThresholds",
    "distance",
]
