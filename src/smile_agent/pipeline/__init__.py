"""
Pipeline Module
===============

Per-frame smile analysis and its concurrency model.

This module implements the frame analysis core:
    - graph.py: LangGraph workflow convert -> detect -> classify
    - slot.py: Keep-only-latest frame handoff
    - analyzer.py: Worker, result delivery and shutdown

Key Design Decisions:
    - LangGraph is used for STRUCTURE, not LLM reasoning
    - One frame in flight; newer frames replace waiting ones
    - Every frame is released exactly once
    - Per-frame failures become reason codes, never exceptions
"""

from smile_agent.pipeline.analyzer import FrameAnalysisPipeline, ResultCallback
from smile_agent.pipeline.graph import SmileAnalysisGraph
from smile_agent.pipeline.slot import LatestFrameSlot

__all__ = [
    "FrameAnalysisPipeline",
    "ResultCallback",
    "SmileAnalysisGraph",
    "LatestFrameSlot",
]
