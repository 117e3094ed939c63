"""
Analysis Graph Definition
=========================

LangGraph workflow for analyzing one frame.

LangGraph is used for CONTROL FLOW only: every node is a plain,
synchronous step, and every node absorbs its own failure into a
ReasonCode so the graph always ends with a SmileResult.

Graph Structure:
    START -> convert -> detect -> classify -> END
                 |         |
                 +---------+---> END   (fallback outcome already set)

    convert:  RawFrame -> DecodedImage          (PixelConverter)
    detect:   DecodedImage -> landmark sets     (LandmarkDetector)
    classify: first landmark set -> SmileResult (SmileClassifier)

Design Philosophy:
    - The graph never releases the frame (the pipeline does)
    - Only the first detected face is classified
    - A node that sets `reason` ends the run
"""

import logging
from typing import Any, Dict, List, Optional, TypedDict

from langgraph.graph import StateGraph, END

from smile_agent.classification.smile import SmileClassifier
from smile_agent.conversion.pixel_converter import (
    DecodeFailed,
    EncodeFailed,
    PixelConverter,
    UnsupportedFormat,
)
from smile_agent.detection.detector import DetectorUnavailable, LandmarkDetector
from smile_agent.models.frame import RawFrame
from smile_agent.models.image import DecodedImage
from smile_agent.models.landmarks import LandmarkSet
from smile_agent.models.reason_codes import ReasonCode
from smile_agent.models.result import AnalysisOutcome, SmileMetrics, SmileResult


logger = logging.getLogger(__name__)


class AnalysisGraphState(TypedDict, total=False):
    """
    State passed through the analysis graph.

    Attributes:
        frame: Frame under analysis (owned by the caller)
        image: Decoded image, once converted
        faces: Landmark sets returned by the detector
        result: Smile decision, once known
        reason: Reason code; setting it ends the run
        metrics: Face geometry, when measured
    """
    frame: RawFrame
    image: Optional[DecodedImage]
    faces: List[LandmarkSet]
    result: Optional[SmileResult]
    reason: Optional[ReasonCode]
    metrics: Optional[SmileMetrics]


def _fallback(reason: ReasonCode) -> Dict[str, Any]:
    return {"result": SmileResult.not_smiling(), "reason": reason}


def _route(state: AnalysisGraphState) -> str:
    return "done" if state.get("reason") is not None else "continue"


class SmileAnalysisGraph:
    """
    LangGraph-based per-frame analysis.

    Example:
        graph = SmileAnalysisGraph(detector=MockLandmarkDetector())
        outcome = graph.run(frame)
    """

    def __init__(
        self,
        detector: LandmarkDetector,
        converter: Optional[PixelConverter] = None,
        classifier: Optional[SmileClassifier] = None,
    ) -> None:
        self.detector = detector
        self.converter = converter or PixelConverter()
        self.classifier = classifier or SmileClassifier()

        self._graph = self._build_graph()

    def _build_graph(self):
        """Build the LangGraph workflow."""
        workflow = StateGraph(AnalysisGraphState)

        workflow.add_node("convert", self._convert_node)
        workflow.add_node("detect", self._detect_node)
        workflow.add_node("classify", self._classify_node)

        workflow.set_entry_point("convert")
        workflow.add_conditional_edges(
            "convert", _route, {"continue": "detect", "done": END}
        )
        workflow.add_conditional_edges(
            "detect", _route, {"continue": "classify", "done": END}
        )
        workflow.add_edge("classify", END)

        return workflow.compile()

    # =========================================================================
    # Nodes
    # =========================================================================

    def _convert_node(self, state: AnalysisGraphState) -> Dict[str, Any]:
        frame = state["frame"]
        try:
            return {"image": self.converter.convert(frame)}
        except UnsupportedFormat as e:
            logger.warning(str(e))
            return _fallback(ReasonCode.UNSUPPORTED_FORMAT)
        except EncodeFailed as e:
            logger.error(str(e))
            return _fallback(ReasonCode.ENCODE_FAILED)
        except DecodeFailed as e:
            logger.error(str(e))
            return _fallback(ReasonCode.DECODE_FAILED)
        except Exception as e:
            logger.error(f"Conversion error (frame={frame.frame_id}): {e}")
            return _fallback(ReasonCode.INTERNAL_ERROR)

    def _detect_node(self, state: AnalysisGraphState) -> Dict[str, Any]:
        frame = state["frame"]
        try:
            faces = list(self.detector.detect(state["image"]))
        except DetectorUnavailable as e:
            logger.warning(f"Detector unavailable (frame={frame.frame_id}): {e}")
            return _fallback(ReasonCode.DETECTOR_UNAVAILABLE)
        except Exception as e:
            logger.error(f"Detector error (frame={frame.frame_id}): {e}")
            return _fallback(ReasonCode.DETECTOR_ERROR)

        if not faces:
            logger.debug(f"No face detected (frame={frame.frame_id})")
            return {"faces": [], **_fallback(ReasonCode.NO_FACE)}
        return {"faces": faces}

    def _classify_node(self, state: AnalysisGraphState) -> Dict[str, Any]:
        landmarks = state["faces"][0]
        try:
            result, reason, metrics = self.classifier.evaluate(landmarks)
        except Exception as e:
            logger.error(f"Classification error (frame={state['frame'].frame_id}): {e}")
            return _fallback(ReasonCode.INTERNAL_ERROR)

        if reason is ReasonCode.INSUFFICIENT_LANDMARKS:
            logger.warning(f"Too few landmarks: {len(landmarks)}")
        else:
            logger.debug(
                f"Frame {state['frame'].frame_id}: {metrics}, smiling={result.is_smiling}"
            )
        return {"result": result, "reason": reason, "metrics": metrics}

    # =========================================================================
    # Entry Point
    # =========================================================================

    def run(self, frame: RawFrame) -> AnalysisOutcome:
        """
        Analyze one frame.

        Args:
            frame: Frame to analyze (left open)

        Returns:
            AnalysisOutcome; latency_ms is left at 0 for the caller to fill
        """
        final = self._graph.invoke({"frame": frame})

        return AnalysisOutcome(
            result=final.get("result") or SmileResult.not_smiling(),
            reason=final.get("reason") or ReasonCode.INTERNAL_ERROR,
            frame_id=frame.frame_id,
            timestamp=frame.timestamp,
            faces_detected=len(final.get("faces") or []),
            metrics=final.get("metrics"),
        )
