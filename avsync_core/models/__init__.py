# avsync_core/models/__init__.py
"""
Centralized model definitions for avsync.

    from avsync_core.models import (
        # Enums
        SyncStatus, CorrectionType, SegmentSource, AnchorKind,
        # Settings
        AnalysisSettings,
        # Media
        Waveform, Fingerprint, SilenceResult,
        # Results
        SegmentResult, SyncAnalysisResult, CorrectionRecommendation,
        # Plans
        CorrectionPlan, CorrectionOperation, VerificationPoint,
    )

Model Organization:
    - enums.py: status, correction, source and operation enums
    - settings.py: tunable thresholds (AnalysisSettings)
    - media.py: extraction outputs (Waveform, Fingerprint, silence)
    - analysis.py: detector and orchestrator results
    - correction.py: correction plans
"""

from .analysis import (
    AnalysisMetadata,
    AnchorPoint,
    CorrectionRecommendation,
    QuickSyncResult,
    SegmentCorrection,
    SegmentResult,
    StructuralDifference,
    SyncAnalysisResult,
    SyncEvent,
    clamp_confidence,
)
from .correction import CorrectionOperation, CorrectionPlan, VerificationPoint
from .enums import (
    AnchorKind,
    CorrectionType,
    DelayMethod,
    DifferenceKind,
    EventKind,
    OperationType,
    SegmentSource,
    SyncStatus,
)
from .media import (
    FINGERPRINT_FRAME_MS,
    FINGERPRINT_SAMPLE_RATE,
    Fingerprint,
    SilenceRegion,
    SilenceResult,
    Waveform,
)
from .settings import AnalysisSettings

__all__ = [
    # Enums
    "AnchorKind",
    "CorrectionType",
    "DelayMethod",
    "DifferenceKind",
    "EventKind",
    "OperationType",
    "SegmentSource",
    "SyncStatus",
    # Settings
    "AnalysisSettings",
    # Media
    "FINGERPRINT_FRAME_MS",
    "FINGERPRINT_SAMPLE_RATE",
    "Fingerprint",
    "SilenceRegion",
    "SilenceResult",
    "Waveform",
    # Results
    "AnalysisMetadata",
    "AnchorPoint",
    "CorrectionRecommendation",
    "QuickSyncResult",
    "SegmentCorrection",
    "SegmentResult",
    "StructuralDifference",
    "SyncAnalysisResult",
    "SyncEvent",
    "clamp_confidence",
    # Plans
    "CorrectionOperation",
    "CorrectionPlan",
    "VerificationPoint",
]
