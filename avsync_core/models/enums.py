# avsync_core/models/enums.py
from enum import Enum


class SyncStatus(Enum):
    IN_SYNC = 'in_sync'
    OFFSET = 'offset'
    DRIFT = 'drift'
    CUTS = 'cuts'
    UNSYNCABLE = 'unsyncable'


class CorrectionType(Enum):
    NONE = 'none'
    DELAY = 'delay'
    STRETCH = 'stretch'
    SEGMENT_REPAIR = 'segment_repair'
    MANUAL = 'manual'


class SegmentSource(Enum):
    CROSS_CORRELATION = 'cross_correlation'
    PEAK_MATCH = 'peak_match'
    FINGERPRINT = 'fingerprint'


class AnchorKind(Enum):
    PEAK = 'peak'
    SILENCE = 'silence'
    TRANSITION = 'transition'
    TRANSIENT = 'transient'


class DifferenceKind(Enum):
    CUT = 'cut'
    INSERTION = 'insertion'
    REPLACEMENT = 'replacement'


class EventKind(Enum):
    ANCHOR_MATCH = 'anchor_match'
    CUT = 'cut'
    INSERTION = 'insertion'
    DRIFT_CHANGE = 'drift_change'
    SILENCE_BOUNDARY = 'silence_boundary'


class OperationType(Enum):
    DELAY = 'delay'    # insert silence before the target
    TEMPO = 'tempo'    # rescale playback speed
    TRIM = 'trim'      # remove target audio
    PAD = 'pad'        # insert silence mid-stream


class DelayMethod(Enum):
    """Which consensus tier produced the global delay."""
    GLOBAL_CORRELATION = 'global_correlation'
    SEGMENT_CONSENSUS = 'segment_consensus'
    WEIGHTED_AVERAGE = 'weighted_average'
    NONE = 'none'
