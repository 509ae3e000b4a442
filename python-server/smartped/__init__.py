from .filters import LowPassFilter, ZeroCrossingDetector, ThresholdEstimator
from .manager import Sample, StepDetectionManager, BATCH_SIZE, BLOCK_NUMBER
from .datalog import DataLogger
from .reader import ReaderThread, parse_line, load_samples
__all__ = [
    'LowPassFilter',
    'ZeroCrossingDetector',
    'ThresholdEstimator',
    'Sample',
    'StepDetectionManager',
    'BATCH_SIZE',
    'BLOCK_NUMBER',
    'DataLogger',
    'ReaderThread',
    'parse_line',
    'load_samples',
]
