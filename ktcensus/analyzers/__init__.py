from .core import AnalyzerError, FileInfo, SourceFile, SourceTreeProvider
from .features import (
    FeatureCounter, FeatureCounters, FeatureSpec, UsageSite,
    get_file_path, get_line_number,
)

__all__ = [
    'AnalyzerError',
    'FileInfo',
    'SourceFile',
    'SourceTreeProvider',
    'FeatureCounter',
    'FeatureCounters',
    'FeatureSpec',
    'UsageSite',
    'get_file_path',
    'get_line_number',
]
