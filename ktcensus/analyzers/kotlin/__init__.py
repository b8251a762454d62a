from .core import KotlinTreeProvider, convert_to_xml
from .features import NodeKind, classify_node
from .census import FEATURES, CensusTotals, KotlinCensusVisitor

__all__ = [
    'KotlinTreeProvider',
    'convert_to_xml',
    'NodeKind',
    'classify_node',
    'FEATURES',
    'CensusTotals',
    'KotlinCensusVisitor',
]
