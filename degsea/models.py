"""
Core records for the DEGSEA pipeline.

DEResult rows come from an upstream differential expression step,
RankedGene rows from the rank statistic builder and EnrichmentResult rows
from one enrichment run against one gene-set collection.
"""

import math
from dataclasses import dataclass, asdict, field
from typing import Dict, Optional, Tuple, Any


def is_missing(value: Any) -> bool:
    """True for None, NaN and values that cannot be read as a float"""
    if value is None:
        return True
    try:
        return math.isnan(float(value))
    except (TypeError, ValueError):
        return True


@dataclass(frozen=True)
class DEResult:
    """
    One gene from a differential expression comparison.

    Undefined statistics are None (upstream NA). They are never defaulted,
    the normalizer drops such rows instead.
    """

    gene_id: str
    log2_fold_change: Optional[float]
    p_value: Optional[float]
    adjusted_p_value: Optional[float] = None

    @property
    def is_rankable(self) -> bool:
        """Both fold change and p-value are defined"""
        return not (is_missing(self.log2_fold_change) or is_missing(self.p_value))

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class RankedGene:
    """A gene and its signed ranking statistic"""

    gene_id: str
    score: float


@dataclass(frozen=True)
class EnrichmentResult:
    """Result from one gene set tested in one collection run"""

    set_name: str
    p_value: float
    adjusted_p_value: float
    nes: float  # Normalized Enrichment Score
    size: int  # Genes of the set present in the ranking
    leading_edge_genes: Tuple[str, ...] = field(default_factory=tuple)
    es: float = float('nan')  # Raw enrichment score
    collection: str = ""

    def to_dict(self) -> Dict:
        """Convert to dictionary, keeping the leading edge as a list"""
        d = asdict(self)
        d['leading_edge_genes'] = list(self.leading_edge_genes)
        return d

    def is_significant(self, alpha: float = 0.05) -> bool:
        """Adjusted p-value below alpha (NaN is never significant)"""
        return self.adjusted_p_value < alpha
