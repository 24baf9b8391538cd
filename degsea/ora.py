"""
Over-Representation Analysis (ORA) for DEGSEA

Hypergeometric test of significant up/down DE genes against a gene-set
collection, with Benjamini-Hochberg correction per collection. Also hosts
the FDR helper shared with the GSEA runner.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from scipy.stats import hypergeom
from statsmodels.stats.multitest import multipletests

from .gene_sets import GeneSetCollection
from .models import DEResult, is_missing

logger = logging.getLogger("DEGSEA.ORA")


@dataclass(frozen=True)
class ORAResult:
    """Result from ORA analysis for a single gene set"""

    set_name: str
    direction: str  # 'up' | 'down'

    # Enrichment statistics
    p_value: float
    adjusted_p_value: float

    # Gene counts
    hit_genes: Tuple[str, ...]  # Query genes in the set
    set_size: int  # Set genes inside the background
    query_size: int
    background_size: int
    collection: str = ""

    @property
    def overlap_ratio(self) -> str:
        return f"{len(self.hit_genes)}/{self.set_size}"

    def to_dict(self) -> Dict:
        d = asdict(self)
        d['hit_genes'] = list(self.hit_genes)
        d['overlap_ratio'] = self.overlap_ratio
        return d


def fdr_correction(p_values: Sequence[float], method: str = 'fdr_bh') -> List[float]:
    """
    Apply FDR correction to p-values.

    NaN p-values are left out of the correction and come back as NaN.

    Args:
        p_values: List of p-values
        method: statsmodels correction method ('fdr_bh' for Benjamini-Hochberg)

    Returns:
        List of adjusted p-values, in input order
    """
    p = np.asarray(p_values, dtype=float)
    adjusted = np.full(p.shape, np.nan)
    finite = ~np.isnan(p)
    if finite.any():
        _, adjusted[finite], _, _ = multipletests(p[finite], method=method)
    return [float(v) for v in adjusted]


def hypergeometric_test(
    hit_in_set: int,
    set_size: int,
    query_size: int,
    background_size: int
) -> float:
    """
    P(X >= k) for the overlap between a query gene list and a gene set.

    Returns:
        P-value
    """
    return float(hypergeom.sf(hit_in_set - 1, background_size, set_size, query_size))


def select_de_genes(
    rows: Sequence[DEResult],
    alpha: float = 0.05,
    lfc_threshold: float = 1.0
) -> Dict[str, List[str]]:
    """
    Split significant DE genes by direction.

    A gene is significant when its adjusted p-value is below alpha and
    |log2FC| >= lfc_threshold. Rows without an adjusted p-value are skipped.

    Returns:
        {'up': [...], 'down': [...]}
    """
    selected = {'up': [], 'down': []}
    for row in rows:
        if is_missing(row.adjusted_p_value) or is_missing(row.log2_fold_change):
            continue
        if row.adjusted_p_value < alpha and abs(row.log2_fold_change) >= lfc_threshold:
            direction = 'up' if row.log2_fold_change > 0 else 'down'
            selected[direction].append(row.gene_id)
    return selected


def run_ora(
    genes: Sequence[str],
    collection: GeneSetCollection,
    background: Sequence[str],
    direction: str = 'up',
    min_set_size: int = 15,
    max_set_size: Optional[int] = 500,
    min_overlap: int = 1,
    fdr_method: str = 'fdr_bh'
) -> List[ORAResult]:
    """
    Run Over-Representation Analysis for one gene list and one collection.

    Gene sets are restricted to the background before size filtering, the
    same way the GSEA runner restricts them to the ranking.

    Args:
        genes: Query genes (e.g. significant upregulated genes)
        collection: Gene sets to test
        background: All genes tested in the DE comparison
        direction: Label stored on the results
        min_set_size: Minimum set size within the background
        max_set_size: Maximum set size within the background (None = unbounded)
        min_overlap: Minimum query genes in a set to report it
        fdr_method: FDR correction method

    Returns:
        List of ORAResult objects sorted by p-value
    """
    universe = frozenset(background)
    query = frozenset(genes) & universe
    background_size = len(universe)

    if not query:
        logger.info(f"ORA {collection.name}/{direction}: no query genes, skipped")
        return []

    logger.info(
        f"Running ORA {collection.name}/{direction}: {len(query)} genes, "
        f"{len(collection)} gene sets, background={background_size}"
    )

    pending = []
    for set_name, members in collection.items():
        in_background = members & universe
        size = len(in_background)
        if size < min_set_size or (max_set_size is not None and size > max_set_size):
            continue

        hits = query & in_background
        if len(hits) < min_overlap:
            continue

        pending.append((
            set_name,
            hypergeometric_test(len(hits), size, len(query), background_size),
            tuple(sorted(hits)),
            size,
        ))

    if not pending:
        return []

    adjusted = fdr_correction([p for _, p, _, _ in pending], method=fdr_method)
    results = [
        ORAResult(
            set_name=set_name,
            direction=direction,
            p_value=p_value,
            adjusted_p_value=fdr,
            hit_genes=hits,
            set_size=size,
            query_size=len(query),
            background_size=background_size,
            collection=collection.name,
        )
        for (set_name, p_value, hits, size), fdr in zip(pending, adjusted)
    ]
    results.sort(key=lambda r: r.p_value)

    logger.info(f"ORA {collection.name}/{direction} complete: {len(results)} sets tested")
    return results
