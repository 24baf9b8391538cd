"""
GSEA (Gene Set Enrichment Analysis) for DEGSEA

Runs a prerank enrichment test for one ranking against one gene-set
collection. The statistic itself comes from a backend (gseapy by default);
this module filters gene sets by size, normalizes the backend's result
table into EnrichmentResult rows and applies Benjamini-Hochberg correction
across the one collection run.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Tuple

import gseapy as gp
import pandas as pd

from .errors import ComputationFailure, ConfigurationError
from .gene_sets import GeneSetCollection
from .models import EnrichmentResult
from .ora import fdr_correction
from .ranking import GeneRanking

logger = logging.getLogger("DEGSEA.GSEA")

LEADING_EDGE_SEPARATOR = ';'


class EnrichmentBackend(Protocol):
    """Protocol for prerank enrichment backends."""

    def prerank(
        self,
        ranking: pd.Series,
        gene_sets: Dict[str, List[str]],
        min_size: int,
        max_size: int,
        permutation_num: int,
        seed: int,
    ) -> pd.DataFrame:
        """
        Run the enrichment test.

        Args:
            ranking: gene_id -> score, sorted descending
            gene_sets: set name -> member genes
            min_size: Minimum matched set size
            max_size: Maximum matched set size
            permutation_num: Number of permutations
            seed: Random seed for the permutation procedure

        Returns:
            One row per tested set with at least a set name, NES and a
            nominal p-value (gseapy res2d layout)
        """
        ...


class GseapyPrerankBackend:
    """
    Enrichment backend using gseapy.prerank.

    Runs without an output directory or plots, so a call has no side effects
    outside the returned table.
    """

    def __init__(self, threads: int = 1):
        self.threads = threads

    def prerank(
        self,
        ranking: pd.Series,
        gene_sets: Dict[str, List[str]],
        min_size: int,
        max_size: int,
        permutation_num: int,
        seed: int,
    ) -> pd.DataFrame:
        pre_res = gp.prerank(
            rnk=ranking,
            gene_sets=gene_sets,
            min_size=min_size,
            max_size=max_size,
            permutation_num=permutation_num,
            threads=self.threads,
            outdir=None,
            no_plot=True,
            seed=seed,
            verbose=False
        )
        return pre_res.res2d


@dataclass(frozen=True)
class CollectionResult:
    """All EnrichmentResult rows from one collection run"""

    collection: str
    results: Tuple[EnrichmentResult, ...]
    n_candidate_sets: int  # Sets in the collection
    n_excluded_sets: int  # Sets outside the size bounds
    parameters: Dict = field(default_factory=dict)

    @property
    def n_tested_sets(self) -> int:
        return len(self.results)


def validate_size_bounds(min_set_size: int, max_set_size: Optional[int]) -> None:
    """
    Raises:
        ConfigurationError: min_set_size < 1 or min_set_size > max_set_size
    """
    if min_set_size < 1:
        raise ConfigurationError(f"min_set_size must be >= 1, got {min_set_size}")
    if max_set_size is not None and min_set_size > max_set_size:
        raise ConfigurationError(
            f"min_set_size ({min_set_size}) is larger than max_set_size ({max_set_size})"
        )


def _first(row: pd.Series, *keys, default=None):
    """First present, non-null value among alternative column names"""
    for key in keys:
        if key in row.index:
            value = row[key]
            if value is not None and not (isinstance(value, float) and math.isnan(value)):
                return value
    return default


def _to_float(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return float('nan')


def _split_genes(value) -> Tuple[str, ...]:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return ()
    if isinstance(value, (list, tuple)):
        return tuple(str(g) for g in value if str(g))
    return tuple(g.strip() for g in str(value).split(LEADING_EDGE_SEPARATOR) if g.strip())


def parse_backend_table(table: pd.DataFrame) -> List[Dict]:
    """
    Normalize a backend result table into plain records.

    Column names vary between gseapy versions ('NES' vs 'nes',
    'NOM p-val' vs 'pval', 'Lead_genes' vs 'ledge_genes'), and older
    versions keep the set name in the index.
    """
    records = []
    for index, row in table.iterrows():
        name = _first(row, 'Term', 'term', 'set_name', 'Name', default=index)
        records.append({
            'set_name': str(name),
            'es': _to_float(_first(row, 'ES', 'es')),
            'nes': _to_float(_first(row, 'NES', 'nes')),
            'p_value': _to_float(_first(row, 'NOM p-val', 'pval', 'p_value')),
            'leading_edge_genes': _split_genes(
                _first(row, 'Lead_genes', 'ledge_genes', 'leading_edge_genes')
            ),
        })
    return records


def run_enrichment(
    ranking: GeneRanking,
    collection: GeneSetCollection,
    min_set_size: int = 15,
    max_set_size: Optional[int] = 500,
    permutation_num: int = 1000,
    seed: int = 42,
    backend: Optional[EnrichmentBackend] = None
) -> CollectionResult:
    """
    Run prerank GSEA for one collection.

    Only gene sets whose overlap with the ranked genes lies within
    [min_set_size, max_set_size] are tested; the rest are dropped without
    error. Adjusted p-values are computed across this run only.

    Args:
        ranking: Ranked gene list
        collection: Gene-set collection to test
        min_set_size: Minimum overlap size (>= 1)
        max_set_size: Maximum overlap size, None for unbounded
        permutation_num: Number of permutations for p-value calculation
        seed: Random seed for reproducibility
        backend: Enrichment backend (default: GseapyPrerankBackend)

    Returns:
        CollectionResult with one EnrichmentResult per tested set

    Raises:
        ConfigurationError: invalid bounds, empty ranking or empty collection
        ComputationFailure: the backend failed for this collection
    """
    validate_size_bounds(min_set_size, max_set_size)
    if len(ranking) == 0:
        raise ConfigurationError("Cannot run enrichment on an empty ranking")
    if collection is None or len(collection) == 0:
        name = getattr(collection, 'name', None)
        raise ConfigurationError(f"Gene-set collection {name!r} is absent or empty")

    backend = backend or GseapyPrerankBackend()
    parameters = {
        'min_set_size': min_set_size,
        'max_set_size': max_set_size,
        'permutation_num': permutation_num,
        'seed': seed,
    }

    sizes = collection.overlap_sizes(ranking.universe)
    selected = [
        name for name, size in sizes.items()
        if size >= min_set_size and (max_set_size is None or size <= max_set_size)
    ]
    n_excluded = len(collection) - len(selected)

    logger.info(
        f"Running GSEA prerank on {collection.name}: {len(ranking)} genes, "
        f"{len(selected)}/{len(collection)} gene sets within size bounds, "
        f"{permutation_num} permutations, seed={seed}"
    )

    if not selected:
        logger.info(f"{collection.name}: no gene set within size bounds, nothing to test")
        return CollectionResult(collection.name, (), len(collection), n_excluded, parameters)

    upper = max_set_size if max_set_size is not None else max(sizes[n] for n in selected)

    try:
        table = backend.prerank(
            ranking.to_series(),
            collection.to_gene_lists(selected),
            min_size=min_set_size,
            max_size=upper,
            permutation_num=permutation_num,
            seed=seed,
        )
        records = parse_backend_table(table)
    except Exception as e:
        logger.error(f"GSEA failed for {collection.name}: {e}")
        raise ComputationFailure(collection.name, e) from e

    # One row per tested set; ignore anything the backend made up
    wanted = set(selected)
    unique = {}
    for record in records:
        if record['set_name'] in wanted and record['set_name'] not in unique:
            unique[record['set_name']] = record
    missing = len(wanted) - len(unique)
    if missing:
        logger.warning(f"{collection.name}: backend returned no result for {missing} gene sets")

    rows = list(unique.values())
    adjusted = fdr_correction([r['p_value'] for r in rows], method='fdr_bh')

    results = tuple(
        EnrichmentResult(
            set_name=r['set_name'],
            p_value=r['p_value'],
            adjusted_p_value=fdr,
            nes=r['nes'],
            size=sizes[r['set_name']],
            leading_edge_genes=r['leading_edge_genes'],
            es=r['es'],
            collection=collection.name,
        )
        for r, fdr in zip(rows, adjusted)
    )

    logger.info(f"GSEA complete for {collection.name}: {len(results)} gene sets tested")
    return CollectionResult(collection.name, results, len(collection), n_excluded, parameters)
