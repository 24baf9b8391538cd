"""
Batch Enrichment for DEGSEA
Runs GSEA for several gene-set collections in parallel.

Collections are independent, so each one is a unit of work on a thread
pool. A backend failure is recorded against its own collection and the
other runs carry on.
"""

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional, Tuple

import pandas as pd

from .errors import ComputationFailure, ConfigurationError
from .gene_sets import GeneSetCollection
from .gsea import CollectionResult, EnrichmentBackend, run_enrichment, validate_size_bounds
from .models import EnrichmentResult
from .ranking import GeneRanking

logger = logging.getLogger("DEGSEA.Batch")

STATUS_OK = 'ok'
STATUS_FAILED = 'failed'


@dataclass(frozen=True)
class CollectionRun:
    """Outcome of one collection run"""

    collection: str
    status: str
    result: Optional[CollectionResult] = None
    error: Optional[str] = None
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK

    @property
    def results(self) -> Tuple[EnrichmentResult, ...]:
        return self.result.results if self.result is not None else ()


@dataclass
class BatchReport:
    """Per-collection outcomes of a batch, in submission order"""

    runs: Dict[str, CollectionRun] = field(default_factory=dict)

    @property
    def successful(self) -> int:
        return sum(1 for r in self.runs.values() if r.ok)

    @property
    def failed(self) -> int:
        return len(self.runs) - self.successful

    @property
    def status(self) -> str:
        """'ok' when every collection ran, 'partial' or 'error' otherwise"""
        if self.failed == 0:
            return 'ok'
        return 'partial' if self.successful > 0 else 'error'

    def summary_table(self) -> pd.DataFrame:
        rows = []
        for name, run in self.runs.items():
            rows.append({
                'collection': name,
                'status': run.status,
                'sets_in_collection': run.result.n_candidate_sets if run.result else None,
                'sets_tested': run.result.n_tested_sets if run.result else 0,
                'sets_excluded_by_size': run.result.n_excluded_sets if run.result else None,
                'elapsed_seconds': round(run.elapsed_seconds, 2),
                'error': run.error or '',
            })
        return pd.DataFrame(rows)


def run_collections(
    ranking: GeneRanking,
    collections: Mapping[str, GeneSetCollection],
    min_set_size: int = 15,
    max_set_size: Optional[int] = 500,
    permutation_num: int = 1000,
    seed: int = 42,
    backend: Optional[EnrichmentBackend] = None,
    max_workers: Optional[int] = None,
    progress_callback: Optional[Callable[[str, int, int], None]] = None
) -> BatchReport:
    """
    Run enrichment for every collection in parallel.

    Every run gets the same explicit seed, so results do not depend on the
    order in which workers finish.

    Args:
        ranking: Ranked gene list (shared read-only)
        collections: collection name -> GeneSetCollection
        min_set_size: Minimum overlap size
        max_set_size: Maximum overlap size (None = unbounded)
        permutation_num: Number of permutations per run
        seed: Random seed passed to each run
        backend: Enrichment backend shared by the runs
        max_workers: Max parallel threads (default: min(#collections, CPUs))
        progress_callback: Optional callback(collection, completed, total)

    Returns:
        BatchReport with one CollectionRun per collection

    Raises:
        ConfigurationError: empty ranking, no collections, an empty
            collection or invalid size bounds; raised before any run starts
    """
    validate_size_bounds(min_set_size, max_set_size)
    if len(ranking) == 0:
        raise ConfigurationError("Cannot run enrichment on an empty ranking")
    if not collections:
        raise ConfigurationError("No gene-set collections provided")
    for name, collection in collections.items():
        if collection is None or len(collection) == 0:
            raise ConfigurationError(f"Gene-set collection '{name}' is absent or empty")

    total = len(collections)
    workers = max_workers or min(total, os.cpu_count() or 1)
    logger.info(f"Running {total} collections on {workers} workers")

    def process_collection(name: str, collection: GeneSetCollection) -> CollectionRun:
        start = time.monotonic()
        try:
            result = run_enrichment(
                ranking,
                collection,
                min_set_size=min_set_size,
                max_set_size=max_set_size,
                permutation_num=permutation_num,
                seed=seed,
                backend=backend,
            )
        except ComputationFailure as e:
            logger.error(f"Collection {name} failed: {e}")
            return CollectionRun(name, STATUS_FAILED, error=str(e),
                                 elapsed_seconds=time.monotonic() - start)
        return CollectionRun(name, STATUS_OK, result=result,
                             elapsed_seconds=time.monotonic() - start)

    finished: Dict[str, CollectionRun] = {}
    completed = 0
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {
            executor.submit(process_collection, name, collection): name
            for name, collection in collections.items()
        }

        for future in as_completed(futures):
            run = future.result()
            finished[run.collection] = run
            completed += 1
            if progress_callback:
                progress_callback(run.collection, completed, total)

    report = BatchReport(runs={name: finished[name] for name in collections})
    logger.info(
        f"Batch complete: {report.successful}/{total} collections ok, {report.failed} failed"
    )
    return report
