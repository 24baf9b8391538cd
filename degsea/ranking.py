"""
Rank statistic builder for DEGSEA.

Turns cleaned DE rows into one signed statistic per gene,

    score = -log10(p_value) * sign(log2_fold_change)

and holds the result as a stably sorted, restartable ranking that can be
handed to any prerank enrichment tool or written out as a .rnk file.
"""

import logging
from pathlib import Path
from typing import Dict, Iterator, List, Sequence, Union

import numpy as np
import pandas as pd

from .errors import ConfigurationError
from .models import DEResult, RankedGene, is_missing

logger = logging.getLogger("DEGSEA.Ranking")

# -log10 of the smallest positive double (5e-324) is ~323.31, so a zero
# p-value is scored just above anything a non-zero p-value can reach.
ZERO_PVALUE_SCORE = 325.0


def signed_significance(p_value: float, log2_fold_change: float) -> float:
    """
    Score a single gene.

    A p-value of exactly zero maps to +/-ZERO_PVALUE_SCORE instead of
    infinity. A fold change of exactly zero gives a score of 0.0.
    """
    sign = float(np.sign(log2_fold_change))
    if sign == 0.0:
        return 0.0
    if p_value == 0.0:
        return sign * ZERO_PVALUE_SCORE
    return sign * float(-np.log10(p_value))


class GeneRanking:
    """
    Gene -> score ranking sorted by score descending.

    Ties keep input order. Iterating yields RankedGene items and can be
    repeated any number of times.
    """

    def __init__(self, scores: pd.Series):
        if not scores.index.is_unique:
            raise ConfigurationError("Ranking gene ids must be unique")
        scores = scores.astype(float)
        order = np.argsort(-scores.to_numpy(), kind='stable')
        self._scores = scores.iloc[order].rename('score').rename_axis('gene_id')

    @classmethod
    def from_pairs(cls, pairs: Sequence) -> "GeneRanking":
        """Build from (gene_id, score) pairs"""
        if not pairs:
            raise ConfigurationError("Empty gene ranking provided")
        return cls(pd.Series([float(s) for _, s in pairs], index=[str(g) for g, _ in pairs]))

    def __iter__(self) -> Iterator[RankedGene]:
        for gene_id, score in self._scores.items():
            yield RankedGene(gene_id=gene_id, score=float(score))

    def __len__(self) -> int:
        return len(self._scores)

    def __contains__(self, gene_id) -> bool:
        return gene_id in self._scores.index

    def __repr__(self) -> str:
        return f"GeneRanking({len(self)} genes)"

    @property
    def genes(self) -> List[str]:
        return list(self._scores.index)

    @property
    def universe(self) -> frozenset:
        """Set of ranked gene ids, used for gene-set size filtering"""
        return frozenset(self._scores.index)

    def to_series(self) -> pd.Series:
        """Independent copy of the ranking as a pandas Series"""
        return self._scores.copy()

    def to_dict(self) -> Dict[str, float]:
        return {g: float(s) for g, s in self._scores.items()}

    def to_rnk(self, output_path: Union[str, Path]) -> Path:
        """
        Write the ranking as a .rnk file.

        Format: two tab-separated columns (gene_id, score), no header,
        as expected by GSEA prerank tools.
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        self._scores.to_csv(output_path, sep='\t', header=False)
        logger.info(f"Saved ranked list ({len(self)} genes) to {output_path}")
        return output_path


def read_rnk(file_path: Union[str, Path]) -> GeneRanking:
    """Load a two-column .rnk file written by GeneRanking.to_rnk"""
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"Ranked list not found: {file_path}")

    df = pd.read_csv(file_path, sep='\t', header=None, names=['gene_id', 'score'],
                     dtype={'gene_id': str}, comment='#')
    return GeneRanking.from_pairs(list(zip(df['gene_id'], df['score'])))


def build_ranking(results: Sequence[DEResult]) -> GeneRanking:
    """
    Build the ranked gene list from cleaned DE results.

    Genes with an undefined p-value or fold change are excluded rather than
    given a default score.

    Args:
        results: DE rows, normally the output of normalize_de_results

    Returns:
        GeneRanking sorted by score descending (stable)

    Raises:
        ConfigurationError: no gene left to rank, or duplicate gene ids
    """
    genes = []
    scores = []
    excluded = 0

    for row in results:
        if is_missing(row.p_value) or is_missing(row.log2_fold_change):
            excluded += 1
            continue
        genes.append(row.gene_id)
        scores.append(signed_significance(float(row.p_value), float(row.log2_fold_change)))

    if excluded:
        logger.debug(f"Excluded {excluded} genes with undefined statistics from ranking")

    if not genes:
        raise ConfigurationError(
            "Empty ranking after cleaning: no gene has both a p-value and a fold change"
        )

    if len(set(genes)) != len(genes):
        raise ConfigurationError("Duplicate gene ids in DE results; normalize them first")

    ranking = GeneRanking.from_pairs(list(zip(genes, scores)))

    n_capped = int(np.isclose(np.abs(ranking.to_series()), ZERO_PVALUE_SCORE).sum())
    if n_capped:
        logger.info(f"{n_capped} genes with p-value 0 scored at +/-{ZERO_PVALUE_SCORE}")

    logger.info(f"Built ranking: {len(ranking)} genes")
    return ranking
