"""
Differential expression table reader for DEGSEA.

Reads DE results written by DESeq2, limma, edgeR or pyDESeq2 (CSV, TSV or
Excel) and converts them to DEResult rows. Missing statistics (NA) stay
undefined; nothing is filled in here.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

import numpy as np
import pandas as pd

from .errors import ConfigurationError
from .models import DEResult

logger = logging.getLogger("DEGSEA.DETable")

# Accepted column names per field, first match wins
COLUMN_ALIASES = {
    'gene_id': ['gene_id', 'gene', 'Gene', 'GeneID', 'gene_symbol', 'symbol', 'SYMBOL', 'ensembl_gene_id'],
    'log2_fold_change': ['log2_fold_change', 'log2FoldChange', 'log2FC', 'logFC', 'log2fc'],
    'p_value': ['p_value', 'pvalue', 'PValue', 'P.Value', 'pval', 'p.value'],
    'adjusted_p_value': ['adjusted_p_value', 'padj', 'adj.P.Val', 'FDR', 'fdr', 'qvalue', 'p_adj'],
}

REQUIRED_FIELDS = ('log2_fold_change', 'p_value')


def _match_column(columns, field: str) -> Optional[str]:
    for alias in COLUMN_ALIASES[field]:
        if alias in columns:
            return alias
    return None


def resolve_columns(df: pd.DataFrame, gene_column: Optional[str] = None) -> Dict[str, Optional[str]]:
    """
    Find the DataFrame column holding each DEResult field.

    The gene id column is None when ids live in the index.

    Raises:
        ConfigurationError: a required statistic column is missing
    """
    columns = list(df.columns)
    mapping = {field: _match_column(columns, field) for field in COLUMN_ALIASES}

    if gene_column is not None:
        if gene_column not in columns:
            raise ConfigurationError(f"Gene column '{gene_column}' not found in DE table")
        mapping['gene_id'] = gene_column

    missing = [f for f in REQUIRED_FIELDS if mapping[f] is None]
    if missing:
        expected = {f: COLUMN_ALIASES[f] for f in missing}
        raise ConfigurationError(f"DE table is missing required columns: {expected}")

    return mapping


def read_table(path: Union[str, Path]) -> pd.DataFrame:
    """Load a CSV / TSV / Excel DE table, first column kept as a column"""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"DE table not found: {path}")

    suffix = path.suffix.lower()
    if suffix in ('.xls', '.xlsx'):
        df = pd.read_excel(path)
    elif suffix in ('.tsv', '.txt', '.tab'):
        df = pd.read_csv(path, sep='\t')
    elif suffix == '.csv':
        df = pd.read_csv(path)
    else:
        raise ConfigurationError(f"Unsupported DE table format: {path.suffix}. Use CSV, TSV or Excel.")

    # R write.csv leaves gene ids in an unnamed first column
    first = df.columns[0] if len(df.columns) else None
    if first is not None and (str(first).startswith('Unnamed') or str(first) == ''):
        df = df.rename(columns={first: 'gene_id'})

    logger.info(f"Loaded DE table {path.name}: {len(df)} rows, {len(df.columns)} columns")
    return df


def _gene_ids(df: pd.DataFrame, mapping: Dict[str, Optional[str]]) -> List:
    """
    Gene ids from the matched column, else a labelled index, else the first
    text column.

    Raises:
        ConfigurationError: no column or index can hold gene ids
    """
    if mapping['gene_id'] is not None:
        return df[mapping['gene_id']].tolist()

    if not isinstance(df.index, pd.RangeIndex):
        return df.index.tolist()

    statistics = {c for f, c in mapping.items() if f != 'gene_id' and c is not None}
    for column in df.columns:
        if column in statistics or pd.api.types.is_numeric_dtype(df[column]):
            continue
        logger.info(f"No gene id column matched, using '{column}'")
        return df[column].tolist()

    raise ConfigurationError(
        f"No gene id column found in DE table. Expected one of {COLUMN_ALIASES['gene_id']} "
        f"or set gene_column"
    )


def de_results_from_frame(df: pd.DataFrame, gene_column: Optional[str] = None) -> List[DEResult]:
    """
    Convert a DE results DataFrame to DEResult rows, keeping row order.

    Non-numeric statistics (e.g. 'NA' strings) become undefined.
    """
    if df.empty:
        raise ConfigurationError("Empty DE table provided")

    mapping = resolve_columns(df, gene_column)
    gene_ids = _gene_ids(df, mapping)

    def numeric(field: str) -> List[Optional[float]]:
        column = mapping[field]
        if column is None:
            return [None] * len(df)
        values = pd.to_numeric(df[column], errors='coerce').astype(float)
        return [None if np.isnan(v) else float(v) for v in values]

    log2fc = numeric('log2_fold_change')
    p_values = numeric('p_value')
    adjusted = numeric('adjusted_p_value')

    return [
        DEResult(
            gene_id=None if pd.isna(g) else str(g),
            log2_fold_change=lfc,
            p_value=p,
            adjusted_p_value=padj,
        )
        for g, lfc, p, padj in zip(gene_ids, log2fc, p_values, adjusted)
    ]


def read_de_table(source: Union[str, Path, pd.DataFrame], gene_column: Optional[str] = None) -> List[DEResult]:
    """
    Read DE results from a file path or an in-memory DataFrame.

    Args:
        source: CSV / TSV / Excel path, or a DataFrame
        gene_column: Column holding gene ids (default: auto-detect, else index)

    Returns:
        List of DEResult rows in table order
    """
    df = source if isinstance(source, pd.DataFrame) else read_table(source)
    return de_results_from_frame(df, gene_column)
