"""
Significance reporting and export for DEGSEA.

Filters enrichment results by adjusted significance and flattens them into
tables for spreadsheet / CSV output. Nothing here mutates a result row:
every function returns a new collection.
"""

import logging
import math
import re
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from .models import EnrichmentResult
from .ora import ORAResult

logger = logging.getLogger("DEGSEA.Report")

EXPORT_SEPARATOR = "; "
EXPORT_COLUMNS = ['set_name', 'p_value', 'adjusted_p_value', 'NES', 'size', 'leading_edge_genes']
ORA_COLUMNS = ['set_name', 'direction', 'p_value', 'adjusted_p_value', 'overlap', 'hit_genes']

# Excel sheet names: max 31 chars, none of []:*?/\
_SHEET_INVALID = re.compile(r'[\[\]:*?/\\]')


def filter_significant(
    results: Iterable[EnrichmentResult],
    alpha: float = 0.05
) -> Tuple[EnrichmentResult, ...]:
    """
    Keep results with adjusted_p_value < alpha.

    Sorted by adjusted p-value ascending, then |NES| descending. Applying
    it again with the same alpha returns the same sequence.
    """
    kept = [r for r in results if r.is_significant(alpha)]

    def sort_key(r: EnrichmentResult):
        abs_nes = abs(r.nes) if not math.isnan(r.nes) else 0.0
        return (r.adjusted_p_value, -abs_nes)

    return tuple(sorted(kept, key=sort_key))


def join_leading_edge(genes: Sequence[str], separator: str = EXPORT_SEPARATOR) -> str:
    return separator.join(genes)


def split_leading_edge(value: str, separator: str = EXPORT_SEPARATOR) -> List[str]:
    """Inverse of join_leading_edge"""
    if not value:
        return []
    return value.split(separator)


def flatten_for_export(
    results: Iterable[EnrichmentResult],
    separator: str = EXPORT_SEPARATOR
) -> pd.DataFrame:
    """
    Tabular view of enrichment results for spreadsheet output.

    The leading edge becomes one delimited string; the EnrichmentResult
    rows themselves keep the ordered sequence.

    Returns:
        DataFrame with columns set_name, p_value, adjusted_p_value, NES,
        size, leading_edge_genes
    """
    rows = [{
        'set_name': r.set_name,
        'p_value': r.p_value,
        'adjusted_p_value': r.adjusted_p_value,
        'NES': r.nes,
        'size': r.size,
        'leading_edge_genes': join_leading_edge(r.leading_edge_genes, separator),
    } for r in results]
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS)


def flatten_ora_for_export(
    results: Iterable[ORAResult],
    separator: str = EXPORT_SEPARATOR
) -> pd.DataFrame:
    rows = [{
        'set_name': r.set_name,
        'direction': r.direction,
        'p_value': r.p_value,
        'adjusted_p_value': r.adjusted_p_value,
        'overlap': r.overlap_ratio,
        'hit_genes': separator.join(r.hit_genes),
    } for r in results]
    return pd.DataFrame(rows, columns=ORA_COLUMNS)


def sheet_name(name: str, taken: Optional[set] = None) -> str:
    """Excel-safe, unique sheet name derived from a collection name"""
    base = _SHEET_INVALID.sub('_', str(name)).strip("'") or 'Sheet'
    base = base[:31]
    candidate = base
    n = 1
    while taken is not None and candidate in taken:
        suffix = f"_{n}"
        candidate = base[:31 - len(suffix)] + suffix
        n += 1
    if taken is not None:
        taken.add(candidate)
    return candidate


def write_enrichment_workbook(
    tables: Mapping[str, pd.DataFrame],
    output_path: Union[str, Path],
    summary: Optional[pd.DataFrame] = None
) -> Path:
    """
    Write one sheet per collection.

    Args:
        tables: collection name -> flattened table (see flatten_for_export)
        output_path: .xlsx path
        summary: Optional per-collection status table, written first

    Returns:
        Path to saved file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    taken = set()
    with pd.ExcelWriter(output_path, engine='openpyxl') as writer:
        if summary is not None:
            summary.to_excel(writer, sheet_name=sheet_name('Summary', taken), index=False)
        for name, df in tables.items():
            df.to_excel(writer, sheet_name=sheet_name(name, taken), index=False)
        if not taken:
            pd.DataFrame(columns=EXPORT_COLUMNS).to_excel(writer, sheet_name='Results', index=False)

    logger.info(f"Exported {len(tables)} enrichment tables to {output_path}")
    return output_path


def write_csv_tables(
    tables: Mapping[str, pd.DataFrame],
    output_dir: Union[str, Path],
    prefix: str = "gsea"
) -> Dict[str, Path]:
    """Write each table to <output_dir>/<prefix>_<collection>.csv"""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    paths = {}
    for name, df in tables.items():
        path = output_dir / f"{prefix}_{sheet_name(name)}.csv"
        df.to_csv(path, index=False)
        paths[name] = path
    logger.info(f"Exported {len(paths)} CSV tables to {output_dir}")
    return paths
