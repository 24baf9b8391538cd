"""
DE result normalization for DEGSEA.

Cleans differential expression rows before ranking: strips and
deduplicates gene identifiers (first occurrence wins) and drops rows whose
fold change or p-value is undefined. Dropped rows are an expected outcome of
upstream filtering, so they are counted and reported, not raised.
"""

import logging
import math
from typing import Dict, Iterable, List, Tuple, Union
from dataclasses import dataclass, field

from .errors import DataQualityWarning
from .models import DEResult, is_missing

logger = logging.getLogger("DEGSEA.Normalizer")

# Drop reasons, in the order they are checked
EMPTY_ID = 'empty_gene_id'
DUPLICATE_ID = 'duplicate_gene_id'
MISSING_PVALUE = 'missing_p_value'
MISSING_LOG2FC = 'missing_log2_fold_change'
PVALUE_OUT_OF_RANGE = 'p_value_out_of_range'

DROP_REASONS = (EMPTY_ID, DUPLICATE_ID, MISSING_PVALUE, MISSING_LOG2FC, PVALUE_OUT_OF_RANGE)


@dataclass
class NormalizationReport:
    """Cleaned rows plus diagnostics about what was dropped"""

    rows: Tuple[DEResult, ...]
    input_count: int
    dropped: Dict[str, int] = field(default_factory=lambda: {r: 0 for r in DROP_REASONS})
    duplicated_ids: List[str] = field(default_factory=list)
    warnings: List[DataQualityWarning] = field(default_factory=list)

    @property
    def kept_count(self) -> int:
        return len(self.rows)

    @property
    def dropped_count(self) -> int:
        return sum(self.dropped.values())

    def to_dict(self) -> Dict:
        return {
            'input_count': self.input_count,
            'kept_count': self.kept_count,
            'dropped_count': self.dropped_count,
            'dropped': dict(self.dropped),
            'duplicated_ids': self.duplicated_ids[:20],
            'warnings': [str(w) for w in self.warnings],
        }


def _as_float(value) -> Union[float, None]:
    return None if is_missing(value) else float(value)


def _is_blank_id(value) -> bool:
    """None or NaN, as pandas leaves empty id cells"""
    return value is None or (isinstance(value, float) and math.isnan(value))


def _coerce(record) -> DEResult:
    """Accept DEResult instances or mappings with DEResult field names"""
    if isinstance(record, DEResult):
        return record
    return DEResult(
        gene_id=record.get('gene_id'),
        log2_fold_change=record.get('log2_fold_change'),
        p_value=record.get('p_value'),
        adjusted_p_value=record.get('adjusted_p_value'),
    )


def normalize_de_results(records: Iterable) -> NormalizationReport:
    """
    Validate and clean DE result rows.

    Deduplication happens before the completeness check: a gene whose first
    row has an undefined p-value is dropped even if a later row for the same
    gene is complete.

    Args:
        records: DEResult objects or dicts with DEResult field names

    Returns:
        NormalizationReport with the cleaned rows (input order preserved)
    """
    seen = set()
    cleaned = []
    report = NormalizationReport(rows=(), input_count=0)

    for record in records:
        report.input_count += 1
        row = _coerce(record)

        gene_id = '' if _is_blank_id(row.gene_id) else str(row.gene_id).strip()
        if not gene_id:
            report.dropped[EMPTY_ID] += 1
            continue

        if gene_id in seen:
            report.dropped[DUPLICATE_ID] += 1
            report.duplicated_ids.append(gene_id)
            continue
        seen.add(gene_id)

        p_value = _as_float(row.p_value)
        log2fc = _as_float(row.log2_fold_change)

        if p_value is None:
            report.dropped[MISSING_PVALUE] += 1
            continue
        if log2fc is None:
            report.dropped[MISSING_LOG2FC] += 1
            continue
        if not 0.0 <= p_value <= 1.0:
            report.dropped[PVALUE_OUT_OF_RANGE] += 1
            continue

        cleaned.append(DEResult(
            gene_id=gene_id,
            log2_fold_change=log2fc,
            p_value=p_value,
            adjusted_p_value=_as_float(row.adjusted_p_value),
        ))

    report.rows = tuple(cleaned)

    for reason in DROP_REASONS:
        count = report.dropped[reason]
        if count:
            report.warnings.append(DataQualityWarning(
                f"Dropped {count}/{report.input_count} rows: {reason.replace('_', ' ')}"
            ))
    for w in report.warnings:
        logger.warning(f"DE normalization: {w}")

    logger.info(
        f"Normalized DE results: {report.kept_count}/{report.input_count} rows kept"
    )
    return report
