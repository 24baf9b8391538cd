"""
DEGSEA: differential expression to ranked gene list to enrichment

This package provides:
- DE result normalization and signed ranking (-log10(p) * sign(log2FC))
- Prerank GSEA per gene-set collection (gseapy), run in parallel
- Benjamini-Hochberg correction per collection
- Significance filtering and spreadsheet export
- Reproducibility metadata
"""

__version__ = "1.0.0"

from .errors import ComputationFailure, ConfigurationError, DataQualityWarning
from .models import DEResult, EnrichmentResult, RankedGene
from .normalizer import NormalizationReport, normalize_de_results
from .ranking import GeneRanking, build_ranking, read_rnk
from .gene_sets import GeneSetCollection, load_collection, load_gmt
from .gsea import CollectionResult, GseapyPrerankBackend, run_enrichment
from .batch import BatchReport, CollectionRun, run_collections
from .report import filter_significant, flatten_for_export, split_leading_edge
from .config import PipelineConfig
from .pipeline import EnrichmentPipeline, PipelineResult

__all__ = [
    "ComputationFailure",
    "ConfigurationError",
    "DataQualityWarning",
    "DEResult",
    "EnrichmentResult",
    "RankedGene",
    "NormalizationReport",
    "normalize_de_results",
    "GeneRanking",
    "build_ranking",
    "read_rnk",
    "GeneSetCollection",
    "load_collection",
    "load_gmt",
    "CollectionResult",
    "GseapyPrerankBackend",
    "run_enrichment",
    "BatchReport",
    "CollectionRun",
    "run_collections",
    "filter_significant",
    "flatten_for_export",
    "split_leading_edge",
    "PipelineConfig",
    "EnrichmentPipeline",
    "PipelineResult",
]
