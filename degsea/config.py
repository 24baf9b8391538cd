"""
Pipeline configuration for DEGSEA.

One PipelineConfig describes a whole run (organism, gene-set collections,
size bounds, significance threshold, permutation settings), so the same
pipeline serves every comparison with parameter changes only.

Example YAML:

    organism: mouse
    collections:
      GO_BP: GO_Biological_Process_2023
      HALLMARK: /data/h.all.v2023.1.Hs.symbols.gmt
    min_set_size: 15
    max_set_size: 500
    alpha: 0.05
    seed: 42
"""

import logging
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .errors import ConfigurationError
from .species import resolve_species

logger = logging.getLogger("DEGSEA.Config")

AUTO_ORGANISM = 'auto'


@dataclass
class PipelineConfig:
    """
    Configuration for a DE -> ranking -> enrichment run.

    Attributes:
        organism: 'human', 'mouse' (aliases accepted) or 'auto'
        collections: collection name -> GMT path or Enrichr library name;
            empty means the organism's GO_BP / GO_CC / GO_MF / KEGG libraries
        min_set_size: Minimum gene-set overlap with the ranking
        max_set_size: Maximum overlap, None for unbounded
        alpha: Adjusted p-value threshold for significance
        permutation_num: GSEA permutations per collection
        seed: Random seed threaded into every enrichment run
        max_workers: Parallel collection runs (None = min(#collections, CPUs))
        gsea_threads: Threads used by the backend inside one run
        leading_edge_separator: Separator for exported leading edge genes
        gene_column: DE table column holding gene ids (None = auto-detect)
        output_dir: Where artifacts are written
        cache_dir: Where downloaded libraries are cached as GMT (None = no cache)
        run_ora: Also run over-representation analysis on significant genes
        ora_lfc_threshold: |log2FC| cutoff for ORA gene selection
        export_csv: Also write one CSV per collection
    """

    organism: str = 'human'
    collections: Dict[str, str] = field(default_factory=dict)
    min_set_size: int = 15
    max_set_size: Optional[int] = 500
    alpha: float = 0.05
    permutation_num: int = 1000
    seed: int = 42
    max_workers: Optional[int] = None
    gsea_threads: int = 1
    leading_edge_separator: str = "; "
    gene_column: Optional[str] = None
    output_dir: str = 'degsea_results'
    cache_dir: Optional[str] = None
    run_ora: bool = False
    ora_lfc_threshold: float = 1.0
    export_csv: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PipelineConfig":
        """Build from a mapping; unknown keys are a configuration error"""
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(unknown)}")
        if data.get('collections') is None:
            data.pop('collections', None)
        config = cls(**data)
        config.validate()
        return config

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "PipelineConfig":
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")
        logger.info(f"Loaded configuration from {path}")
        return cls.from_dict(data)

    def validate(self) -> None:
        """
        Raises:
            ConfigurationError: on any invalid setting
        """
        if self.organism != AUTO_ORGANISM:
            resolve_species(self.organism)
        if not isinstance(self.min_set_size, int) or self.min_set_size < 1:
            raise ConfigurationError(f"min_set_size must be an integer >= 1, got {self.min_set_size!r}")
        if self.max_set_size is not None and self.min_set_size > self.max_set_size:
            raise ConfigurationError(
                f"min_set_size ({self.min_set_size}) is larger than max_set_size ({self.max_set_size})"
            )
        if not 0.0 < self.alpha <= 1.0:
            raise ConfigurationError(f"alpha must be in (0, 1], got {self.alpha}")
        if self.permutation_num < 1:
            raise ConfigurationError(f"permutation_num must be >= 1, got {self.permutation_num}")
        if self.max_workers is not None and self.max_workers < 1:
            raise ConfigurationError(f"max_workers must be >= 1, got {self.max_workers}")
        if not self.leading_edge_separator:
            raise ConfigurationError("leading_edge_separator must not be empty")
        if not isinstance(self.collections, dict):
            raise ConfigurationError("collections must map collection names to sources")
        for name, source in self.collections.items():
            if not source:
                raise ConfigurationError(f"Collection '{name}' has no source")

    def collection_sources(self, organism: str) -> Dict[str, str]:
        """Configured collections, or the organism's default libraries"""
        if self.collections:
            return dict(self.collections)
        return resolve_species(organism).default_libraries

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_yaml(self, path: Union[str, Path]) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
