"""
Reproducibility Logger for DEGSEA

Tracks and logs the metadata needed to reproduce a run:
- Software versions
- Gene-set collection versions and hashes
- Analysis parameters, including the random seed
- Input/output summaries
"""

import json
import logging
import sys
import uuid
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from importlib import metadata as importlib_metadata
from pathlib import Path
from typing import Any, Dict, List

import yaml

from . import __version__
from .gene_sets import GeneSetCollection

logger = logging.getLogger("DEGSEA.Repro")

TRACKED_DEPENDENCIES = ('pandas', 'numpy', 'scipy', 'statsmodels', 'gseapy', 'openpyxl', 'PyYAML')


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


@dataclass
class PipelineMetadata:
    """Complete metadata for a single pipeline run"""

    # Unique identifiers
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(default_factory=_utc_now)

    # Software versions
    software_version: str = __version__
    python_version: str = ""
    dependencies: Dict[str, str] = field(default_factory=dict)

    # collection name -> source, hash, stats
    gene_set_collections: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    parameters: Dict[str, Any] = field(default_factory=dict)
    input_summary: Dict[str, Any] = field(default_factory=dict)
    output_summary: Dict[str, Any] = field(default_factory=dict)

    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization"""
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, default=str)

    def save(self, output_path: Path):
        """Save metadata to JSON file"""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w') as f:
            f.write(self.to_json())
        logger.info(f"Saved pipeline metadata to {output_path}")


class ReproducibilityLogger:
    """
    Collects reproducibility metadata while the pipeline runs.
    """

    def __init__(self):
        self.metadata = PipelineMetadata()
        self._initialize_versions()

    def _initialize_versions(self):
        """Detect and record software versions"""
        info = sys.version_info
        self.metadata.python_version = f"{info.major}.{info.minor}.{info.micro}"

        deps = {}
        for name in TRACKED_DEPENDENCIES:
            try:
                deps[name] = importlib_metadata.version(name)
            except importlib_metadata.PackageNotFoundError:
                deps[name] = 'not installed'
        self.metadata.dependencies = deps

    def add_collection(self, collection: GeneSetCollection):
        """Record source, content hash and size stats of a collection"""
        self.metadata.gene_set_collections[collection.name] = {
            'source': collection.source,
            'hash': collection.content_hash(),
            'stats': collection.stats(),
        }

    def set_parameters(self, **params):
        """
        Set analysis parameters.

        Common parameters:
        - min_set_size / max_set_size: Gene-set size bounds
        - permutation_num: Number of permutations
        - seed: Random seed
        - alpha: Significance threshold
        """
        self.metadata.parameters.update(params)

    def set_input_summary(self, **summary):
        """
        Set input data summary.

        Common fields:
        - total_rows: DE table rows
        - ranked_genes: Genes in the ranking
        - dropped: Rows dropped per reason
        - organism: Target organism
        """
        self.metadata.input_summary.update(summary)

    def set_output_summary(self, **summary):
        self.metadata.output_summary.update(summary)

    def add_warning(self, warning: str):
        """Add a warning message"""
        self.metadata.warnings.append(str(warning))

    def get_metadata(self) -> PipelineMetadata:
        return self.metadata

    def export_json(self, output_path: Path):
        """Export pipeline metadata as JSON"""
        self.metadata.save(output_path)

    def export_yaml(self, output_path: Path):
        """Export pipeline metadata as YAML"""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w') as f:
            yaml.safe_dump(json.loads(self.metadata.to_json()), f, default_flow_style=False)
        logger.info(f"Saved pipeline metadata (YAML) to {output_path}")
