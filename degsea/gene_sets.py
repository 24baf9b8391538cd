"""
Gene Set Collections for DEGSEA

Handles GMT file loading/saving, Enrichr library download through gseapy,
and the GeneSetCollection mapping consumed by the enrichment runner.
"""

import hashlib
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Union

import gseapy as gp

from .errors import ConfigurationError

logger = logging.getLogger("DEGSEA.GeneSets")


class GeneSetCollection(Mapping):
    """
    Named gene sets scoped to one category (e.g. 'GO_BP').

    Maps set name -> frozenset of gene ids. Read-only once built, so one
    collection can be shared between concurrent enrichment runs.
    """

    def __init__(self, name: str, gene_sets: Mapping, source: str = ""):
        self.name = name
        self.source = source or name
        self._sets: Dict[str, frozenset] = {}
        for set_name, genes in gene_sets.items():
            members = frozenset(str(g).strip() for g in genes if str(g).strip())
            if members:
                self._sets[str(set_name)] = members

    def __getitem__(self, set_name: str) -> frozenset:
        return self._sets[set_name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._sets)

    def __len__(self) -> int:
        return len(self._sets)

    def __repr__(self) -> str:
        return f"GeneSetCollection({self.name!r}, {len(self)} sets)"

    def to_gene_lists(self, names: Optional[Iterable[str]] = None) -> Dict[str, List[str]]:
        """Plain dict of sorted gene lists, the shape gseapy accepts"""
        names = self._sets.keys() if names is None else names
        return {n: sorted(self._sets[n]) for n in names}

    def overlap_sizes(self, universe: frozenset) -> Dict[str, int]:
        """Size of each set's intersection with a gene universe"""
        return {n: len(genes & universe) for n, genes in self._sets.items()}

    def content_hash(self) -> str:
        """
        SHA256 of sorted set names and their sorted members.

        Short (16 hex chars) and independent of load order.
        """
        sorted_items = []
        for name in sorted(self._sets):
            sorted_items.append(f"{name}::{','.join(sorted(self._sets[name]))}")
        content = "||".join(sorted_items)
        return hashlib.sha256(content.encode()).hexdigest()[:16]

    def stats(self) -> Dict[str, float]:
        return collection_stats(self._sets)


def load_gmt(file_path: Union[str, Path]) -> Dict[str, List[str]]:
    """
    Load gene sets from GMT (Gene Matrix Transposed) format file.

    GMT Format: Each line is tab-separated:
    <gene_set_name> <description> <gene1> <gene2> ... <geneN>

    Args:
        file_path: Path to GMT file

    Returns:
        Dictionary mapping gene set names to gene lists

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If file is not valid UTF-8
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"GMT file not found: {file_path}")

    gene_sets: Dict[str, List[str]] = {}

    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            for line_num, line in enumerate(f, 1):
                line = line.rstrip('\r\n')

                # Skip empty lines and comments
                if not line.strip() or line.startswith('#'):
                    continue

                parts = line.split('\t')

                if len(parts) < 3:
                    logger.warning(
                        f"Line {line_num}: Expected at least 3 fields (name, description, genes), "
                        f"got {len(parts)}. Skipping."
                    )
                    continue

                name = parts[0].strip()
                genes = [g.strip() for g in parts[2:] if g.strip()]

                if not genes:
                    logger.warning(f"Line {line_num}: Gene set '{name}' has no genes. Skipping.")
                    continue

                if name in gene_sets:
                    logger.warning(f"Line {line_num}: Duplicate gene set name '{name}'. Merging genes.")
                    merged = gene_sets[name] + [g for g in genes if g not in gene_sets[name]]
                    gene_sets[name] = merged
                else:
                    gene_sets[name] = list(dict.fromkeys(genes))

    except UnicodeDecodeError as e:
        raise ValueError(f"Invalid file encoding in {file_path}. Expected UTF-8: {e}")

    logger.info(f"Loaded {len(gene_sets)} gene sets from {file_path}")
    return gene_sets


def save_gmt(gene_sets: Mapping, file_path: Union[str, Path], description: str = "") -> None:
    """
    Save gene sets to GMT format file.

    Args:
        gene_sets: Mapping of gene set names to gene collections
        file_path: Output file path
        description: Description written for every set (default: empty)
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    with open(file_path, 'w', encoding='utf-8') as f:
        for name, genes in gene_sets.items():
            f.write(f"{name}\t{description}\t" + "\t".join(sorted(genes)) + "\n")

    logger.info(f"Saved {len(gene_sets)} gene sets to {file_path}")


def collection_stats(gene_sets: Mapping) -> Dict[str, float]:
    """
    Get statistics about gene sets.

    Returns:
        Dictionary with stats: total_sets, total_genes, unique_genes,
        avg_size, min_size, max_size
    """
    if not gene_sets:
        return {
            "total_sets": 0,
            "total_genes": 0,
            "unique_genes": 0,
            "avg_size": 0,
            "min_size": 0,
            "max_size": 0
        }

    sizes = [len(genes) for genes in gene_sets.values()]
    all_genes = set()
    for genes in gene_sets.values():
        all_genes.update(genes)

    return {
        "total_sets": len(gene_sets),
        "total_genes": sum(sizes),
        "unique_genes": len(all_genes),
        "avg_size": sum(sizes) / len(sizes),
        "min_size": min(sizes),
        "max_size": max(sizes)
    }


def fetch_library(library_name: str, organism: str = 'Human') -> Dict[str, List[str]]:
    """
    Download an Enrichr gene set library via gseapy.

    Args:
        library_name: Enrichr library, e.g. 'GO_Biological_Process_2023'
        organism: Enrichr organism name ('Human', 'Mouse')
    """
    logger.info(f"Downloading {library_name} ({organism}) via gseapy")
    library = gp.get_library(name=library_name, organism=organism)

    gene_sets = {}
    for pathway, genes_data in library.items():
        # genes_data can be either a list or a tab-separated string
        if isinstance(genes_data, (list, tuple, set)):
            genes = [str(g).strip() for g in genes_data if str(g).strip()]
        else:
            genes = [g.strip() for g in str(genes_data).split('\t') if g.strip()]
        if genes:
            gene_sets[pathway] = genes

    logger.info(f"Downloaded {len(gene_sets)} gene sets from {library_name}")
    return gene_sets


def is_gmt_source(source: str) -> bool:
    return str(source).lower().endswith('.gmt') or Path(str(source)).exists()


def load_collection(
    name: str,
    source: str,
    organism: str = 'Human',
    cache_dir: Optional[Path] = None
) -> GeneSetCollection:
    """
    Load one gene-set collection from a GMT path or an Enrichr library name.

    Downloaded libraries are saved as GMT under cache_dir (when given) and
    read back from there on later runs.

    Raises:
        ConfigurationError: the collection is absent, unreadable or contains
            no gene sets
    """
    if not source:
        raise ConfigurationError(f"No source configured for gene-set collection '{name}'")

    if is_gmt_source(source):
        if not Path(source).exists():
            raise ConfigurationError(f"GMT file for collection '{name}' not found: {source}")
        try:
            gene_sets = load_gmt(source)
        except ValueError as e:
            raise ConfigurationError(f"Cannot read GMT file for collection '{name}': {e}") from e
    else:
        cache_file = Path(cache_dir) / f"{source}_{organism}.gmt" if cache_dir else None
        if cache_file is not None and cache_file.exists():
            logger.info(f"Loading {source} from cache")
            gene_sets = load_gmt(cache_file)
        else:
            gene_sets = fetch_library(source, organism=organism)
            if cache_file is not None:
                save_gmt(gene_sets, cache_file, description=source)

    collection = GeneSetCollection(name, gene_sets, source=str(source))
    if len(collection) == 0:
        raise ConfigurationError(f"Gene-set collection '{name}' ({source}) is empty")

    logger.info(f"Collection {name}: {len(collection)} gene sets from {source}")
    return collection
