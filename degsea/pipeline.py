"""
Enrichment Pipeline for DEGSEA

Main orchestrator that ties together all components for one comparison:
DE table -> normalization -> ranking -> per-collection GSEA -> reports.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import pandas as pd

from .batch import BatchReport, run_collections
from .config import AUTO_ORGANISM, PipelineConfig
from .de_table import read_de_table
from .gene_sets import GeneSetCollection, load_collection
from .gsea import EnrichmentBackend, GseapyPrerankBackend
from .models import EnrichmentResult
from .normalizer import NormalizationReport, normalize_de_results
from .ora import ORAResult, run_ora, select_de_genes
from .ranking import GeneRanking, build_ranking
from .repro import ReproducibilityLogger
from .report import (
    filter_significant,
    flatten_for_export,
    flatten_ora_for_export,
    write_csv_tables,
    write_enrichment_workbook,
)
from .species import guess_species, resolve_species

logger = logging.getLogger("DEGSEA.Pipeline")


@dataclass
class PipelineResult:
    """Everything one pipeline run produced"""

    organism: str
    normalization: NormalizationReport
    ranking: GeneRanking
    batch: BatchReport
    significant: Dict[str, Tuple[EnrichmentResult, ...]]
    ora: Dict[str, List[ORAResult]] = field(default_factory=dict)
    outputs: Dict[str, Path] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def status(self) -> str:
        return self.batch.status

    def tables(self, separator: str = "; ") -> Dict[str, pd.DataFrame]:
        """Flattened full result table per successful collection"""
        return {
            name: flatten_for_export(run.results, separator)
            for name, run in self.batch.runs.items() if run.ok
        }


class EnrichmentPipeline:
    """
    Complete DE-to-enrichment pipeline.

    Orchestrates:
    1. DE result normalization
    2. Ranking
    3. Gene-set collection loading
    4. Per-collection GSEA (parallel)
    5. Significance reporting and export
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        backend: Optional[EnrichmentBackend] = None
    ):
        self.config = config or PipelineConfig()
        self.config.validate()
        self.backend = backend or GseapyPrerankBackend(threads=self.config.gsea_threads)
        self.repro_logger = ReproducibilityLogger()

    def load_collections(self, organism: str) -> Dict[str, GeneSetCollection]:
        """Load every configured collection before any enrichment starts"""
        species = resolve_species(organism)
        cache_dir = Path(self.config.cache_dir) if self.config.cache_dir else None
        collections = {}
        for name, source in self.config.collection_sources(species.species_key).items():
            collections[name] = load_collection(
                name, source, organism=species.enrichr_organism, cache_dir=cache_dir
            )
        return collections

    def run(
        self,
        de_source: Union[str, Path, pd.DataFrame, List],
        collections: Optional[Mapping[str, GeneSetCollection]] = None,
        output_dir: Optional[Union[str, Path]] = None,
        write_outputs: bool = True
    ) -> PipelineResult:
        """
        Run the complete pipeline for one comparison.

        Args:
            de_source: DE table path, DataFrame, or list of DEResult rows
            collections: Pre-loaded collections (default: load from config)
            output_dir: Output directory (default: config.output_dir)
            write_outputs: Write .rnk, workbook and metadata files

        Returns:
            PipelineResult; collection failures are reported per collection

        Raises:
            ConfigurationError: empty ranking, empty collections, bad bounds
        """
        config = self.config
        self.repro_logger = ReproducibilityLogger()

        # Step 1: Normalize DE results
        logger.info("Step 1/5: Normalizing DE results")
        if isinstance(de_source, list):
            rows = de_source
        else:
            rows = read_de_table(de_source, gene_column=config.gene_column)
        normalization = normalize_de_results(rows)

        # Step 2: Build ranking
        logger.info("Step 2/5: Building ranked gene list")
        ranking = build_ranking(normalization.rows)

        organism = config.organism
        if organism == AUTO_ORGANISM:
            organism = guess_species(ranking.genes)
        organism = resolve_species(organism).species_key

        # Step 3: Load gene sets
        logger.info("Step 3/5: Loading gene-set collections")
        if collections is None:
            collections = self.load_collections(organism)

        # Step 4: Run GSEA per collection
        logger.info(f"Step 4/5: Running GSEA on {len(collections)} collections")
        batch = run_collections(
            ranking,
            collections,
            min_set_size=config.min_set_size,
            max_set_size=config.max_set_size,
            permutation_num=config.permutation_num,
            seed=config.seed,
            backend=self.backend,
            max_workers=config.max_workers,
        )

        significant = {
            name: filter_significant(run.results, config.alpha)
            for name, run in batch.runs.items() if run.ok
        }

        ora_results = {}
        if config.run_ora:
            ora_results = self._run_ora(normalization, collections)

        # Step 5: Report
        logger.info("Step 5/5: Reporting")
        self._log_metadata(organism, normalization, ranking, collections, batch, significant)

        result = PipelineResult(
            organism=organism,
            normalization=normalization,
            ranking=ranking,
            batch=batch,
            significant=significant,
            ora=ora_results,
            metadata=self.repro_logger.get_metadata().to_dict(),
        )

        if write_outputs:
            result.outputs = self.write_outputs(result, Path(output_dir or config.output_dir))

        return result

    def _run_ora(
        self,
        normalization: NormalizationReport,
        collections: Mapping[str, GeneSetCollection]
    ) -> Dict[str, List[ORAResult]]:
        config = self.config
        background = [row.gene_id for row in normalization.rows]
        selected = select_de_genes(normalization.rows, config.alpha, config.ora_lfc_threshold)
        logger.info(
            f"ORA gene selection: {len(selected['up'])} up, {len(selected['down'])} down"
        )

        results = {}
        for name, collection in collections.items():
            rows = []
            for direction, genes in selected.items():
                rows.extend(run_ora(
                    genes,
                    collection,
                    background,
                    direction=direction,
                    min_set_size=config.min_set_size,
                    max_set_size=config.max_set_size,
                ))
            results[name] = rows
        return results

    def _log_metadata(self, organism, normalization, ranking, collections, batch, significant):
        config = self.config
        for collection in collections.values():
            self.repro_logger.add_collection(collection)
        self.repro_logger.set_parameters(
            min_set_size=config.min_set_size,
            max_set_size=config.max_set_size,
            permutation_num=config.permutation_num,
            seed=config.seed,
            alpha=config.alpha,
            fdr_method='fdr_bh',
            ranking_statistic='-log10(p_value) * sign(log2_fold_change)',
        )
        self.repro_logger.set_input_summary(
            total_rows=normalization.input_count,
            kept_rows=normalization.kept_count,
            dropped=dict(normalization.dropped),
            ranked_genes=len(ranking),
            organism=organism,
        )
        self.repro_logger.set_output_summary(
            status=batch.status,
            collections={
                name: {
                    'status': run.status,
                    'tested': len(run.results),
                    'significant': len(significant.get(name, ())),
                    'error': run.error,
                }
                for name, run in batch.runs.items()
            },
        )
        for w in normalization.warnings:
            self.repro_logger.add_warning(w)
        for name, run in batch.runs.items():
            if not run.ok:
                self.repro_logger.add_warning(f"Collection {name} failed: {run.error}")

    def write_outputs(self, result: PipelineResult, output_dir: Path) -> Dict[str, Path]:
        """
        Write the ranked list, the enrichment workbook and run metadata.

        Returns:
            artifact name -> path
        """
        config = self.config
        output_dir.mkdir(parents=True, exist_ok=True)
        outputs = {}

        outputs['ranked_list'] = result.ranking.to_rnk(output_dir / 'ranked_genes.rnk')

        tables = result.tables(config.leading_edge_separator)
        outputs['workbook'] = write_enrichment_workbook(
            tables, output_dir / 'gsea_results.xlsx', summary=result.batch.summary_table()
        )

        significant_tables = {
            name: flatten_for_export(rows, config.leading_edge_separator)
            for name, rows in result.significant.items()
        }
        outputs['significant_workbook'] = write_enrichment_workbook(
            significant_tables, output_dir / 'gsea_significant.xlsx'
        )

        if config.export_csv:
            for name, path in write_csv_tables(tables, output_dir / 'csv').items():
                outputs[f'csv_{name}'] = path

        if result.ora:
            ora_tables = {
                name: flatten_ora_for_export(rows, config.leading_edge_separator)
                for name, rows in result.ora.items()
            }
            outputs['ora_workbook'] = write_enrichment_workbook(ora_tables, output_dir / 'ora_results.xlsx')

        metadata_path = output_dir / 'run_metadata.json'
        self.repro_logger.export_json(metadata_path)
        outputs['metadata'] = metadata_path
        outputs['metadata_yaml'] = output_dir / 'run_metadata.yaml'
        self.repro_logger.export_yaml(outputs['metadata_yaml'])

        return outputs
