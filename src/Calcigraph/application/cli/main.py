"""
Command line interface of Calcigraph.

    calcigraph run experiment.mat --state Awake --depth 60 --output results/
    calcigraph batch manifest.json --config params.json --output results/ --workers 4
"""
import argparse
import logging
from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence

from Calcigraph.core.analysis.batch_engine import BatchAnalysisEngine
from Calcigraph.core.parameters import PipelineParameters, load_parameters
from Calcigraph.core.processing_pipeline import ExperimentPipeline
from Calcigraph.infrastructure.exporters.csv_exporter import CSVExporter
from Calcigraph.infrastructure.file_readers.experiment_reader import ExperimentReader, load_manifest
from Calcigraph.shared import constants
from Calcigraph.shared.error_handling import CalcigraphError

log = logging.getLogger('Calcigraph.application.cli.main')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="calcigraph",
        description="Calcigraph - functional connectivity graphs from two-photon calcium imaging",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument("--dev", action="store_true", help="Run in development mode with increased logging")
    parser.add_argument("--log-dir", type=str, default=None, help="Directory to store log files")
    parser.add_argument("--verbose", "-v", action="store_true", help="Increase output verbosity")
    parser.add_argument("--version", action="store_true", help="Show version information and exit")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", type=Path, default=None, help="JSON file with analysis parameters")
    common.add_argument("--output", "-o", type=Path, default=None, help="Directory for the CSV exports")
    common.add_argument("--workers", type=int, default=None,
                        help="Worker threads for the pairwise connectivity stage")
    common.add_argument("--fs", type=float, default=constants.DEFAULT_IMAGING_FS,
                        help="Imaging frame rate in Hz, when the file does not store one")
    common.add_argument("--analog-fs", type=float, default=constants.DEFAULT_ANALOG_FS,
                        help="Analog channel rate in Hz, when the file does not store one")

    subparsers = parser.add_subparsers(dest="command")

    run = subparsers.add_parser("run", parents=[common], help="Analyse a single experiment file")
    run.add_argument("file", type=Path, help="Experiment file (.mat or .npz)")
    run.add_argument("--id", dest="experiment_id", default=None, help="Experiment id (default: file name)")
    run.add_argument("--state", default=None, help="Experimental state, e.g. Awake")
    run.add_argument("--depth", default=None, help="Cortical depth label, e.g. 150")

    batch = subparsers.add_parser("batch", parents=[common], help="Analyse every experiment of a manifest")
    batch.add_argument("manifest", type=Path, help="JSON manifest listing the experiment files")

    return parser


def _load_params(args) -> PipelineParameters:
    params = load_parameters(args.config) if args.config else PipelineParameters()
    if args.workers is not None:
        params.connectivity = replace(params.connectivity, n_workers=args.workers)
    return params


def run_single(args) -> int:
    params = _load_params(args)
    reader = ExperimentReader(fs=args.fs, analog_fs=args.analog_fs)
    experiment = reader.read(args.file, experiment_id=args.experiment_id, state=args.state, depth=args.depth)
    result = ExperimentPipeline(params).run(experiment)

    print(f"{result.experiment_id}: {result.detection.num_neurons}/{result.num_neurons_loaded} active neurons, "
          f"{result.alignment.num_stimuli} stimuli, {result.connectivity.num_edges} edges, "
          f"{result.connectivity.num_stimulus_edges} stimulus edges")
    if args.output:
        written = CSVExporter().export_experiment(result, args.output)
        print(f"Wrote {len(written)} files to {args.output}")
    return 0


def run_batch(args) -> int:
    params = _load_params(args)
    sources, reader_options = load_manifest(args.manifest)
    reader = ExperimentReader(fs=reader_options.get('fs', args.fs),
                              analog_fs=reader_options.get('analog_fs', args.analog_fs))
    engine = BatchAnalysisEngine(reader=reader, params=params)

    def report(current: int, total: int, status: str):
        log.info(f"[{current}/{total}] {status}")

    summary = engine.run_batch(sources, progress_callback=report, keep_results=args.output is not None)
    df = summary.to_dataframe()
    print(df.to_string(index=False))

    if args.output:
        exporter = CSVExporter()
        exporter.export_summary(df, args.output / "summary.csv")
        exporter.export_summary(summary.by_condition(), args.output / "summary_by_condition.csv")
        for result in summary.results.values():
            exporter.export_experiment(result, args.output / result.experiment_id)
        print(f"Results written to {args.output}")

    failed = int(df['error'].notna().sum()) if not df.empty else 0
    return 1 if failed == len(df) and failed > 0 else 0


def run_cli(args) -> int:
    """Dispatch a parsed command line. Returns the process exit code."""
    handlers = {'run': run_single, 'batch': run_batch}
    handler = handlers.get(args.command)
    if handler is None:
        build_parser().print_help()
        return 2
    try:
        return handler(args)
    except CalcigraphError as e:
        log.error(f"{type(e).__name__}: {e}")
        print(f"Error: {e}")
        return 1


def parse_args(argv: Optional[Sequence[str]] = None):
    return build_parser().parse_args(argv)
