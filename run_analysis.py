import argparse
import json
import os
import sys
from pathlib import Path

from analysis.pipelines import fitted_curve, run_county_pipeline, run_incident_pipeline
from data_preparation import config, download_raw_data
from data_preparation.data_services.covid_service import CovidService
from data_preparation.data_services.economic_service import EconomicService
from data_preparation.data_services.incident_service import IncidentService
from data_preparation.data_services.population_service import PopulationService
from data_preparation.data_services.weather_service import WeatherService
from data_preparation.errors import PipelineError
from data_preparation.vocabularies import VOCABULARY_VERSION
from model.utils import create_run_folder


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Incident seasonality and county covid regressions")
    parser.add_argument("--pipeline", choices=["incidents", "counties", "all"], default="all")
    parser.add_argument("--incidents", type=Path, default=config.INCIDENT_RAW_PATH)
    parser.add_argument("--temperature", type=Path, default=config.TEMPERATURE_RAW_PATH)
    parser.add_argument("--cases", type=Path, default=config.COVID_RAW_PATH)
    parser.add_argument("--economic", type=Path, default=config.ECONOMIC_RAW_PATH)
    parser.add_argument("--population", type=Path, default=config.POPULATION_RAW_PATH)
    parser.add_argument("--snapshot-date", default=None, help="case snapshot date, YYYY-MM-DD (default: latest)")
    parser.add_argument(
        "--unmatched-threshold",
        type=float,
        default=config.UNMATCHED_FRACTION_THRESHOLD,
        help="largest share of cases allowed to drop out of the county join",
    )
    parser.add_argument("--output", type=Path, default=config.RUNS_DIR)
    parser.add_argument("--download", action="store_true", help="fetch missing raw files to the input paths first")
    parser.add_argument("--force-download", action="store_true", help="fetch raw files again even if present (implies --download)")
    return parser.parse_args(argv)


def download_inputs(args):
    """Fetch the raw files the selected pipelines read, to the paths given on the command line."""
    sources = []
    if args.pipeline in ("incidents", "all"):
        sources.append("incidents")
    if args.pipeline in ("counties", "all"):
        sources += ["cases", "economic", "population"]
    paths = {
        "incidents": args.incidents,
        "cases": args.cases,
        "economic": args.economic,
        "population": args.population,
    }
    return download_raw_data.main(force=args.force_download, paths=paths, sources=sources)


def write_ingestion_summary(service, run_dir):
    """Record what ingestion kept and dropped next to the fraction tables."""
    summary = {
        "incidents": len(service.get_data()),
        "dropped_no_jurisdiction": service.dropped_no_jurisdiction,
        "vocabulary_version": VOCABULARY_VERSION,
    }
    path = os.path.join(run_dir, "incident_ingestion.json")
    with open(path, "w") as f:
        json.dump(summary, f, indent=2)
    return path


def incidents_main(args, run_dir):
    service = IncidentService(raw_path=args.incidents)
    incidents = service.get_data()
    temperature = None
    if args.temperature.exists():
        temperature = WeatherService(raw_path=args.temperature).get_data()
    else:
        print(f"No temperature table at {args.temperature}, skipping covariate alignment")

    results = run_incident_pipeline(incidents, temperature)

    write_ingestion_summary(service, run_dir)

    for bucket, table in results.bucket_fractions.items():
        table.to_csv(os.path.join(run_dir, f"incident_fractions_{bucket}.csv"), index=False)
    results.demographic_fractions.to_csv(os.path.join(run_dir, "incident_fractions_demographic.csv"), index=False)
    results.fit_table().to_csv(os.path.join(run_dir, "seasonal_fits.csv"), index=False)
    for bucket, fit in results.fits.items():
        positions = range(1, 13) if bucket == "month" else None
        fitted_curve(fit, positions).to_csv(os.path.join(run_dir, f"seasonal_curve_{bucket}.csv"), index=False)
    if results.temperature_alignment is not None:
        with open(os.path.join(run_dir, "temperature_alignment.json"), "w") as f:
            json.dump(results.temperature_alignment.as_record(), f, indent=2)

    print("\n" + "=" * 60)
    print("SEASONAL FITS")
    print("=" * 60)
    for bucket, fit in results.fits.items():
        print(
            f"{bucket:<12} amplitude={fit.amplitude:.4f} phase={fit.phase:+.3f} "
            f"offset={fit.offset:.4f} rmse={fit.rmse:.5f}"
        )
    if results.temperature_alignment is not None:
        print(f"Temperature vs monthly curve: r={results.temperature_alignment.correlation:.3f}")


def counties_main(args, run_dir):
    cases = CovidService(snapshot_date=args.snapshot_date, raw_path=args.cases).get_data()
    economic_service = EconomicService(raw_path=args.economic)
    null_report = economic_service.null_report()
    population = PopulationService(raw_path=args.population).get_data()

    results = run_county_pipeline(
        cases,
        economic_service.get_data(),
        population,
        null_report=null_report,
        threshold=args.unmatched_threshold,
    )

    results.metrics.to_csv(os.path.join(run_dir, "county_metrics.csv"), index=False)
    results.join.exclusions.to_csv(os.path.join(run_dir, "join_exclusions.csv"), index=False)
    results.join.summary().to_csv(os.path.join(run_dir, "join_exclusion_summary.csv"), index=False)
    results.null_report.to_csv(os.path.join(run_dir, "economic_null_report.csv"), index=False)
    results.simple_fits.to_csv(os.path.join(run_dir, "linear_fits.csv"), index=False)
    results.coefficient_table().to_csv(os.path.join(run_dir, "multiple_fits.csv"), index=False)
    results.correlations.to_csv(os.path.join(run_dir, "correlations.csv"))
    results.robustness.to_csv(os.path.join(run_dir, "slope_robustness.csv"), index=False)

    print("\n" + "=" * 60)
    print("COUNTY JOIN")
    print("=" * 60)
    print(f"Joined counties: {len(results.metrics)}")
    print(f"Unmatched share of cases: {results.join.unmatched_fraction:.3%}")
    print(results.join.summary().to_string(index=False))
    print("\nLinear fits:")
    print(results.simple_fits[["response", "predictor", "slope", "r_squared"]].to_string(index=False))


def main(argv=None):
    args = parse_args(argv)

    if args.download or args.force_download:
        download_inputs(args)

    run_dir = create_run_folder(args.output)
    print(f"Writing outputs to {run_dir} (vocabulary {VOCABULARY_VERSION})")

    try:
        if args.pipeline in ("incidents", "all"):
            incidents_main(args, run_dir)
        if args.pipeline in ("counties", "all"):
            counties_main(args, run_dir)
    except PipelineError as e:
        print(f"Run aborted: {type(e).__name__}: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
