"""Command-line entry point running a synthetic conditions sweep."""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time

import numpy as np

from .campaign import IncrementalConditionsStateGenerator
from .config import CompletionCheckParams, ConvergenceCriterion, CutoffParams, SamplingParams
from .errors import MonteError
from .reporting import summarize_campaign, summarize_completion
from .runner import run_campaign
from .state import State
from .synthetic import LatticeConfiguration, make_ar1_step, make_synthetic_registry

logger = logging.getLogger(__name__)


def format_duration(seconds: float) -> str:
    """Format a run time as ms, seconds, minutes or hours."""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.2f}s"
    minutes, secs = divmod(seconds, 60)
    if minutes < 60:
        return f"{int(minutes)}m {secs:.1f}s"
    hours, minutes = divmod(int(minutes), 60)
    return f"{hours}h {minutes}m"


def print_header(title: str, detail: str | None = None, width: int = 70) -> None:
    """Print a sweep header, with an optional line describing the sweep setup."""
    print("\n" + "=" * width)
    print(f"  {title}")
    if detail:
        print(f"  {detail}")
    print("-" * width if detail else "=" * width)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run a synthetic lattice Monte Carlo conditions sweep with automatic convergence.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                # 5 states, field 0.0 -> 0.4
  %(prog)s --n-states 10 --independent    # restart every run from the initial configuration
  %(prog)s --precision 0.001 --verbose    # tighter convergence, per-run tables
  %(prog)s --quiet                        # only print the final count of each run
        """,
    )
    parser.add_argument("--n-states", type=int, default=5, help="Number of states in the sweep (default: 5).")
    parser.add_argument("--field-step", type=float, default=0.1, help="Field increment between states.")
    parser.add_argument("--temperature", type=float, default=100.0, help="Temperature of every state.")
    parser.add_argument("--n-sites", type=int, default=256, help="Number of lattice sites.")
    parser.add_argument("--correlation", type=float, default=0.9, help="Pass-to-pass correlation in [0, 1).")
    parser.add_argument("--precision", type=float, default=0.005, help="Requested precision of the mean.")
    parser.add_argument("--confidence", type=float, default=0.95, help="Confidence level of the interval.")
    parser.add_argument("--max-count", type=int, default=100000, help="Maximum passes per run.")
    parser.add_argument("--estimator", choices=("batch_means", "ar1"), default="batch_means")
    parser.add_argument("--independent", action="store_true", help="Do not carry configurations between runs.")
    parser.add_argument("--seed", type=int, default=1337, help="Random seed.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show per-run convergence tables.")
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress everything but results.")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.quiet:
        os.environ["LATTICE_MC_VERBOSITY"] = "0"
    elif args.verbose:
        os.environ["LATTICE_MC_VERBOSITY"] = "2"
    else:
        os.environ["LATTICE_MC_VERBOSITY"] = "1"

    logging.basicConfig(
        level=logging.WARNING if args.quiet else logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s | %(levelname)s | %(message)s",
        datefmt="%H:%M:%S",
    )

    start_time = time.time()
    try:
        registry = make_synthetic_registry()
        sampling_params = SamplingParams(
            sampler_names=("mean_value", "moments", "fraction_positive"),
        )
        completion_params = CompletionCheckParams(
            criteria=(
                ConvergenceCriterion("mean_value", precision=args.precision, confidence=args.confidence),
                ConvergenceCriterion(
                    "moments", component="m2", precision=10 * args.precision, confidence=args.confidence
                ),
            ),
            check_begin=100,
            check_frequency=100,
            cutoff=CutoffParams(min_count=100, max_count=args.max_count),
            estimator=args.estimator,
        )
        initial_state = State(
            configuration=LatticeConfiguration.uniform(args.n_sites, 0.0),
            conditions={"temperature": args.temperature, "field": 0.0},
        )
        generator = IncrementalConditionsStateGenerator(
            initial_state,
            {"temperature": 0.0, "field": args.field_step},
            n_states=args.n_states,
            dependent_runs=not args.independent,
        )
        step = make_ar1_step(np.random.default_rng(args.seed), correlation=args.correlation)

        results = run_campaign(generator, registry, sampling_params, completion_params, step)
    except MonteError as e:
        print(f"\nError after {format_duration(time.time() - start_time)}:\n{e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(
            f"\nError after {format_duration(time.time() - start_time)}:\nInvalid input: {e}",
            file=sys.stderr,
        )
        return 1

    elapsed = time.time() - start_time
    if args.quiet:
        for run in results:
            print(run.count)
        return 0

    print_header(
        "Synthetic Conditions Sweep",
        f"{args.n_states} states, field step {args.field_step:g}, estimator {args.estimator}",
    )
    if args.verbose:
        for i, run in enumerate(results):
            print(f"\n--- State {i} ---")
            print(summarize_completion(run.completion))
    print("\n" + summarize_campaign(results))
    print(f"\nRuntime: {format_duration(elapsed)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
