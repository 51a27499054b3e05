"""
Basic Usage Example for lattice_mc

This script demonstrates the fundamental workflow:
1. Register observables
2. Configure sampling and completion
3. Run until converged
4. Inspect the sampled series
"""

import numpy as np
from lattice_mc import (
    CompletionCheckParams,
    ConvergenceCriterion,
    CutoffParams,
    MonteCarloRun,
    SamplingParams,
    State,
)
from lattice_mc.reporting import summarize_completion
from lattice_mc.synthetic import LatticeConfiguration, make_ar1_step, make_synthetic_registry


def main():
    print("=" * 60)
    print("lattice_mc Basic Usage Example")
    print("=" * 60)

    # Step 1: Observables
    print("\n[1] Building observable registry...")
    registry = make_synthetic_registry()
    print(f"    Observables: {', '.join(registry.names())}")

    # Step 2: Sampling every second pass, convergence checked every 50 passes
    print("\n[2] Configuring run...")
    sampling = SamplingParams(schedule_params=(0, 2), sampler_names=("mean_value", "moments"))
    completion = CompletionCheckParams(
        criteria=(
            ConvergenceCriterion("mean_value", precision=0.01),
            ConvergenceCriterion("moments", component="m2", precision=0.05),
        ),
        check_begin=100,
        check_frequency=50,
        cutoff=CutoffParams(min_count=100, max_count=200000),
    )
    state = State(LatticeConfiguration.uniform(n_sites=128, value=1.0), {"temperature": 100.0, "field": 0.0})

    # Step 3: Run
    print("\n[3] Running...")
    run = MonteCarloRun(state, registry, sampling, completion)
    results = run.run(make_ar1_step(np.random.default_rng(42), correlation=0.9))
    print(f"    Finished after {results.count} passes ({results.samples.n_samples} samples)")
    print()
    print(summarize_completion(results.completion))

    # Step 4: Long-format samples for further analysis
    print("\n[4] Sampled data...")
    frame = results.samples.to_frame()
    print(frame.groupby(["observable", "component"])["value"].describe())


if __name__ == "__main__":
    main()
