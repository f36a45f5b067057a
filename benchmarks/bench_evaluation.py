"""Benchmark value, gradient and Hessian evaluation of a large function."""

import time
from typing import Dict

import numpy as np

from termsum import Function, Rosenbrock, SquaredDistance


def build_function(n_variables: int, number_of_threads: int) -> Function:
    rng = np.random.default_rng(0)
    scalars = [np.array([v]) for v in rng.uniform(-1.0, 1.0, size=n_variables)]
    f = Function(number_of_threads=number_of_threads)
    for a, b in zip(scalars[:-1], scalars[1:]):
        f.add_term(Rosenbrock(), a, b)
    for a, b in zip(scalars[::2], scalars[1::2]):
        f.add_term(SquaredDistance(1), a, b)
    return f


def benchmark_evaluation(
    n_variables: int = 2000, number_of_threads: int = 1, repeats: int = 20
) -> Dict[str, float]:
    """Time each evaluation mode.

    Args:
        n_variables: Number of scalar variables in the chain.
        number_of_threads: Worker count of the function.
        repeats: Evaluations per mode.

    Returns:
        Dictionary with seconds per evaluation for each mode.
    """
    f = build_function(n_variables, number_of_threads)
    x = f.copy_user_to_global()
    f.allocate_local_storage()

    modes = {
        "value": lambda: f.evaluate(x),
        "gradient": lambda: f.evaluate_with_gradient(x),
        "dense_hessian": lambda: f.evaluate_with_hessian(x),
        "sparse_hessian": lambda: f.evaluate_with_hessian(x, sparse=True),
    }
    results: Dict[str, float] = {"n_terms": float(f.get_number_of_terms())}
    for name, run in modes.items():
        run()
        start = time.perf_counter()
        for _ in range(repeats):
            run()
        results[name] = (time.perf_counter() - start) / repeats
    f.close()
    return results


if __name__ == "__main__":
    print("Benchmarking function evaluation...")
    for threads in (1, 2, 4):
        results = benchmark_evaluation(n_variables=2000, number_of_threads=threads)
        print(f"{int(results['n_terms'])} terms, {threads} threads:")
        for mode in ("value", "gradient", "dense_hessian", "sparse_hessian"):
            print(f"  {mode:<15} {results[mode] * 1e3:8.2f} ms")
