"""Performance benchmarks for termsum.

This package contains microbenchmarks for the evaluation hot paths: value,
gradient, and dense and sparse Hessian assembly.
"""
