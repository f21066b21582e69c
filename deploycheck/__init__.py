"""Deployment verification harness.

Runs independent validation suites against a multi-container deployment:
- command surface (Makefile targets and dry runs)
- container configuration (Dockerfiles, compose descriptors, images)
- API contract (product endpoints through the gateway)
- live topology (health, network isolation, volumes)

and folds their results into one pass/fail verdict and exit code.
"""

__version__ = "0.1.0"
