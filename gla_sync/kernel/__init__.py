"""Kernel utilities shared across the jobs and products packages.

Rules:
- Kernel code must not import from jobs, products or merchant_center.
- Keep it small and stable; no business logic here.
"""
