"""
HappyFace biomarker capture.

Guides a subject through a timed baseline, smile and frown protocol,
turns per-frame facial action-unit scores into biomarkers and flags
results that may warrant a professional consultation. The flag is a
screening heuristic, not a diagnosis.
"""

__version__ = "0.1.0"
