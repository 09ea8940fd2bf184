"""anchorpatch - anchored source patches for generated bundles.

Submodules:
    locator       - Literal, regex and balanced-delimiter anchor search
    transform     - Insert / Replace / Delete / Wrap / Call / SubstituteAll
    spec          - PatchSpec, PatchBatch, YAML manifests
    runner        - Apply one spec, classify the outcome
    pipeline      - Ordered cumulative application with checkpoints
    verification  - Named postcondition checks
    bisect        - Find the step that breaks syntax
    batches       - Built-in batches
    cli           - Command-line interface

Public API:
    from anchorpatch import PatchSpec, Locator, Replace, PatchPipeline, Artifact
"""
from __future__ import annotations

__version__ = "0.1.0"

from anchorpatch.artifact import Artifact, ArtifactStore
from anchorpatch.bisect import (
    BisectionReport,
    BisectionRunner,
    CallableChecker,
    NodeImportChecker,
    ParseStatus,
)
from anchorpatch.errors import (
    AnchorNotFound,
    ConfigError,
    CriticalPatchFailure,
    MalformedScan,
    ManifestError,
    PatchError,
    SyntaxBreak,
    TransformError,
)
from anchorpatch.locator import LocateResult, Locator, find_balanced_end, locate, require
from anchorpatch.pipeline import PatchPipeline, PipelineResult, RunReport
from anchorpatch.runner import PatchOutcome, PatchRunner, PatchStatus
from anchorpatch.spec import PatchBatch, PatchSpec, load_manifest
from anchorpatch.transform import Call, Delete, Insert, Replace, SubstituteAll, Wrap
from anchorpatch.verification import Check, VerificationReport, VerificationSuite


__all__ = [
    # Locating and transforming
    "Locator",
    "LocateResult",
    "locate",
    "find_balanced_end",
    "require",
    "Insert",
    "Replace",
    "Delete",
    "Wrap",
    "Call",
    "SubstituteAll",
    # Specs and execution
    "PatchSpec",
    "PatchBatch",
    "load_manifest",
    "Artifact",
    "ArtifactStore",
    "PatchRunner",
    "PatchOutcome",
    "PatchStatus",
    "PatchPipeline",
    "PipelineResult",
    "RunReport",
    # Verification and bisection
    "Check",
    "VerificationSuite",
    "VerificationReport",
    "BisectionRunner",
    "BisectionReport",
    "CallableChecker",
    "NodeImportChecker",
    "ParseStatus",
    # Errors
    "PatchError",
    "AnchorNotFound",
    "MalformedScan",
    "TransformError",
    "CriticalPatchFailure",
    "SyntaxBreak",
    "ConfigError",
    "ManifestError",
]
