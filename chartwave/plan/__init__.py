"""Plan engine: build, persist and diff plans.

Submodules:
    declaration -- templating and node-level decoding of the declaration file.
    tags        -- tag normalisation and release filtering.
    plan        -- Plan model, planfile import/export.
    builder     -- PlanBuilder: declaration -> resolved Plan.
    manifest    -- multi-document manifest parsing.
    diff        -- plan-vs-plan and plan-vs-live diff.
"""

from chartwave.plan.builder import ManifestRenderer, PlanBuilder
from chartwave.plan.declaration import CopyTemplater, Declaration, EnvTemplater, Templater, decode_declaration
from chartwave.plan.diff import ChangeRecord, FieldChange, LiveManifestProvider, diff_live, diff_plans
from chartwave.plan.plan import PLANFILE, Plan, PlanBody
from chartwave.plan.tags import filter_releases, normalize_tags

__all__ = [
    "PLANFILE",
    "ChangeRecord",
    "CopyTemplater",
    "Declaration",
    "EnvTemplater",
    "FieldChange",
    "LiveManifestProvider",
    "ManifestRenderer",
    "Plan",
    "PlanBody",
    "PlanBuilder",
    "Templater",
    "decode_declaration",
    "diff_live",
    "diff_plans",
    "filter_releases",
    "normalize_tags",
]
