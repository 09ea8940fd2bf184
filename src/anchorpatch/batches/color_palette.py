"""Navy / soft-pink palette for the stylesheet and renderer bundle.

    Background  #232946    Headline    #fffffe
    Paragraph   #b8c1ec    Button      #eebbc3
    Stroke      #121629    Highlight   #eebbc3

Custom properties are declared once in ``:root`` and replaced in place.
Utility-class colors and inline style colors repeat, so those are global
substitutions.
"""
from __future__ import annotations

from anchorpatch.batches.common import replace_once, substitute
from anchorpatch.spec import PatchBatch
from anchorpatch.verification import Check

NAME = "color-palette"

CSS_VARIABLES = [
    ("--primary-50: #faf5ff", "--primary-50: #fff5f7"),
    ("--primary-100: #f3e8ff", "--primary-100: #fde8ec"),
    ("--primary-200: #e9d5ff", "--primary-200: #f8d0d7"),
    ("--primary-300: #d8b4fe", "--primary-300: #eebbc3"),
    ("--primary-400: #c084fc", "--primary-400: #e8a5af"),
    ("--primary-500: #a855f7", "--primary-500: #d4899a"),
    ("--primary-600: #9333ea", "--primary-600: #c07080"),
    ("--primary-700: #7c3aed", "--primary-700: #a85a6a"),
    ("--primary-800: #6b21a8", "--primary-800: #8a4555"),
    ("--primary-900: #581c87", "--primary-900: #6d3545"),
    ("--dark-bg: #0f0f12", "--dark-bg: #232946"),
    ("--dark-surface: #131316", "--dark-surface: #1e2440"),
    ("--dark-surface-elevated: #1a1a1d", "--dark-surface-elevated: #2a3157"),
    ("--dark-border: rgba(255, 255, 255, .08)", "--dark-border: rgba(184, 193, 236, .12)"),
    ("--dark-border-subtle: rgba(255, 255, 255, .04)", "--dark-border-subtle: rgba(184, 193, 236, .06)"),
    ("--dark-hover: #27272a", "--dark-hover: #303767"),
    ("--dark-text-primary: #fafafa", "--dark-text-primary: #fffffe"),
    ("--dark-text-secondary: #a1a1aa", "--dark-text-secondary: #b8c1ec"),
    ("--dark-text-tertiary: #71717a", "--dark-text-tertiary: #8892b8"),
    ("--dark-input-bg: #27272a", "--dark-input-bg: #1a1f3d"),
    ("--dark-code-bg: #0f0f12", "--dark-code-bg: #1a1f3d"),
    ("--dark-code-inline-bg: #27272a", "--dark-code-inline-bg: #2a3157"),
    ("--glass-bg: rgba(24, 24, 27, .8)", "--glass-bg: rgba(35, 41, 70, .85)"),
    ("--glass-border: rgba(255, 255, 255, .1)", "--glass-border: rgba(238, 187, 195, .15)"),
    ("--glass-shadow: 0 8px 32px rgba(0, 0, 0, .4)", "--glass-shadow: 0 8px 32px rgba(18, 22, 41, .5)"),
    ("--accent-glow: rgba(168, 85, 247, .15)", "--accent-glow: rgba(238, 187, 195, .15)"),
    ("--accent-glow-strong: rgba(168, 85, 247, .3)", "--accent-glow-strong: rgba(238, 187, 195, .3)"),
]

BODY_GRADIENT = (
    "background:linear-gradient(135deg,#1a1025,#1f1530)",
    "background:linear-gradient(135deg,#1a2040,#232946)",
)

# Order matters: the background-color forms must go before the bare color: forms.
CSS_COLORS = [
    ("background-color:rgb(19 19 22", "background-color:rgb(30 36 64"),
    ("background-color:rgb(168 85 247", "background-color:rgb(238 187 195"),
    ("background-color:#a855f71a", "background-color:#eebbc31a"),
    ("background-color:#a855f726", "background-color:#eebbc326"),
    ("background-color:#a855f733", "background-color:#eebbc333"),
    ("border-color:rgb(26 16 37", "border-color:rgb(26 32 64"),
    ("border-color:#a855f780", "border-color:#eebbc380"),
    ("border-color:#c084fc80", "border-color:#e8a5af80"),
    ("--tw-gradient-from: #1a1025", "--tw-gradient-from: #1a2040"),
    ("rgb(26 16 37 / 0)", "rgb(26 32 64 / 0)"),
    ("#1f1530 var(--tw-gradient-via-position)", "#232946 var(--tw-gradient-via-position)"),
    ("--tw-gradient-to: #1a1025", "--tw-gradient-to: #1a2040"),
    ("rgb(147 51 234 / .2)", "rgb(238 187 195 / .2)"),
    ("rgb(147 51 234 / 0)", "rgb(238 187 195 / 0)"),
    ("--tw-ring-color: rgb(168 85 247 / .3)", "--tw-ring-color: rgb(238 187 195 / .3)"),
    ("--tw-ring-color: rgb(192 132 252 / .6)", "--tw-ring-color: rgb(232 165 175 / .6)"),
    ("color:rgb(192 132 252", "color:rgb(232 165 175"),
    ("color:rgb(168 85 247", "color:rgb(238 187 195"),
    ("background-color:rgb(147 51 234", "background-color:rgb(192 112 128"),
    ("background-color:rgb(126 34 206", "background-color:rgb(168 90 106"),
    ("--tw-ring-color: rgb(168 85 247 / .5)", "--tw-ring-color: rgb(238 187 195 / .5)"),
    ("#a855f7 50%", "#eebbc3 50%"),
    ("outline-color:#0f0", "outline-color:#eebbc3"),
    ("outline-color:#22c55e", "outline-color:#d4899a"),
    ("outline:2px solid lime", "outline:2px solid #eebbc3"),
    ("background:#1e1e1e", "background:#1a1f3d"),
    ("var(--primary-400, #c084fc)", "var(--primary-400, #e8a5af)"),
]

INLINE_COLORS = [
    ("#374151", "#2a3157"),
    ("#1f2937", "#1e2440"),
    ("#111827", "#1a1f3d"),
    ("#e2e8f0", "#fffffe"),
    ("#9ca3af", "#b8c1ec"),
    ("#6b7280", "#8892b8"),
    ("#4b5563", "#6b7ead"),
    ("#1a2332", "#252c55"),
    ('"#3b82f6"', '"#eebbc3"'),
    ('background:"#eebbc3",color:"#fff"', 'background:"#eebbc3",color:"#232946"'),
]


def _variable_name(declaration: str) -> str:
    return declaration.split(":", 1)[0]


def batch() -> PatchBatch:
    specs = []
    for old, new in CSS_VARIABLES:
        name = _variable_name(old)
        specs.append(replace_once(f"var{name}", "stylesheet", old, new, label=f"CSS {name}"))
    specs.append(replace_once(
        "body-gradient", "stylesheet", *BODY_GRADIENT, label="CSS body gradient",
    ))
    for index, (old, new) in enumerate(CSS_COLORS, start=1):
        specs.append(substitute(f"css-color-{index}", "stylesheet", old, new, label=f"CSS {old}"))
    for index, (old, new) in enumerate(INLINE_COLORS, start=1):
        specs.append(substitute(f"inline-color-{index}", "renderer", old, new, label=f"JS {old}"))

    checks = [
        Check.contains("--dark-bg: #232946", name="CSS: --dark-bg is #232946", target="stylesheet"),
        Check.contains("--dark-surface: #1e2440", name="CSS: --dark-surface is #1e2440", target="stylesheet"),
        Check.contains("--dark-text-primary: #fffffe", name="CSS: --dark-text-primary is #fffffe", target="stylesheet"),
        Check.contains("--primary-300: #eebbc3", name="CSS: --primary-300 is #eebbc3", target="stylesheet"),
        Check.contains("rgba(238, 187, 195, .15)", name="CSS: accent glow is pink", target="stylesheet"),
        Check.contains("#1a2040,#232946", name="CSS: body gradient is navy", target="stylesheet"),
        Check.absent("--primary-500: #a855f7", name="CSS: no old purple primary", target="stylesheet"),
        Check.absent("--dark-bg: #0f0f12", name="CSS: no old dark-bg", target="stylesheet"),
        Check.contains('"#eebbc3"', name="JS: pink accent (#eebbc3)", target="renderer"),
        Check.contains('color:"#232946"', name="JS: button text on pink", target="renderer"),
    ]
    return PatchBatch(
        name=NAME,
        specs=specs,
        checks=checks,
        description="Deep navy / soft pink theme for stylesheet and renderer",
    )
