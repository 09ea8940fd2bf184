"""Keep window creation from waiting on service initialization.

Auth and analytics init are awaited inside the condition that creates the
main window; if either hangs the process runs with no window at all. The
rewritten sequence races each init against a timeout, swallows their
errors, and still calls ``me()`` right before ``if(k)`` so IPC handlers
register immediately after the window exists.
"""
from __future__ import annotations

from anchorpatch.batches.common import contains_checks, replace_once
from anchorpatch.spec import PatchBatch

NAME = "startup-reliability"
TARGET = "main"

AWAITED_INIT = (
    'if(A.initialize(),await S.initialize(),await y.initialize(),'
    'y.track("app_start"),me(),k){'
)
GUARDED_INIT = (
    "A.initialize();"
    "try{await Promise.race([S.initialize(),new Promise(r=>setTimeout(r,5e3))])}catch(_ie){}"
    "try{await Promise.race([y.initialize(),new Promise(r=>setTimeout(r,3e3))]);"
    'y.track("app_start")}catch(_ie){}'
    "me();if(k){"
)


def batch() -> PatchBatch:
    spec = replace_once(
        "guarded-init", TARGET, AWAITED_INIT, GUARDED_INIT,
        critical=True,
        label="Service init timeouts",
    )
    checks = contains_checks(TARGET, [
        ("Services before window", "A.initialize();try{await Promise.race([S.initialize()"),
        ("Auth timeout (5s)", "Promise.race([S.initialize()"),
        ("Analytics timeout (3s)", "Promise.race([y.initialize()"),
        ("Window right before IPC setup", "me();if(k){"),
        ("Error handling", "catch(_ie)"),
    ])
    return PatchBatch(
        name=NAME,
        specs=[spec],
        checks=checks,
        description="Wrap auth/analytics init in timeouts so the window always appears",
    )
