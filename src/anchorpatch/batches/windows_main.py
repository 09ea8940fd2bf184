"""Platform fixes for the main-process bundle of a macOS Electron build.

Each fix is a global substitution: the minifier repeats these fragments in
several places and every occurrence needs the Windows form.
"""
from __future__ import annotations

from anchorpatch.batches.common import substitute
from anchorpatch.spec import PatchBatch
from anchorpatch.verification import Check

NAME = "windows-main"
TARGET = "main"

CHMOD_CALL = r"\bawait\s+\w+\(\s*`chmod\s+\+x\s+[^`]*`\s*\)"
# Inside a comma sequence the call goes together with its comma.
CHMOD_IN_SEQUENCE = r",\s*await\s+\w+\(\s*`chmod\s+\+x\s+[^`]*`\s*\)"
DARWIN_FRAME = r'frame:\s*process\.platform\s*===\s*"darwin"'
UNIX_PATH_FALLBACK = (
    r'PATH:\s*process\.env\.PATH\s*\|\|\s*'
    r'"\/usr\/local\/bin:\/usr\/bin:\/bin:\/usr\/sbin:\/sbin"'
)
WINDOWS_PATH_FALLBACK = (
    r'PATH:process.env.PATH||process.env.SystemRoot+"\\System32;"'
    r'+process.env.SystemRoot+"\\System32\\WindowsPowerShell\\v1.0"'
)


def batch() -> PatchBatch:
    specs = [
        substitute(
            "notify-app-cmd", TARGET, "notify-app.sh", "notify-app.cmd",
            label="notify-app.sh -> notify-app.cmd",
        ),
        substitute(
            "drop-chmod-in-sequence", TARGET, CHMOD_IN_SEQUENCE, "", regex=True,
            label="Remove chmod +x calls from comma sequences",
        ),
        substitute(
            "drop-chmod", TARGET, CHMOD_CALL, "void 0", regex=True,
            label="Remove chmod +x calls",
        ),
        substitute(
            "window-frame", TARGET, DARWIN_FRAME, "frame:true", regex=True,
            label="BrowserWindow frame",
        ),
        substitute(
            "path-fallback", TARGET, UNIX_PATH_FALLBACK, WINDOWS_PATH_FALLBACK, regex=True,
            label="PATH fallback",
        ),
        substitute(
            "sharp-package", TARGET, "@img/sharp-darwin-arm64", "@img/sharp-win32-x64",
            label="sharp package id",
        ),
        substitute(
            "sharp-binary", TARGET, "sharp-darwin-arm64.node", "sharp-win32-x64.node",
            label="sharp native binary",
        ),
        substitute(
            "home-userprofile", TARGET,
            r'HOME:\s*process\.env\.HOME\s*\|\|\s*require\("os"\)\.homedir\(\)',
            'HOME:process.env.HOME||process.env.USERPROFILE||require("os").homedir()',
            regex=True,
            label="USERPROFILE fallback for HOME",
        ),
        substitute(
            "where-claude", TARGET,
            r'ae\("which claude"\)',
            'ae(process.platform==="win32"?"where claude":"which claude")',
            regex=True,
            label="which claude -> where claude",
        ),
        substitute(
            "title-bar-style", TARGET,
            r'titleBarStyle:\s*"hiddenInset"',
            'titleBarStyle:process.platform==="darwin"?"hiddenInset":"default"',
            regex=True,
            label="titleBarStyle",
        ),
    ]
    checks = [
        Check.absent("notify-app.sh", name="No notify-app.sh references", target=TARGET),
        Check.not_regex(CHMOD_CALL, name="No chmod +x calls", target=TARGET),
        Check.not_regex(DARWIN_FRAME, name="Frame enabled on Windows", target=TARGET),
        Check.absent("sharp-darwin-arm64", name="No darwin sharp references", target=TARGET),
        Check.contains("process.env.USERPROFILE", name="USERPROFILE fallback", target=TARGET),
    ]
    return PatchBatch(
        name=NAME,
        specs=specs,
        checks=checks,
        description="Windows fixes for the main process (shell scripts, frame, env, native ids)",
    )
