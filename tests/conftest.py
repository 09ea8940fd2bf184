"""Pytest configuration and fixtures for anchorpatch tests."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT / "src"))

from anchorpatch.artifact import DEFAULT_LAYOUT  # noqa: E402


# Trimmed-down stand-ins for the minified Electron bundles the built-in
# batches were written against. Every anchor those batches need is present.
MAIN_BUNDLE = (
    'const G=require("child_process"),path=require("path");const oe=["claude","codex"];'
    "class SessionMonitor{isClaudeRunningInSession(e){return new Promise(t=>{"
    "G.exec(`ps -o args= -p $(pgrep -P ${e}) 2>/dev/null`,(n,r)=>{t(!n&&r.includes(\"claude\"))})})}"
    "detectMessageFallback(){return!1}}\n"
    'async function installHook(r){await ce(`chmod +x "${r}"`);l.mkdirSync(r),await ce(`chmod +x "${r}/bin"`);return path.join(r,"notify-app.sh")}\n'
    'const hookName="notify-app.sh";\n'
    "function me(){return new BrowserWindow({width:1200,titleBarStyle:\"hiddenInset\","
    "frame:process.platform===\"darwin\"})}\n"
    'const shellEnv={PATH:process.env.PATH||"/usr/local/bin:/usr/bin:/bin:/usr/sbin:/sbin",'
    'HOME:process.env.HOME||require("os").homedir()};\n'
    'const sharpBinary="@img/sharp-darwin-arm64/lib/sharp-darwin-arm64.node";\n'
    'async function hasClaude(){try{return await ae("which claude"),!0}catch{return!1}}\n'
    "class FileMapIpc{register(d,e){"
    'd.on("activity",(n,s,m)=>{this.safeSend("project:file-activity",'
    "{projectId:n,agentId:s.agentId,filePath:m,timestamp:Date.now()})});"
    'd.handle("project-file-map:load",async(t,s,n)=>{try{const r=await e.loadProject(s,n);'
    "return{success:!0,fileMap:{projectId:r.projectId,projectPath:r.projectPath,"
    "files:Array.from(r.files.entries()),agentActivity:Array.from(r.agentActivity.entries())}}}"
    "catch(o){return{success:!1,error:o.message}}});"
    'd.handle("project-file-map:get",async(t,s)=>{'
    "const n=e.getSerializableFileMap(s);return n?{success:!0,fileMap:n}:{success:!1}})}}\n"
    "async function start(){if(A.initialize(),await S.initialize(),await y.initialize(),"
    'y.track("app_start"),me(),k){k.show()}}\n'
)

PRELOAD_BUNDLE = 'const{contextBridge:c}=require("electron");c.exposeInMainWorld("api",{});\n'

RENDERER_BUNDLE = (
    'const card={border:"1px solid #374151",background:"#111827"};'
    'const pull={background:"#3b82f6",color:"#fff"};\n'
)

STYLESHEET = (
    ":root{--primary-300: #d8b4fe;--primary-500: #a855f7;--dark-bg: #0f0f12;"
    "--dark-surface: #131316;--dark-text-primary: #fafafa;"
    "--accent-glow: rgba(168, 85, 247, .15)}"
    "body{background:linear-gradient(135deg,#1a1025,#1f1530)}"
    ".bg-accent{background-color:rgb(168 85 247/var(--tw-bg-opacity))}"
    ".text-accent{color:rgb(168 85 247/var(--tw-text-opacity))}\n"
)

SAMPLE_BUNDLES = {
    "main": MAIN_BUNDLE,
    "preload": PRELOAD_BUNDLE,
    "renderer": RENDERER_BUNDLE,
    "stylesheet": STYLESHEET,
}


def write_tree(root: Path, contents: dict) -> Path:
    for artifact_id, text in contents.items():
        path = root / DEFAULT_LAYOUT[artifact_id]
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(text.encode("utf-8"))
    return root


@pytest.fixture
def sample_bundles():
    """Return the sample artifact contents keyed by artifact id."""
    return dict(SAMPLE_BUNDLES)


@pytest.fixture
def tmp_workspace(tmp_path):
    """Create a workspace with a pristine reference build and an empty output tree."""
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    (workspace / ".anchorpatch").mkdir()
    write_tree(workspace / "pristine", SAMPLE_BUNDLES)
    (workspace / "build").mkdir()
    return workspace


@pytest.fixture
def workspace_config(tmp_workspace):
    """Write a workspace config pointing at the fixture trees."""
    import json

    config = {"reference_dir": "pristine", "output_dir": "build"}
    (tmp_workspace / ".anchorpatch" / "config.json").write_text(json.dumps(config))
    return tmp_workspace
