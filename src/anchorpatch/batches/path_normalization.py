"""Forward-slash every path the main process sends to the renderer.

The renderer splits paths on ``/``. Rather than patch each of those call
sites, two helpers are injected into the main bundle and the IPC payloads
that carry paths are routed through them. The ``project-file-map:load``
response is a nested object literal, so it is found with a balanced scan
and wrapped whole.
"""
from __future__ import annotations

from anchorpatch.batches.common import contains_checks, replace_once
from anchorpatch.locator import Locator
from anchorpatch.spec import PatchBatch, PatchSpec
from anchorpatch.transform import Insert, Wrap
from anchorpatch.verification import Check

NAME = "path-normalization"
TARGET = "main"

HELPERS = (
    r'function __normPath(p){return typeof p==="string"?p.replace(/\\/g,"/"):p}'
    r"function __normFileMap(fm){if(!fm)return fm;"
    r"if(fm.files){const nf=fm.files.map(([k,v])=>[__normPath(k),v]);fm.files=nf}"
    r"if(fm.agentActivity){const na=fm.agentActivity.map(([k,v])=>"
    r"[k,v.map(a=>({...a,filePath:__normPath(a.filePath)}))]);fm.agentActivity=na}"
    r"if(fm.activeFiles){const af=fm.activeFiles.map(([k,v])=>[__normPath(k),v]);fm.activeFiles=af}"
    r"if(fm.projectPath)fm.projectPath=__normPath(fm.projectPath);return fm}"
)

FILE_ACTIVITY = 'this.safeSend("project:file-activity",{projectId:n,agentId:s.agentId,filePath:m,'
LOAD_HANDLER = '"project-file-map:load",async(t,s,n)=>{'
GET_RESPONSE = "const n=e.getSerializableFileMap(s);return n?{success:!0,fileMap:n}"


def batch() -> PatchBatch:
    specs = [
        PatchSpec(
            id="helpers",
            target=TARGET,
            locator=Locator.literal('const oe=["'),
            transform=Insert(HELPERS, where="before"),
            label="[1/4] Path normalizer helpers",
        ),
        replace_once(
            "file-activity", TARGET, FILE_ACTIVITY,
            FILE_ACTIVITY.replace("filePath:m,", "filePath:__normPath(m),"),
            label="[2/4] file-activity filePath",
        ),
        PatchSpec(
            id="file-map-load",
            target=TARGET,
            locator=Locator.balanced("return{success:!0,fileMap:{", start_hint=LOAD_HANDLER),
            transform=Wrap("__normFileMap(", ")"),
            applied_when=Check.contains(
                "return{success:!0,fileMap:__normFileMap({", name="load response wrapped"
            ),
            label="[3/4] project-file-map:load response",
        ),
        replace_once(
            "file-map-get", TARGET, GET_RESPONSE,
            GET_RESPONSE.replace("fileMap:n}", "fileMap:__normFileMap(n)}"),
            label="[4/4] project-file-map:get response",
        ),
    ]
    checks = contains_checks(TARGET, [
        ("__normPath helper", "function __normPath(p)"),
        ("__normFileMap helper", "function __normFileMap(fm)"),
        ("file-activity normalization", "filePath:__normPath(m)"),
        ("file-map:load normalization", "fileMap:__normFileMap({"),
        ("file-map:get normalization", "fileMap:__normFileMap(n)"),
    ])
    return PatchBatch(
        name=NAME,
        specs=specs,
        checks=checks,
        description="Normalize backslashes in paths sent over IPC",
    )
