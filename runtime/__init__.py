"""
Sandboxed execution of module render code.

Modules:
    transpiler: Best-effort TypeScript strip and default-export binding
    policy: Forbidden host-API scan
    sandbox: Self-contained iframe documents and the placeholder template
    engine: SandboxEngine mounting a page's modules under a bounded wait
    health: RenderHealthRecorder for per-site render outcomes

Usage:
    from runtime.engine import SandboxEngine

Example:
    results = await SandboxEngine().mount_page("42", modules)
    for result in results:
        html = result.document.html if result.ok else result.placeholder_html
"""
