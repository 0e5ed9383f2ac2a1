"""
Best-effort TypeScript strip for module render code.

This is a regex transform over a constrained subset, not a compiler.
Supported:
- ``import`` statements, including ``import type`` (dropped; the runtime
  provides React as a global)
- ``interface X { ... }`` with one level of nested braces
- ``type X = ...;`` aliases
- annotations on function parameters, ``const``/``let``/``var``
  declarations and function return types, where the type is an
  identifier, a dotted name, a generic over those, an array of those, or
  a union of those
- ``as T`` assertions and ``as const``
- generic parameters on function declarations and generic arguments on calls
- non-null assertions before ``.``, ``[`` or ``)``
- ``export default`` (function, class, anonymous function or expression),
  rewritten to a local ``__moduleDefault`` binding; other ``export``
  keywords are dropped

Rejected with TranspileError: ``enum`` declarations, ``namespace`` blocks,
decorators, and code without exactly one default export. Anything else
outside the subset passes through unchanged and fails in the browser,
where the sandbox contains it.
"""

import re
import logging
from typing import List, Tuple

from core.exceptions import TranspileError
from schemas.runtime import TranspileResult

logger = logging.getLogger(__name__)

DEFAULT_BINDING = "__moduleDefault"

# Provided as globals inside the sandbox
RUNTIME_PACKAGES = ("react", "react-dom", "react/jsx-runtime")

_TYPE_ATOM = r"(?:[A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*)*(?:<[^<>()]*(?:<[^<>()]*>[^<>()]*)*>)?(?:\[\])*|'[^']*'|\"[^\"]*\")"
_TYPE = rf"{_TYPE_ATOM}(?:\s*\|\s*{_TYPE_ATOM})*"

_IMPORT = re.compile(
    r"^[ \t]*import\s+(?:type\s+)?(?:[\w*{}\s,$]+?\s+from\s+)?['\"]([^'\"]+)['\"][ \t]*;?[ \t]*$",
    re.MULTILINE,
)
_INTERFACE = re.compile(
    r"^[ \t]*(?:export\s+)?interface\s+[\w$]+(?:\s*<[^>]*>)?(?:\s+extends\s+[\w$.,\s<>]+?)?\s*\{(?:[^{}]|\{[^{}]*\})*\}[ \t]*;?",
    re.MULTILINE,
)
_TYPE_ALIAS = re.compile(
    r"^[ \t]*(?:export\s+)?type\s+[\w$]+(?:\s*<[^>]*>)?\s*=\s*(?:\{(?:[^{}]|\{[^{}]*\})*\}[^;\n]*;?|[^;{]+;)",
    re.MULTILINE,
)
_UNSUPPORTED = (
    (re.compile(r"^[ \t]*(?:export\s+)?(?:const\s+|declare\s+)?enum\s+[\w$]+", re.MULTILINE), "enum declarations are not supported"),
    (re.compile(r"^[ \t]*(?:export\s+)?(?:declare\s+)?namespace\s+[\w$]+", re.MULTILINE), "namespace blocks are not supported"),
    (re.compile(r"^[ \t]*@[A-Za-z_$][\w$.]*(?:\([^()\n]*\))?[ \t]*\n[ \t]*(?:export\s+|class\s)", re.MULTILINE), "decorators are not supported"),
)

_DEFAULT_NAMED_FUNCTION = re.compile(r"\bexport\s+default\s+((?:async\s+)?function\s*\*?\s*([A-Za-z_$][\w$]*)\s*[<(])")
_DEFAULT_NAMED_CLASS = re.compile(r"\bexport\s+default\s+(class\s+([A-Za-z_$][\w$]*)\b)")
_DEFAULT_IDENTIFIER = re.compile(r"\bexport\s+default\s+([A-Za-z_$][\w$]*)\s*;?[ \t]*$", re.MULTILINE)
_DEFAULT_ANY = re.compile(r"\bexport\s+default\s+")
_EXPORT_LIST = re.compile(r"^[ \t]*export\s*\{[^}]*\}(?:\s*from\s*['\"][^'\"]+['\"])?\s*;?", re.MULTILINE)
_EXPORT_KEYWORD = re.compile(r"\bexport\s+(?=(?:async\s+)?(?:const|let|var|function|class)\b)")

_RETURN_TYPE = re.compile(rf"\)\s*:\s*{_TYPE}\s*(?=\{{|=>)")
_PARAM_LIST = re.compile(r"\(([^()]*)\)(?=\s*(?:=>|\{))")
_PARAM_ANNOTATION = re.compile(rf"^(\s*(?:\.\.\.)?[\w$]+|\s*\{{[^{{}}]*\}}|\s*\[[^\[\]]*\])\??\s*:\s*{_TYPE}(\s*=.*)?\s*$", re.DOTALL)
_VARIABLE_ANNOTATION = re.compile(rf"\b(const|let|var)\s+([A-Za-z_$][\w$]*)\s*:\s*{_TYPE}(?=\s*[=;])")
_GENERIC_DECLARATION = re.compile(r"(\bfunction\s*\*?\s*[\w$]*\s*)<[^<>()]*>(?=\s*\()")
_GENERIC_CALL = re.compile(rf"(\b[A-Za-z_$][\w$.]*)<\s*{_TYPE}(?:\s*,\s*{_TYPE})*\s*>(?=\()")
_AS_ASSERTION = re.compile(rf"(?<=[\w$)\]])\s+as\s+(?:const\b|{_TYPE})(?=\s*[);,\]}}])")
_NON_NULL = re.compile(r"([\w$)\]])!(?=[.\[)])")
_BLANK_RUNS = re.compile(r"\n[ \t]*\n(?:[ \t]*\n)+")

_CONTROL_KEYWORDS = ("if", "while", "for", "switch", "return", "typeof", "await")


def _split_params(params: str) -> List[str]:
    parts, depth, current = [], 0, []
    for ch in params:
        if ch in "{[<(":
            depth += 1
        elif ch in "}]>)":
            depth -= 1
        if ch == "," and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return parts


def _strip_param_list(match: "re.Match", code: str) -> str:
    preceding = code[:match.start()].rstrip()
    if any(re.search(rf"\b{kw}$", preceding) for kw in _CONTROL_KEYWORDS):
        return match.group(0)

    params = match.group(1)
    if ":" not in params:
        return match.group(0)

    stripped = []
    for part in _split_params(params):
        if "?" in part.replace("?:", ""):
            stripped.append(part)
            continue
        annotated = _PARAM_ANNOTATION.match(part)
        if annotated:
            stripped.append(annotated.group(1) + (annotated.group(2) or ""))
        else:
            stripped.append(part)
    return "(" + ",".join(stripped) + ")"


def _rewrite_default_export(code: str, filename: str) -> Tuple[str, str]:
    count = len(_DEFAULT_ANY.findall(code))
    if count == 0:
        raise TranspileError(
            "Module must have a default export",
            context={"filename": filename},
        )
    if count > 1:
        raise TranspileError(
            "Module has more than one default export",
            context={"filename": filename, "default_exports": count},
        )

    match = _DEFAULT_NAMED_FUNCTION.search(code) or _DEFAULT_NAMED_CLASS.search(code)
    if match:
        name = match.group(2)
        code = code[:match.start()] + match.group(1) + code[match.end():]
        return code.rstrip() + f"\n\nconst {DEFAULT_BINDING} = {name};\n", name

    match = _DEFAULT_IDENTIFIER.search(code)
    if match:
        name = match.group(1)
        code = code[:match.start()] + f"const {DEFAULT_BINDING} = {name};" + code[match.end():]
        return code, name

    return _DEFAULT_ANY.sub(f"const {DEFAULT_BINDING} = ", code, count=1), DEFAULT_BINDING


def transpile(code: str, filename: str = "module.tsx") -> TranspileResult:
    """
    Strip TypeScript syntax and bind the default export.

    Raises:
        TranspileError: If the code is empty, uses an unsupported construct,
            or does not have exactly one default export
    """
    if not code or not code.strip():
        raise TranspileError("Module render code is empty", context={"filename": filename})

    for pattern, message in _UNSUPPORTED:
        match = pattern.search(code)
        if match:
            line = code.count("\n", 0, match.start()) + 1
            raise TranspileError(message, context={"filename": filename, "line": line})

    warnings: List[str] = []
    result = code

    for specifier in _IMPORT.findall(result):
        if specifier not in RUNTIME_PACKAGES and not specifier.startswith("."):
            warnings.append(f"External import: {specifier} - not available in the sandbox runtime")
        elif specifier.startswith("."):
            warnings.append(f"Relative import: {specifier} - single-file modules cannot import siblings")
    result = _IMPORT.sub("", result)

    result = _INTERFACE.sub("", result)
    result = _TYPE_ALIAS.sub("", result)

    result, default_export = _rewrite_default_export(result, filename)
    result = _EXPORT_LIST.sub("", result)
    result = _EXPORT_KEYWORD.sub("", result)

    result = _RETURN_TYPE.sub(") ", result)
    result = _PARAM_LIST.sub(lambda m: _strip_param_list(m, m.string), result)
    result = _VARIABLE_ANNOTATION.sub(r"\1 \2", result)
    result = _GENERIC_DECLARATION.sub(r"\1", result)
    result = _GENERIC_CALL.sub(r"\1", result)
    result = _AS_ASSERTION.sub("", result)
    result = _NON_NULL.sub(r"\1", result)

    result = _BLANK_RUNS.sub("\n\n", result).strip() + "\n"

    if warnings:
        logger.debug(f"Transpiled {filename} with {len(warnings)} warning(s)")
    return TranspileResult(code=result, default_export=default_export, warnings=warnings)
