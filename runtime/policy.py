"""
Static scan of module code for host APIs a sandboxed module may not touch.

The scan runs at deploy time and again before mount. It is a line-oriented
pattern match, not a parser: string tricks evade it, and it does not
replace the iframe sandbox.
"""

import re
import logging
from typing import List, Optional, Tuple

from core.config import settings
from core.exceptions import UnsafeCodeError
from schemas.runtime import CodeFinding

logger = logging.getLogger(__name__)

# (rule, regex, message)
FORBIDDEN_PATTERNS: Tuple[Tuple[str, str, str], ...] = (
    ("cookie-access", r"\bdocument\s*\.\s*cookie\b", "Modules cannot read or write host cookies"),
    ("document-domain", r"\bdocument\s*\.\s*domain\b", "Modules cannot change document.domain"),
    ("local-storage", r"\blocalStorage\b", "Modules cannot use host localStorage"),
    ("session-storage", r"\bsessionStorage\b", "Modules cannot use host sessionStorage"),
    ("indexed-db", r"\bindexedDB\b", "Modules cannot use IndexedDB"),
    ("top-window", r"\bwindow\s*\.\s*top\b", "Modules cannot reach the top window"),
    ("top-navigation", r"(?<![\w.$])top\s*\.\s*location\b", "Modules cannot navigate the top window"),
    ("parent-window", r"\bwindow\s*\.\s*parent\b(?!\s*\.\s*postMessage\b)", "Modules may only talk to the host through the bridge"),
    ("parent-access", r"(?<![\w.$])parent\s*\.\s*(?!postMessage\b)[A-Za-z_$]", "Modules may only talk to the host through the bridge"),
    ("eval", r"\beval\s*\(", "eval is not allowed"),
    ("function-constructor", r"\bnew\s+Function\s*\(", "The Function constructor is not allowed"),
    ("dynamic-import", r"\bimport\s*\(", "Dynamic import is not allowed"),
)

_COMPILED = [(rule, re.compile(pattern), message) for rule, pattern, message in FORBIDDEN_PATTERNS]
_LINE_COMMENT = re.compile(r"^\s*//")


def scan_code(code: str) -> List[CodeFinding]:
    """Return every forbidden pattern found in ``code``, in line order."""
    findings: List[CodeFinding] = []
    if not code:
        return findings

    for line_no, line in enumerate(code.splitlines(), start=1):
        if _LINE_COMMENT.match(line):
            continue
        for rule, regex, message in _COMPILED:
            match = regex.search(line)
            if match:
                findings.append(CodeFinding(
                    rule=rule,
                    pattern=match.group(0),
                    line=line_no,
                    message=message,
                ))
    return findings


def enforce_policy(code: str, module_id: str = "", reject: Optional[bool] = None) -> List[CodeFinding]:
    """
    Scan ``code`` and raise when rejection is enabled.

    Returns the findings when rejection is disabled so callers can surface
    them as warnings.

    Raises:
        UnsafeCodeError: If any pattern matches and rejection is enabled
    """
    if reject is None:
        reject = settings.SANDBOX_REJECT_UNSAFE_CODE

    findings = scan_code(code)
    if findings and reject:
        raise UnsafeCodeError(
            "Module code references host APIs that sandboxed modules may not use",
            context={
                "module_id": module_id,
                "findings": [f"{f.rule} (line {f.line})" for f in findings],
            },
        )
    if findings:
        logger.warning(f"Module {module_id} uses {len(findings)} forbidden host API(s); rejection is disabled")
    return findings
