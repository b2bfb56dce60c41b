#!/usr/bin/env python3
"""Gate: no secrets or message bodies in logs, no print() in runtime code.

Fails if, anywhere under src/:
- print() is called
- a logger call receives a credential or a message body
  (api_key, token, password, secret, authorization, .message / ["message"])
  outside of safe_log_context/redact_value/redact_string

Usage:
    python scripts/gate_security_pii.py
"""

import ast
import sys
from pathlib import Path

SENSITIVE_NAMES = frozenset(
    {
        "api_key",
        "token",
        "password",
        "secret",
        "authorization",
        "server_token",
        "upstream_api_key",
    }
)

# Attribute/subscript names carrying upstream message bodies
BODY_NAMES = frozenset({"message", "text", "body"})

REDACTION_CALLS = frozenset({"safe_log_context", "redact_value", "redact_string"})

LOGGER_METHODS = frozenset({"debug", "info", "warning", "error", "critical", "exception"})


def _call_name(node: ast.Call) -> str | None:
    if isinstance(node.func, ast.Name):
        return node.func.id
    if isinstance(node.func, ast.Attribute):
        return node.func.attr
    return None


def _is_logger_call(node: ast.Call) -> bool:
    func = node.func
    return (
        isinstance(func, ast.Attribute)
        and func.attr in LOGGER_METHODS
        and isinstance(func.value, ast.Name)
        and func.value.id == "logger"
    )


def _sensitive_refs(node: ast.AST) -> list[str]:
    """Sensitive names referenced by node, not descending into redaction calls."""
    found: list[str] = []
    stack = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, ast.Call) and _call_name(current) in REDACTION_CALLS:
            continue
        if isinstance(current, ast.Name) and current.id.lower() in SENSITIVE_NAMES:
            found.append(current.id)
        elif isinstance(current, ast.Attribute):
            if current.attr.lower() in SENSITIVE_NAMES | BODY_NAMES:
                found.append(current.attr)
        elif isinstance(current, ast.Subscript):
            key = current.slice
            if isinstance(key, ast.Constant) and str(key.value).lower() in SENSITIVE_NAMES | BODY_NAMES:
                found.append(str(key.value))
        stack.extend(ast.iter_child_nodes(current))
    return found


def check_file(filepath: Path) -> list[str]:
    """Check a single file for violations. Returns list of error messages."""
    try:
        tree = ast.parse(filepath.read_text(encoding="utf-8"), filename=str(filepath))
    except (UnicodeDecodeError, SyntaxError) as e:
        return [f"{filepath}: cannot parse ({type(e).__name__})"]

    errors: list[str] = []
    for node in ast.walk(tree):
        if not isinstance(node, ast.Call):
            continue
        if isinstance(node.func, ast.Name) and node.func.id == "print":
            errors.append(f"{filepath}:{node.lineno}: print() not allowed in runtime code")
        elif _is_logger_call(node):
            refs = _sensitive_refs(node)
            if refs:
                errors.append(
                    f"{filepath}:{node.lineno}: logger call references {sorted(set(refs))} "
                    "without redaction (safe_log_context/redact_value)"
                )
    return errors


def main() -> int:
    """Run gate check on src directory."""
    src_dir = Path("src")

    if not src_dir.exists():
        src_dir = Path(__file__).parent.parent / "src"

    if not src_dir.exists():
        sys.stderr.write("Error: src directory not found\n")
        return 1

    all_errors: list[str] = []
    for pyfile in sorted(src_dir.rglob("*.py")):
        all_errors.extend(check_file(pyfile))

    if all_errors:
        sys.stderr.write("Security/PII gate FAILED:\n")
        for err in all_errors:
            sys.stderr.write(f"  {err}\n")
        return 1

    sys.stdout.write("Security/PII gate PASSED\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
