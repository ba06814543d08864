"""
Security analyzer module.

Scans changed files line by line for:
- Hardcoded secrets (passwords, API keys, tokens, private keys)
- Unsafe dynamic evaluation (eval, new Function, exec)
- Command and SQL injection patterns
- XSS sinks, weak hashing, plaintext HTTP endpoints
- User-defined rules from ``security.custom_rules``
"""

import logging
import re
from typing import List

from review_bot.analyzers.base import JS_LANGUAGES, PYTHON, LineRule, RuleAnalyzer
from review_bot.models import AnalysisContext, AnalyzableFile, Issue, Severity

logger = logging.getLogger(__name__)

SECRET_RULES = [
    LineRule(
        type="hardcoded-secret",
        pattern=re.compile(
            r"""\b[\w.]*(?:password|passwd|pwd|secret|api[_-]?key|apikey|auth[_-]?token|access[_-]?token|token|private[_-]?key|client[_-]?secret)\w*["']?\s*[:=]\s*["'][^"'\s]{2,}["']""",
            re.IGNORECASE,
        ),
        severity=Severity.CRITICAL,
        title="Hardcoded secret",
        message="A credential appears to be assigned a literal value.",
        suggestion="Load secrets from environment variables or a secret manager.",
    ),
    LineRule(
        type="hardcoded-secret",
        pattern=re.compile(r"\b(?:AKIA|ASIA)[0-9A-Z]{16}\b"),
        severity=Severity.CRITICAL,
        title="AWS access key",
        message="An AWS access key ID is embedded in the source.",
        suggestion="Revoke the key and load credentials from the environment.",
    ),
    LineRule(
        type="hardcoded-secret",
        pattern=re.compile(r"-----BEGIN (?:RSA |EC |DSA |OPENSSH |PGP )?PRIVATE KEY"),
        severity=Severity.CRITICAL,
        title="Private key",
        message="A private key block is committed to the repository.",
        suggestion="Remove the key from history and rotate it.",
    ),
]

CODE_RULES = [
    LineRule(
        type="unsafe-eval",
        pattern=re.compile(r"(?<![\w.])eval\s*\("),
        severity=Severity.HIGH,
        title="Use of eval()",
        message="eval() executes arbitrary code and is a common injection vector.",
        suggestion="Parse data explicitly (e.g. JSON.parse / ast.literal_eval) instead of evaluating it.",
    ),
    LineRule(
        type="unsafe-eval",
        pattern=re.compile(r"\bnew\s+Function\s*\("),
        severity=Severity.HIGH,
        title="Dynamic function construction",
        message="new Function() compiles code from strings at runtime.",
        suggestion="Use a regular function or a lookup table of handlers.",
        languages=JS_LANGUAGES,
    ),
    LineRule(
        type="unsafe-eval",
        pattern=re.compile(r"\bset(?:Timeout|Interval)\s*\(\s*[\"'`]"),
        severity=Severity.MEDIUM,
        title="String passed to timer",
        message="Passing a string to setTimeout/setInterval evaluates it as code.",
        suggestion="Pass a function instead of a string.",
        languages=JS_LANGUAGES,
    ),
    LineRule(
        type="unsafe-eval",
        pattern=re.compile(r"(?<![\w.])exec\s*\("),
        severity=Severity.HIGH,
        title="Use of exec()",
        message="exec() runs dynamically built code.",
        suggestion="Avoid executing generated code.",
        languages=PYTHON,
    ),
    LineRule(
        type="command-injection",
        pattern=re.compile(
            r"\b(?:child_process\.)?exec(?:Sync)?\s*\(\s*[`\"'][^`\"']*(?:\$\{|[\"']\s*\+)"
            r"|\bos\.system\s*\(|\bsubprocess\.\w+\([^)]*shell\s*=\s*True"
        ),
        severity=Severity.HIGH,
        title="Possible command injection",
        message="A shell command is built from dynamic input.",
        suggestion="Pass arguments as a list and avoid invoking a shell.",
    ),
    LineRule(
        type="sql-injection",
        pattern=re.compile(
            r"""(?:SELECT|INSERT|UPDATE|DELETE)\b[^;\n]*["'`]\s*\+\s*\w"""
            r"""|(?:SELECT|INSERT|UPDATE|DELETE)\b[^;\n]*\$\{"""
            r"""|\.execute\(\s*f["']""",
            re.IGNORECASE,
        ),
        severity=Severity.HIGH,
        title="Possible SQL injection",
        message="A SQL statement appears to be built by string concatenation or interpolation.",
        suggestion="Use parameterized queries.",
    ),
    LineRule(
        type="xss",
        pattern=re.compile(r"\.innerHTML\s*=|dangerouslySetInnerHTML|document\.write\s*\("),
        severity=Severity.MEDIUM,
        title="Possible XSS sink",
        message="HTML is written directly into the document.",
        suggestion="Use textContent or sanitize the HTML before inserting it.",
        languages=JS_LANGUAGES | frozenset({"html"}),
    ),
    LineRule(
        type="weak-crypto",
        pattern=re.compile(
            r"""createHash\(\s*["'](?:md5|sha1)["']|\bhashlib\.(?:md5|sha1)\(""",
            re.IGNORECASE,
        ),
        severity=Severity.MEDIUM,
        title="Weak hash algorithm",
        message="MD5 and SHA-1 are not collision resistant.",
        suggestion="Use SHA-256 or a dedicated password hashing function.",
    ),
    LineRule(
        type="insecure-http",
        pattern=re.compile(r"""["'`]http://(?!localhost|127\.0\.0\.1|0\.0\.0\.0)[^"'`\s]+"""),
        severity=Severity.LOW,
        title="Plaintext HTTP URL",
        message="Traffic to this endpoint is not encrypted.",
        suggestion="Use https:// where the endpoint supports it.",
    ),
]


class SecurityAnalyzer(RuleAnalyzer):
    """
    Detects common security vulnerabilities in changed files.

    Rules are regular expressions applied per line. Secret rules are
    controlled by ``security.enable_secret_scanning``.
    """

    name = "security"

    def __init__(self, settings, error_tracker=None):
        super().__init__(settings, error_tracker)
        self.rules: List[LineRule] = []
        if settings.security.enable_secret_scanning:
            self.rules.extend(SECRET_RULES)
        self.rules.extend(CODE_RULES)
        self.rules.extend(self._compile_custom_rules())

    def _compile_custom_rules(self) -> List[LineRule]:
        rules = []
        for custom in self.settings.security.custom_rules:
            try:
                pattern = re.compile(custom.pattern)
            except re.error as e:
                logger.warning(
                    f"Ignoring custom rule with invalid pattern: {e}",
                    extra={"rule_type": custom.type},
                )
                continue

            rules.append(LineRule(
                type=custom.type,
                pattern=pattern,
                severity=custom.severity,
                title=custom.title or custom.type,
                message=custom.message or f"Matched custom rule '{custom.type}'.",
                suggestion=custom.suggestion,
            ))
        return rules

    def analyze_file(self, file: AnalyzableFile, context: AnalysisContext) -> List[Issue]:
        return self.apply_line_rules(file, self.rules)
