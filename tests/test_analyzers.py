"""
Tests for the analyzer variants and the shared analyzer contract.
"""

import pytest

from review_bot.analyzers import (
    ANALYZER_REGISTRY,
    Analyzer,
    BugAnalyzer,
    PerformanceAnalyzer,
    QualityAnalyzer,
    RuleAnalyzer,
    SecurityAnalyzer,
    build_analyzers,
    matches_pattern,
)
from review_bot.models import Severity
from review_bot.observability.errors import ErrorTracker


def _types(issues):
    return [issue.type for issue in issues]


class TestAnalyzerContract:
    """Behavior shared by every analyzer."""

    @pytest.mark.parametrize("analyzer_cls", list(ANALYZER_REGISTRY.values()))
    def test_satisfies_protocol(self, settings, analyzer_cls):
        analyzer = analyzer_cls(settings)
        assert isinstance(analyzer, Analyzer)
        assert analyzer.get_name() in ANALYZER_REGISTRY

    @pytest.mark.parametrize("analyzer_cls", list(ANALYZER_REGISTRY.values()))
    def test_empty_input(self, settings, context, analyzer_cls):
        analyzer = analyzer_cls(settings)
        assert analyzer.analyze([], context) == []
        assert analyzer.get_issues() == []

    @pytest.mark.parametrize("path,expected", [
        ("src/app.js", True),
        ("node_modules/lodash/index.js", False),
        ("dist/bundle.js", False),
        ("static/app.min.js", False),
        ("./vendor/lib.py", False),
    ])
    def test_ignored_files(self, settings, path, expected):
        analyzer = SecurityAnalyzer(settings)
        assert analyzer.should_analyze_file(path, size=10) is expected

    def test_size_limit(self, make_settings):
        analyzer = SecurityAnalyzer(make_settings(analysis={"max_file_size": 100}))
        assert analyzer.should_analyze_file("a.py", size=100)
        assert not analyzer.should_analyze_file("a.py", size=101)

    def test_included_files(self, make_settings):
        analyzer = SecurityAnalyzer(make_settings(analysis={"included_files": ["src/**"]}))
        assert analyzer.should_analyze_file("src/a.py", size=1)
        assert not analyzer.should_analyze_file("lib/a.py", size=1)

    def test_languages_limit_selection(self, make_settings, context, make_file, secret_source):
        analyzer = SecurityAnalyzer(make_settings(analysis={"languages": ["python"]}))

        assert analyzer.should_analyze_file("src/a.py", size=1)
        assert not analyzer.should_analyze_file("src/a.js", size=1)
        assert analyzer.should_analyze_file("Dockerfile", size=1)
        assert analyzer.analyze([make_file("a.js", secret_source)], context) == []

    def test_build_analyzers_in_configured_order(self, make_settings):
        analyzers = build_analyzers(make_settings(analysis={"enabled_analyzers": ["bugs", "security"]}))
        assert [a.get_name() for a in analyzers] == ["bugs", "security"]

    def test_failing_file_is_isolated(self, settings, context, make_file):
        class FlakyAnalyzer(RuleAnalyzer):
            name = "flaky"

            def analyze_file(self, file, context):
                if file.path == "bad.py":
                    raise RuntimeError("boom")
                return [self.create_issue(file, 1, "seen", Severity.LOW, "Seen", "seen")]

        tracker = ErrorTracker(settings)
        analyzer = FlakyAnalyzer(settings, tracker)
        issues = analyzer.analyze(
            [make_file("bad.py", "x"), make_file("good.py", "y")], context,
        )

        assert [i.file for i in issues] == ["good.py"]
        summary = tracker.get_error_summary()
        assert summary["total_errors"] == 1
        assert summary["skipped_files"] == ["bad.py"]
        assert summary["severity_counts"] == {"warning": 1}

    def test_issue_ids_restart_each_run(self, settings, context, make_file, secret_source):
        analyzer = SecurityAnalyzer(settings)
        first = analyzer.analyze([make_file("a.js", secret_source)], context)
        second = analyzer.analyze([make_file("a.js", secret_source)], context)
        assert [i.id for i in first] == [i.id for i in second]
        assert first[0].id == "security-1"


def test_matches_pattern():
    assert matches_pattern("build/out/x.js", "build/**")
    assert matches_pattern("deep/dir/lib.min.js", "*.min.js")
    assert not matches_pattern("src/build.js", "build/**")


class TestSecurityAnalyzer:

    def test_password_and_eval(self, settings, context, make_file, secret_source):
        issues = SecurityAnalyzer(settings).analyze(
            [make_file("integration_test.js", secret_source)], context,
        )

        by_type = {issue.type: issue for issue in issues}
        assert by_type["hardcoded-secret"].severity == Severity.CRITICAL
        assert by_type["hardcoded-secret"].line == 1
        assert by_type["unsafe-eval"].severity == Severity.HIGH
        assert by_type["unsafe-eval"].line == 2
        assert all(issue.analyzer == "security" for issue in issues)
        assert by_type["unsafe-eval"].snippet

    def test_secret_scanning_can_be_disabled(self, make_settings, context, make_file, secret_source):
        analyzer = SecurityAnalyzer(make_settings(security={"enable_secret_scanning": False}))
        issues = analyzer.analyze([make_file("a.js", secret_source)], context)
        assert "hardcoded-secret" not in _types(issues)
        assert "unsafe-eval" in _types(issues)

    def test_literal_eval_is_not_flagged(self, settings, context, make_file):
        issues = SecurityAnalyzer(settings).analyze(
            [make_file("a.py", "value = ast.literal_eval(text)\n")], context,
        )
        assert "unsafe-eval" not in _types(issues)

    def test_sql_concatenation(self, settings, context, make_file):
        source = 'const q = "SELECT * FROM users WHERE id = " + userId;\n'
        issues = SecurityAnalyzer(settings).analyze([make_file("db.js", source)], context)
        assert "sql-injection" in _types(issues)

    def test_custom_rules(self, make_settings, context, make_file):
        settings = make_settings(security={"custom_rules": [
            {"type": "no-print", "pattern": r"\bprint\(", "severity": "low"},
            {"type": "broken", "pattern": "("},
        ]})
        issues = SecurityAnalyzer(settings).analyze([make_file("a.py", "print(1)\n")], context)

        custom = [i for i in issues if i.type == "no-print"]
        assert len(custom) == 1
        assert custom[0].severity == Severity.LOW
        assert custom[0].title == "no-print"


class TestQualityAnalyzer:

    def test_high_complexity_function(self, make_settings, context, make_file):
        source = (
            "function busy(a, b, c) {\n"
            "  if (a && b) { return 1; }\n"
            "  if (b || c) { return 2; }\n"
            "  while (a) { a--; }\n"
            "  return a ? 1 : 2;\n"
            "}\n"
        )
        analyzer = QualityAnalyzer(make_settings(quality={"complexity_threshold": 3}))
        issues = [i for i in analyzer.analyze([make_file("busy.js", source)], context)
                  if i.type == "high-complexity"]

        assert len(issues) == 1
        assert issues[0].line == 1
        assert issues[0].severity == Severity.HIGH

    def test_moderate_complexity_is_medium(self, make_settings, context, make_file):
        source = "def f(a, b):\n    if a and b:\n        return 1\n    return 2\n"
        analyzer = QualityAnalyzer(make_settings(quality={"complexity_threshold": 2}))
        issues = [i for i in analyzer.analyze([make_file("f.py", source)], context)
                  if i.type == "high-complexity"]
        assert [i.severity for i in issues] == [Severity.MEDIUM]

    def test_duplicate_block(self, settings, context, make_file):
        source = (
            "total = compute_total(items)\n"
            "report.write(total)\n"
            "logger.info(total)\n"
            "unrelated_call()\n"
            "total = compute_total(items)\n"
            "report.write(total)\n"
            "logger.info(total)\n"
        )
        issues = QualityAnalyzer(settings).analyze([make_file("dup.py", source)], context)
        duplicates = [i for i in issues if i.type == "duplicate-code"]

        assert len(duplicates) == 1
        assert duplicates[0].line == 5

    def test_long_line_todo_and_debug(self, make_settings, context, make_file):
        source = (
            "// TODO: remove this\n"
            "console.log('debugging');\n"
            "const message = 'this line is definitely too long';\n"
        )
        analyzer = QualityAnalyzer(make_settings(quality={"max_line_length": 40}))
        issues = analyzer.analyze([make_file("a.js", source)], context)
        types = _types(issues)

        assert "todo-comment" in types
        assert "debug-statement" in types
        long_lines = [i for i in issues if i.type == "long-line"]
        assert [i.line for i in long_lines] == [3]
        assert long_lines[0].column == 41

    def test_long_file(self, make_settings, context, make_file):
        analyzer = QualityAnalyzer(make_settings(quality={"max_file_lines": 5}))
        source = "".join(f"x{n} = {n}\n" for n in range(10))
        issues = analyzer.analyze([make_file("a.py", source)], context)
        assert "long-file" in _types(issues)


class TestBugAnalyzer:

    def test_python_patterns(self, settings, context, make_file):
        source = (
            "def f(items=[]):\n"
            "    try:\n"
            "        return 1\n"
            "        print('dead')\n"
            "    except:\n"
            "        pass\n"
            "    if items == None:\n"
            "        return 0\n"
        )
        issues = BugAnalyzer(settings).analyze([make_file("f.py", source)], context)
        found = {(i.type, i.line) for i in issues}

        assert ("mutable-default-arg", 1) in found
        assert ("unreachable-code", 4) in found
        assert ("bare-except", 5) in found
        assert ("empty-catch", 5) in found
        assert ("none-comparison", 7) in found

    def test_javascript_patterns(self, settings, context, make_file):
        source = (
            "var x = 1;\n"
            "if (x == '1') {}\n"
            "if (x = 2) {}\n"
            "if (y === NaN) {}\n"
            "try { run(); } catch (e) {}\n"
        )
        issues = BugAnalyzer(settings).analyze([make_file("a.js", source)], context)
        found = {(i.type, i.line) for i in issues}

        assert ("var-usage", 1) in found
        assert ("loose-equality", 2) in found
        assert ("assignment-in-condition", 3) in found
        assert ("nan-comparison", 4) in found
        assert ("empty-catch", 5) in found

    def test_strict_equality_is_clean(self, settings, context, make_file):
        source = "const ok = a === b && c !== d;\nif (a <= b) {}\n"
        issues = BugAnalyzer(settings).analyze([make_file("a.js", source)], context)
        assert "loose-equality" not in _types(issues)
        assert "assignment-in-condition" not in _types(issues)

    def test_code_after_block_end_is_reachable(self, settings, context, make_file):
        source = (
            "function f(a) {\n"
            "  if (a) {\n"
            "    return 1;\n"
            "  }\n"
            "  return 2;\n"
            "}\n"
        )
        issues = BugAnalyzer(settings).analyze([make_file("a.js", source)], context)
        assert "unreachable-code" not in _types(issues)


class TestPerformanceAnalyzer:

    def test_nested_loop_with_query(self, settings, context, make_file):
        source = (
            "for (const user of users) {\n"
            "  for (const order of orders) {\n"
            "    db.query(order.id);\n"
            "  }\n"
            "}\n"
        )
        issues = PerformanceAnalyzer(settings).analyze([make_file("a.js", source)], context)
        found = {(i.type, i.line) for i in issues}

        assert ("nested-loop", 2) in found
        assert ("n-plus-one-query", 3) in found

    def test_python_loop_body_ends_with_dedent(self, settings, context, make_file):
        source = (
            "for item in items:\n"
            "    total += item\n"
            "session.query(Order)\n"
        )
        issues = PerformanceAnalyzer(settings).analyze([make_file("a.py", source)], context)
        assert "n-plus-one-query" not in _types(issues)

    def test_plain_lookups_in_loop_are_not_queries(self, settings, context, make_file):
        source = (
            "out = []\n"
            "for k in keys:\n"
            "    out.append(d.get(k))\n"
            "    pos = name.find('-')\n"
        )
        issues = PerformanceAnalyzer(settings).analyze([make_file("m.py", source)], context)
        assert "n-plus-one-query" not in _types(issues)

    def test_filter_inside_loop_is_a_nested_loop_only(self, settings, context, make_file):
        source = (
            "for (const group of groups) {\n"
            "  const active = group.items.filter(isActive);\n"
            "}\n"
        )
        issues = PerformanceAnalyzer(settings).analyze([make_file("a.js", source)], context)
        assert [(i.type, i.line) for i in issues] == [("nested-loop", 2)]

    @pytest.mark.parametrize("call", [
        "User.objects.get(id=user_id)",
        "session.get(Order, order_id)",
        "cursor.execute(sql, (user_id,))",
        "requests.get(url)",
    ])
    def test_database_and_network_calls_in_loop(self, settings, context, make_file, call):
        source = f"for user_id in ids:\n    row = {call}\n"
        issues = PerformanceAnalyzer(settings).analyze([make_file("m.py", source)], context)
        assert [(i.type, i.severity) for i in issues if i.type == "n-plus-one-query"] == [
            ("n-plus-one-query", Severity.HIGH),
        ]

    def test_memory_leak(self, settings, context, make_file):
        leaky = "setInterval(tick, 1000);\n"
        clean = "const id = setInterval(tick, 1000);\nclearInterval(id);\n"
        analyzer = PerformanceAnalyzer(settings)

        assert "memory-leak" in _types(analyzer.analyze([make_file("a.js", leaky)], context))
        assert "memory-leak" not in _types(analyzer.analyze([make_file("a.js", clean)], context))

    def test_blocking_io(self, settings, context, make_file):
        source = "const data = fs.readFileSync(path);\n"
        issues = PerformanceAnalyzer(settings).analyze([make_file("a.js", source)], context)
        assert "blocking-io" in _types(issues)

    def test_disabled(self, make_settings, context, make_file):
        analyzer = PerformanceAnalyzer(make_settings(performance={"enable_performance_analysis": False}))
        source = "for (;;) {\n  for (;;) {}\n}\n"
        assert analyzer.analyze([make_file("a.js", source)], context) == []
