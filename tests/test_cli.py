from __future__ import annotations

import argparse
import contextlib
import io
import json
import tempfile
import unittest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))
import api_framework_core as api_framework  # noqa: E402
from api_framework_core import core as api_core  # noqa: E402


def make_records(*, content: str = "interface Callback {}\n", extra_methods=(), extra_records=(), final=None) -> dict:
    records = [
        {"record": "source", "path": "src/demo/Callback.java", "content": content},
        {"record": "source", "path": "src/module-info.java", "content": "module demo {}\n"},
        {
            "record": "type",
            "qualified_name": "demo.Callback",
            "kind": "interface",
            "modifiers": ["public"],
            "annotations": ["Provides"],
            "source": "src/demo/Callback.java",
        },
        {"record": "method", "owner": "demo.Callback", "name": "bar", "modifiers": ["public", "abstract"],
         "return_type": "void"},
        {
            "record": "type",
            "qualified_name": "demo.Window",
            "kind": "interface",
            "modifiers": ["public"],
            "annotations": ["Service", "Provided"],
            "source": "src/demo/Callback.java",
            "doc_comment": " Window service.",
        },
        {"record": "method", "owner": "demo.Window", "name": "blur", "modifiers": ["public", "abstract"],
         "return_type": "void", "extension": "BLUR"},
    ]
    for name in extra_methods:
        records.append(
            {"record": "method", "owner": "demo.Callback", "name": name, "modifiers": ["public", "abstract"],
             "return_type": "void"}
        )
    records.extend(extra_records)
    document: dict = {"records": records}
    if final is not None:
        document["final"] = final
    return document


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.repo_root = Path(self.tmp.name)
        self.config_path = self.repo_root / "api" / "config.json"
        self.output_dir = self.repo_root / "build" / "api"
        self.facade_path = self.repo_root / "generated" / "Facade.java"
        self.write_json(
            self.config_path,
            {
                "component": "demo",
                "snapshot": {"output_dir": "build/api"},
                "facade": {"output_path": "generated/Facade.java"},
            },
        )

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def write_json(self, path: Path, payload: dict) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        return path

    def records(self, name: str, **kwargs) -> str:
        return str(self.write_json(self.repo_root / "records" / f"{name}.json", make_records(**kwargs)))

    def run_main(self, *argv: str) -> tuple[int, str, str]:
        stdout = io.StringIO()
        stderr = io.StringIO()
        with contextlib.redirect_stdout(stdout), contextlib.redirect_stderr(stderr):
            code = api_framework.main(list(argv))
        return code, stdout.getvalue(), stderr.getvalue()

    def build(self, *records: str, extra=()) -> tuple[int, str, str]:
        argv = ["build", "--repo-root", str(self.repo_root), "--config", str(self.config_path)]
        for path in records:
            argv.extend(["--records", path])
        return self.run_main(*argv, *extra)

    def output(self, name: str) -> str:
        return (self.output_dir / name).read_text(encoding="utf-8")

    def test_first_publication_writes_outputs(self) -> None:
        code, stdout, _ = self.build(self.records("v1"))

        self.assertEqual(code, 0)
        self.assertEqual(self.output("version.txt"), "1.0.0")
        self.assertIn("* demo - first publication ❗", self.output("message.txt"))
        self.assertIn("Compatibility status of API changes: MAJOR", self.output("message.txt"))
        self.assertEqual(self.output("legacy-sources.txt"), "src/demo/Callback.java\n")
        self.assertTrue((self.output_dir / "api-blob").exists())
        self.assertIn("* demo - first publication !!!", stdout)
        self.assertTrue(stdout.isascii())

        facade = self.facade_path.read_text(encoding="utf-8")
        self.assertIn("public static Window getWindow()", facade)
        self.assertIn('KNOWN_SERVICES = {"demo.Window"};', facade)
        self.assertIn("KNOWN_EXTENSIONS.put(Extensions.BLUR, new Class[] {demo.Window.class});", facade)

    def test_successive_builds_classify_against_previous_blob(self) -> None:
        self.assertEqual(self.build(self.records("v1"))[0], 0)

        self.assertEqual(self.build(self.records("same"))[0], 0)
        self.assertEqual(self.output("version.txt"), "1.0.0")
        self.assertEqual(self.output("message.txt"), "")

        self.assertEqual(self.build(self.records("comment", content="// docs\ninterface Callback {}\n"))[0], 0)
        self.assertEqual(self.output("version.txt"), "1.0.1")
        self.assertIn("Compatibility status of API changes: PATCH", self.output("message.txt"))

        code, stdout, _ = self.build(
            self.records("baz", content="// docs\ninterface Callback {}\n", extra_methods=["baz"])
        )
        self.assertEqual(code, 0)
        self.assertEqual(self.output("version.txt"), "2.0.0")
        message = self.output("message.txt")
        self.assertIn("  + baz() ❗", message)
        self.assertIn("❗ There are breaking changes which require extra attention.", message)
        self.assertIn("Version increment: 1.0.1 -> 2.0.0", message)
        self.assertIn("!!! There are breaking changes", stdout)

    def test_line_ending_change_keeps_version(self) -> None:
        self.assertEqual(self.build(self.records("v1"))[0], 0)
        self.assertEqual(self.build(self.records("crlf", content="interface Callback {}\r\n"))[0], 0)
        self.assertEqual(self.output("version.txt"), "1.0.0")

    def test_version_override_skips_checks(self) -> None:
        code, stdout, _ = self.build(self.records("v1"), extra=["--version-override", "5.1.0"])
        self.assertEqual(code, 0)
        self.assertEqual(self.output("version.txt"), "5.1.0")
        self.assertEqual(self.output("message.txt"), "❗ Skipping API checks, version override specified: 5.1.0\n")
        self.assertIn("!!! Skipping API checks", stdout)
        restored = api_framework.load_snapshot(self.output_dir / "api-blob")
        self.assertEqual(restored.version, api_core.ApiVersion(5, 1, 0))

    def test_validation_errors_fail_without_persisting(self) -> None:
        bad = self.records(
            "bad",
            extra_records=[
                {"record": "field", "owner": "demo.Window", "name": "COUNT", "modifiers": ["public", "static"],
                 "type": "int"},
            ],
        )
        code, _, stderr = self.build(bad)
        self.assertEqual(code, 1)
        self.assertIn("error: demo.Window.COUNT: Static API fields must be final", stderr)
        self.assertFalse((self.output_dir / "api-blob").exists())
        self.assertFalse((self.output_dir / "version.txt").exists())

    def test_corrupt_baseline_is_subsystem_error(self) -> None:
        self.output_dir.mkdir(parents=True)
        (self.output_dir / "api-blob").write_bytes(b"garbage")
        code, _, stderr = self.build(self.records("v1"))
        self.assertEqual(code, 2)
        self.assertIn("api_framework error:", stderr)
        self.assertEqual((self.output_dir / "api-blob").read_bytes(), b"garbage")

    def test_check_generated_detects_stale_facade(self) -> None:
        self.facade_path.parent.mkdir(parents=True)
        self.facade_path.write_text("stale\n", encoding="utf-8")
        code, stdout, _ = self.build(self.records("v1"), extra=["--check-generated", "--print-diff"])
        self.assertEqual(code, 1)
        self.assertIn("-stale", stdout)
        self.assertEqual(self.facade_path.read_text(encoding="utf-8"), "stale\n")
        self.assertFalse((self.output_dir / "api-blob").exists())

    def test_multiple_passes_finalize_on_last(self) -> None:
        first = self.records("pass1", final=False)
        second = str(
            self.write_json(
                self.repo_root / "records" / "pass2.json",
                {
                    "final": True,
                    "records": [
                        {"record": "type", "qualified_name": "demo.Point", "kind": "record",
                         "modifiers": ["public", "final"]},
                    ],
                },
            )
        )
        code, _, _ = self.build(first, second)
        self.assertEqual(code, 0)
        restored = api_framework.load_snapshot(self.output_dir / "api-blob")
        self.assertEqual(sorted(restored.types), ["demo.Callback", "demo.Point", "demo.Window"])

    def test_pass_after_final_is_rejected(self) -> None:
        code, _, stderr = self.build(self.records("one", final=True), self.records("two"))
        self.assertEqual(code, 2)
        self.assertIn("follows the final pass", stderr)

    def test_build_reports(self) -> None:
        report_json = self.repo_root / "reports" / "api.json"
        markdown = self.repo_root / "reports" / "api.md"
        code, _, _ = self.build(
            self.records("v1"),
            extra=["--report-json", str(report_json), "--markdown-report", str(markdown)],
        )
        self.assertEqual(code, 0)
        payload = json.loads(report_json.read_text(encoding="utf-8"))
        self.assertEqual(payload["compatibility"], "MAJOR")
        self.assertEqual(payload["new_version"], "1.0.0")
        self.assertTrue(payload["breaking"])
        self.assertIn("- Compatibility: `MAJOR`", markdown.read_text(encoding="utf-8"))

    def test_snapshot_and_diff_commands(self) -> None:
        old_blob = self.repo_root / "snapshots" / "old.blob"
        new_blob = self.repo_root / "snapshots" / "new.blob"
        code, _, _ = self.run_main(
            "snapshot", "--repo-root", str(self.repo_root), "--records", self.records("v1"),
            "--output", str(old_blob), "--version", "1.4.0",
        )
        self.assertEqual(code, 0)
        code, _, _ = self.run_main(
            "snapshot", "--repo-root", str(self.repo_root),
            "--records", self.records("v2", extra_methods=["baz"]), "--output", str(new_blob),
        )
        self.assertEqual(code, 0)
        self.assertIsNone(api_framework.load_snapshot(new_blob).version)

        code, stdout, _ = self.run_main(
            "diff", "--baseline", str(old_blob), "--current", str(new_blob), "--fail-on-breaking",
        )
        self.assertEqual(code, 1)
        self.assertIn("Version increment: 1.4.0 -> 2.0.0", stdout)

    def test_validate_command(self) -> None:
        code, stdout, _ = self.run_main("validate", "--repo-root", str(self.repo_root), "--records", self.records("v1"))
        self.assertEqual(code, 0)
        self.assertIn("[api] validate: pass", stdout)

    def test_generate_command_check(self) -> None:
        args = argparse.Namespace(
            repo_root=str(self.repo_root),
            config=str(self.config_path),
            records=[self.records("v1")],
            check=False,
            dry_run=False,
            print_diff=False,
            report_json=None,
        )
        self.assertEqual(api_framework.command_generate(args), 0)
        self.assertTrue(self.facade_path.exists())
        args.check = True
        self.assertEqual(api_framework.command_generate(args), 0)
        args.records = [self.records("v2", extra_records=[
            {"record": "type", "qualified_name": "demo.Tray", "kind": "interface", "modifiers": ["public"],
             "annotations": ["Service", "Provided"]},
        ])]
        self.assertEqual(api_framework.command_generate(args), 1)

    def test_missing_template_is_subsystem_error(self) -> None:
        self.write_json(
            self.config_path,
            {"facade": {"output_path": "generated/Facade.java", "template_path": "missing/Facade.java"}},
        )
        code, _, stderr = self.build(self.records("v1"))
        self.assertEqual(code, 2)
        self.assertIn("Facade template not found", stderr)

    def test_invalid_config_is_rejected(self) -> None:
        self.write_json(self.config_path, {"unknown": True})
        code, _, stderr = self.build(self.records("v1"))
        self.assertEqual(code, 2)
        self.assertIn("config failed schema validation", stderr)

    def test_snapshot_version_override(self) -> None:
        code, _, _ = self.build(self.records("v1"), extra=["--version-override", "SNAPSHOT"])
        self.assertEqual(code, 0)
        self.assertEqual(self.output("version.txt"), "SNAPSHOT")
        self.assertEqual(
            self.output("message.txt"), "❗ Skipping API checks, version override specified: SNAPSHOT\n"
        )
        self.assertIsNone(api_framework.load_snapshot(self.output_dir / "api-blob").version)

    def test_non_ascii_digit_version_override_is_rejected(self) -> None:
        code, _, stderr = self.build(self.records("v1"), extra=["--version-override", "².0.0"])
        self.assertEqual(code, 2)
        self.assertIn("Invalid version component", stderr)
        self.assertFalse((self.output_dir / "version.txt").exists())

    def test_undecodable_source_unit_is_subsystem_error(self) -> None:
        legacy = self.repo_root / "src" / "demo" / "Legacy.java"
        legacy.parent.mkdir(parents=True)
        legacy.write_bytes(b"class Legacy { char c = '\xe9'; }\n")
        records = self.records(
            "latin1", extra_records=[{"record": "source", "path": "src/demo/Legacy.java"}]
        )
        code, _, stderr = self.run_main("validate", "--repo-root", str(self.repo_root), "--records", records)
        self.assertEqual(code, 2)
        self.assertIn("api_framework error: Unable to read source unit", stderr)

    def test_undecodable_records_document_is_subsystem_error(self) -> None:
        records = self.repo_root / "records" / "latin1.json"
        records.parent.mkdir(parents=True)
        records.write_bytes(b'{"records": [{"record": "source", "path": "caf\xe9.java"}]}')
        code, _, stderr = self.run_main("validate", "--repo-root", str(self.repo_root), "--records", str(records))
        self.assertEqual(code, 2)
        self.assertIn("Unable to read JSON file", stderr)


if __name__ == "__main__":
    unittest.main()
