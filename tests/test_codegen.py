from __future__ import annotations

import tempfile
import unittest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))
import api_framework_core as api_framework  # noqa: E402
from api_framework_core import core as api_core  # noqa: E402


def make_type(name: str, annotations=(), modifiers=("public",), methods=(), types=(), **kwargs) -> api_core.ApiType:
    return api_core.ApiType(
        qualified_name=name,
        simple_name=api_framework.derive_simple_name(name),
        kind=api_core.TypeKind.INTERFACE,
        modifiers=frozenset(modifiers),
        usage=api_core.Usage.from_annotations(annotations),
        annotations=frozenset(annotations),
        methods=api_core.freeze_mapping({item.key: item for item in methods}),
        types=api_core.freeze_mapping({item.key: item for item in types}),
        **kwargs,
    )


def extension_method(name: str, extension: str) -> api_core.ApiMethod:
    return api_core.ApiMethod(
        name=name,
        parameter_types=(),
        modifiers=frozenset({"public", "abstract"}),
        return_type="void",
        extension=extension,
    )


class ReplaceTemplateTests(unittest.TestCase):
    def test_statements_take_placeholder_indentation(self) -> None:
        source = "class A {\n    /*X*/\n}\n"
        self.assertEqual(
            api_framework.replace_template(source, "/*X*/", ["a();", "b();"], True),
            "class A {\n    a();\n\n    b();\n}\n",
        )
        self.assertEqual(
            api_framework.replace_template(source, "/*X*/", ["a();", "b();"], False),
            "class A {\n    a();\n    b();\n}\n",
        )

    def test_multiline_statement_is_indented_per_line(self) -> None:
        source = "{\n  /*X*/\n}"
        self.assertEqual(
            api_framework.replace_template(source, "/*X*/", ["if (x) {\n  y();\n}"], False),
            "{\n  if (x) {\n    y();\n  }\n}",
        )

    def test_blank_lines_in_statement_stay_unindented(self) -> None:
        source = "{\n  /*X*/\n}"
        self.assertEqual(
            api_framework.replace_template(source, "/*X*/", ["a();\n\nb();"], False),
            "{\n  a();\n\n  b();\n}",
        )

    def test_no_statements_removes_placeholder_line(self) -> None:
        self.assertEqual(api_framework.replace_template("a\n  /*X*/\nb\n", "/*X*/", [], True), "a\nb\n")

    def test_missing_placeholder_is_fatal(self) -> None:
        with self.assertRaises(api_core.TemplateError):
            api_framework.replace_template("class A {}\n", "/*X*/", ["a();"], True)
        with self.assertRaises(api_core.TemplateError):
            api_framework.replace_inline("class A {}\n", "/*X*/", "")


class FacadeRenderingTests(unittest.TestCase):
    def test_render_accessor(self) -> None:
        service = make_type(
            "demo.Window",
            annotations=["Service", "Provided"],
            fallback="demo.Window$Fallback",
            doc_comment=" Costs $5.\n Second line.",
            deprecation=api_core.Deprecation.FOR_REMOVAL,
        )
        rendered = api_framework.render_accessor("/**<JAVADOC>\n */<DEPRECATED>\n$ get$() { <FALLBACK> }", service)
        self.assertEqual(
            rendered,
            '/**\n * Costs $5.\n * Second line.\n */\n@SuppressWarnings("removal")\n@Deprecated(forRemoval = true)\n'
            "Window getWindow() { demo.Window.Fallback::new }",
        )

    def test_render_accessor_without_fallback_or_docs(self) -> None:
        service = make_type("demo.Tray", annotations=["Service", "Provided"],
                            deprecation=api_core.Deprecation.DEPRECATED)
        rendered = api_framework.render_accessor("/**<JAVADOC> */<DEPRECATED>\n$ <FALLBACK>", service)
        self.assertEqual(rendered, "/** */\n@Deprecated\nTray null")

    def test_facade_model_is_sorted_and_filtered(self) -> None:
        nested_service = make_type("demo.Window$Inner", annotations=["Service", "Provided"], enclosing="demo.Window")
        types = [
            make_type("demo.Window", annotations=["Service", "Provided"], types=[nested_service],
                      methods=[extension_method("blur", "BLUR")]),
            make_type("demo.Hidden", annotations=["Service", "Provided"], modifiers=("protected",)),
            make_type("demo.Callback", annotations=["Provided", "Provides"],
                      methods=[extension_method("onBlur", "BLUR"), extension_method("onMove", "MOVE")]),
            make_type("demo.Alpha", annotations=["Service", "Provided"]),
        ]
        model = api_framework.build_facade_model(types)

        self.assertEqual([item.qualified_name for item in model.services], ["demo.Alpha", "demo.Window"])
        self.assertEqual(model.service_names, ("demo.Alpha", "demo.Hidden", "demo.Window", "demo.Window$Inner"))
        self.assertEqual(
            model.proxy_names,
            ("demo.Alpha", "demo.Callback", "demo.Hidden", "demo.Window", "demo.Window$Inner"),
        )
        self.assertEqual(dict(model.extensions), {"BLUR": ("demo.Callback", "demo.Window"), "MOVE": ("demo.Callback",)})
        self.assertEqual(
            api_framework.render_extension_entries(model),
            [
                "KNOWN_EXTENSIONS.put(Extensions.BLUR, new Class[] {demo.Callback.class, demo.Window.class});",
                "KNOWN_EXTENSIONS.put(Extensions.MOVE, new Class[] {demo.Callback.class});",
            ],
        )

    def test_render_facade_with_default_templates(self) -> None:
        templates = api_framework.get_templates_dir()
        model = api_framework.build_facade_model(
            [make_type("demo.Window", annotations=["Service", "Provided"], methods=[extension_method("blur", "BLUR")])]
        )
        content = api_framework.render_facade(
            model,
            skeleton=api_framework.load_template(templates / "Facade.java"),
            accessor_template=api_framework.load_template(templates / "service-getter.txt"),
        )
        self.assertIn('KNOWN_SERVICES = {"demo.Window"};', content)
        self.assertIn('KNOWN_PROXIES = {"demo.Window"};', content)
        self.assertIn("        KNOWN_EXTENSIONS.put(Extensions.BLUR, new Class[] {demo.Window.class});\n", content)
        self.assertIn("    public static Window getWindow() {\n", content)
        self.assertIn("    private static class WindowHolder {\n", content)
        self.assertNotIn("/*", content.split("public final class Facade", 1)[1].replace("/**", ""))

    def test_missing_template_is_fatal(self) -> None:
        with self.assertRaises(api_core.TemplateError):
            api_framework.load_template(Path("/nonexistent/Facade.java"))


class WriteArtifactTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / "generated" / "Facade.java"

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def test_statuses(self) -> None:
        status, _ = api_framework.write_artifact_if_changed(path=self.path, content="a\n", dry_run=False, check=False)
        self.assertEqual(status, "updated")
        status, diff = api_framework.write_artifact_if_changed(path=self.path, content="a\n", dry_run=False, check=False)
        self.assertEqual((status, diff), ("unchanged", ""))
        status, diff = api_framework.write_artifact_if_changed(path=self.path, content="b\n", dry_run=False, check=True)
        self.assertEqual(status, "drift")
        self.assertIn("+b", diff)
        status, _ = api_framework.write_artifact_if_changed(path=self.path, content="b\n", dry_run=True, check=False)
        self.assertEqual(status, "would_write")
        self.assertEqual(self.path.read_text(encoding="utf-8"), "a\n")


if __name__ == "__main__":
    unittest.main()
