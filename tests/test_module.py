from __future__ import annotations

import sys
import tempfile
import threading
import time
import unittest
from pathlib import Path

from _testutil import ensure_repo_on_path, write_file

ensure_repo_on_path()

from ske.errors import (  # noqa: E402
    AlreadyExistsError,
    AlreadyImportedError,
    InvalidModuleError,
    InvalidPathError,
    NoOutputsError,
    NotEnoughOutputsError,
    NotFoundError,
    NotImportingError,
    OutputNotFoundError,
    RequiredModuleMissingError,
)
from ske.module import Module, OutputSlot  # noqa: E402


class TestModuleImport(unittest.TestCase):
    def test_default_output_is_run_return_value(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = write_file(
                Path(td),
                "greet.py",
                """
                def run(ctx):
                    return f"hello {ctx['who']}"
                """,
            )
            m = Module(p).with_input("who", "world").import_()

        self.assertEqual(m.output("default"), "hello world")
        self.assertTrue(m.imported)
        self.assertFalse(m.importing)
        self.assertFalse(m.skipped)

    def test_once_imports_exactly_once(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = write_file(Path(td), "once.py", "def run(ctx):\n    return 1\n")
            m = Module(p).mark_once()
            m.import_()
            with self.assertRaises(AlreadyImportedError):
                m.import_()

    def test_without_once_imports_repeatedly(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = write_file(
                Path(td),
                "count.py",
                """
                def run(ctx):
                    ctx["calls"].append(1)
                    return len(ctx["calls"])
                """,
            )
            calls = []
            m = Module(p).with_input("calls", calls)
            m.import_()
            m.import_()
        self.assertEqual(m.output("default"), 2)
        self.assertEqual(calls, [1, 1])

    def test_required_missing(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            m = Module(Path(td) / "missing.py").mark_required()
            with self.assertRaises(RequiredModuleMissingError):
                m.import_()
            self.assertFalse(m.importing)

    def test_optional_missing_is_a_noop(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            m = Module(Path(td) / "missing.py")
            self.assertIs(m.import_(), m)
        self.assertEqual(m.outputs, {})
        self.assertTrue(m.skipped)
        self.assertFalse(m.imported)

    def test_optional_missing_clears_previous_outputs(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = write_file(Path(td), "gone.py", "def run(ctx):\n    return 'x'\n")
            m = Module(p).import_()
            self.assertEqual(m.outputs, {"default": "x"})
            p.unlink()
            m.import_()
        self.assertEqual(m.outputs, {})
        self.assertTrue(m.skipped)

    def test_export_outside_import_fails(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            m = Module(Path(td) / "m.py")
            with self.assertRaises(NotImportingError):
                m.export("x", 1)
            with self.assertRaises(NotImportingError):
                m.export_many({"x": 1})

    def test_export_inside_import(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = write_file(
                Path(td),
                "exports.py",
                """
                def run(ctx):
                    ctx.export("extra", "B")
                    ctx.export_many({"more": 3})
                    return "A"
                """,
            )
            m = Module(p).import_()

        self.assertEqual(m.output("extra"), "B")
        self.assertEqual(list(m.outputs), ["default", "extra", "more"])

    def test_into_assigns_in_insertion_order(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = write_file(
                Path(td),
                "pair.py",
                """
                def run(ctx):
                    ctx.export("extra", "B")
                    return "A"
                """,
            )
            m = Module(p).import_()

        first, second = OutputSlot(), OutputSlot()
        m.into(first, second)
        self.assertEqual((first.value, second.value), ("A", "B"))

        only = OutputSlot()
        m.into(only)
        self.assertEqual(only.value, "A")

    def test_into_more_slots_than_outputs(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = write_file(Path(td), "single.py", "def run(ctx):\n    return 'A'\n")
            m = Module(p).import_()

        a, b = OutputSlot("untouched"), OutputSlot("untouched")
        with self.assertRaises(NotEnoughOutputsError):
            m.into(a, b)
        self.assertEqual((a.value, b.value), ("untouched", "untouched"))

    def test_into_without_outputs(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            m = Module(Path(td) / "missing.py").import_()
        with self.assertRaises(NoOutputsError):
            m.into(OutputSlot())

    def test_output_missing_key(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = write_file(Path(td), "m.py", "def run(ctx):\n    return None\n")
            m = Module(p).import_()
        with self.assertRaises(OutputNotFoundError):
            m.output("nope")
        with self.assertRaises(KeyError):
            m.output("nope")

    def test_execution_error_propagates_and_clears_importing(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = write_file(
                Path(td),
                "boom.py",
                """
                def run(ctx):
                    raise RuntimeError("boom")
                """,
            )
            m = Module(p).mark_once()
            with self.assertRaisesRegex(RuntimeError, "boom"):
                m.import_()
            self.assertFalse(m.importing)
            self.assertFalse(m.imported)
            with self.assertRaises(RuntimeError):
                m.import_()

    def test_missing_run_entrypoint(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = write_file(Path(td), "plain.py", "VALUE = 1\n")
            with self.assertRaises(InvalidModuleError):
                Module(p).import_()

    def test_sibling_imports(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            write_file(Path(td), "ske_test_helper_sibling.py", "ANSWER = 42\n")
            p = write_file(
                Path(td),
                "uses_helper.py",
                """
                import ske_test_helper_sibling

                def run(ctx):
                    return ske_test_helper_sibling.ANSWER
                """,
            )
            m = Module(p).import_()
        self.assertEqual(m.output("default"), 42)

    def test_custom_extension(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = write_file(Path(td), "page.ske", "def run(ctx):\n    return ctx.module.name\n")
            m = Module(p).import_()
        self.assertEqual(m.output("default"), "page.ske")

    def test_context_is_read_only_mapping(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = write_file(
                Path(td),
                "ctx.py",
                """
                def run(ctx):
                    return {"keys": sorted(ctx), "sys": ctx.sys, "missing": ctx.get("missing", "dflt")}
                """,
            )
            m = Module(p).with_inputs({"sys": "S", "a": 1}).import_()
        self.assertEqual(m.output("default"), {"keys": ["a", "sys"], "sys": "S", "missing": "dflt"})

    def test_concurrent_loads_share_sibling_path(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            write_file(root, "ske_test_helper_threaded.py", "ANSWER = 7\n")
            fast = write_file(
                root,
                "fast.py",
                """
                import time
                time.sleep(0.3)

                def run(ctx):
                    return "fast"
                """,
            )
            slow = write_file(
                root,
                "slow.py",
                """
                import time
                time.sleep(0.8)
                import ske_test_helper_threaded

                def run(ctx):
                    return ske_test_helper_threaded.ANSWER
                """,
            )
            results = {}
            errors = []

            def load(p: Path) -> None:
                try:
                    results[p.stem] = Module(p).import_().output("default")
                except Exception as e:
                    errors.append(e)

            threads = [threading.Thread(target=load, args=(fast,)), threading.Thread(target=load, args=(slow,))]
            try:
                threads[0].start()
                time.sleep(0.1)
                threads[1].start()
                for t in threads:
                    t.join()
            finally:
                sys.modules.pop("ske_test_helper_threaded", None)

            self.assertEqual(errors, [])
            self.assertEqual(results, {"fast": "fast", "slow": 7})
            self.assertNotIn(td, sys.path)


class TestModuleFiles(unittest.TestCase):
    def test_path_must_not_be_directory(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(InvalidPathError):
                Module(td)

    def test_create_and_remove(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            m = Module(Path(td) / "pkg" / "new.py")
            self.assertFalse(m.exists())
            m.create()
            self.assertTrue(m.exists())
            with self.assertRaises(AlreadyExistsError):
                m.create()
            m.remove()
            self.assertFalse(m.exists())
            with self.assertRaises(NotFoundError):
                m.remove()

    def test_contents_helpers(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            m = Module(Path(td) / "text.py")
            m.set_contents("middle")
            m.append_contents("\nend")
            m.prepend_contents("start\n")
            self.assertEqual(m.get_contents(), "start\nmiddle\nend")
            self.assertEqual(m.get_lines(), ["start\n", "middle\n", "end"])
            m.set_lines(["a", "b"])
            self.assertEqual(m.get_contents(), "a\nb")

    def test_names_and_package(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = write_file(Path(td), "sub/leaf.py", "")
            m = Module(p)
            self.assertEqual(m.name, "leaf.py")
            self.assertEqual(m.directory, Path(td) / "sub")
            pkg = m.package()
            self.assertEqual(pkg.name, "sub")
            self.assertEqual([x.name for x in pkg.modules()], ["leaf.py"])


if __name__ == "__main__":
    unittest.main()
