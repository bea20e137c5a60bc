import io
import shutil
import sqlite3
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path

from modalfields.cli import main

FIXTURES = Path(__file__).resolve().parent / "fixtures"


class TestCli(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.root = Path(self.tmp.name)
        models_dir = self.root / "app" / "models"
        models_dir.mkdir(parents=True)
        for path in (FIXTURES / "model_cases" / "dirty" / "before").glob("*.rb"):
            shutil.copy(path, models_dir / path.name)
        self.config = self.root / "modalfields.yml"
        self.config.write_text(f"schema: {FIXTURES / 'schema.yml'}\n", encoding="utf-8")

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def run_main(self, *argv: str) -> tuple[int, str, str]:
        stdout, stderr = io.StringIO(), io.StringIO()
        with redirect_stdout(stdout), redirect_stderr(stderr):
            code = main(["--config", str(self.config), *argv])
        return code, stdout.getvalue(), stderr.getvalue()

    def test_check(self) -> None:
        code, out, _ = self.run_main("check")
        self.assertEqual(code, 0)
        self.assertIn("Author (app/models/author.rb):", out)
        self.assertIn("  - zzzzz :integer", out)

    def test_update_check_then_update(self) -> None:
        code, _, err = self.run_main("update", "--check")
        self.assertEqual(code, 1)
        self.assertIn("[check] drift detected", err)

        code, out, _ = self.run_main("update")
        self.assertEqual(code, 0)
        self.assertIn("author.rb", out)
        expected = (FIXTURES / "model_cases" / "dirty" / "after" / "book.rb").read_text(encoding="utf-8")
        self.assertEqual((self.root / "app" / "models" / "book.rb").read_text(encoding="utf-8"), expected)

        code, _, err = self.run_main("update", "--check")
        self.assertEqual(code, 0)
        self.assertEqual(err, "")

    def test_update_no_modify(self) -> None:
        code, _, _ = self.run_main("update", "--no-modify")
        self.assertEqual(code, 0)
        self.assertTrue((self.root / "app" / "models" / "author_with_fields.rb").exists())

    def test_migration(self) -> None:
        code, out, _ = self.run_main("migration")
        self.assertEqual(code, 0)
        self.assertIn("# up:", out)
        self.assertIn("# down:", out)

    def test_dump(self) -> None:
        database = self.root / "app.sqlite3"
        conn = sqlite3.connect(database)
        try:
            conn.execute("CREATE TABLE notes (id INTEGER PRIMARY KEY, body TEXT)")
        finally:
            conn.close()
        output = self.root / "db" / "schema.yml"
        code, out, _ = self.run_main("dump", "--database", str(database), "--output", str(output))
        self.assertEqual(code, 0)
        self.assertIn("Dumped 1 tables", out)
        self.assertIn("notes:", output.read_text(encoding="utf-8"))

    def test_errors_are_reported(self) -> None:
        self.config.write_text("schema: missing.yml\n", encoding="utf-8")
        code, _, err = self.run_main("check")
        self.assertEqual(code, 1)
        self.assertIn("error: Schema snapshot not found", err)


if __name__ == "__main__":
    unittest.main()
