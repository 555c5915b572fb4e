"""
End-to-end tests for process_document and the command line entry point.
"""

import json
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from PIL import Image

# Add the project root to the Python path
sys.path.append(str(Path(__file__).parent.parent))

from contact_extractor.cli import build_parser, main
from contact_extractor.config import PipelineConfig
from contact_extractor.models import PipelineRun
from contact_extractor.orchestrator import process_document

from fakes import PageEchoTransport


class TestProcessDocument(unittest.TestCase):
    """Tests for process_document."""

    def setUp(self):
        self.config = PipelineConfig(inter_batch_delay_ms=0, degraded_image_delay_ms=0)

    def test_image_directory_to_json(self):
        """A directory of page images is extracted and saved."""
        transport = PageEchoTransport()
        with tempfile.TemporaryDirectory() as tmp:
            pages_dir = Path(tmp) / "unit_a"
            pages_dir.mkdir()
            for number in range(3):
                Image.new("RGB", (40, 60), "white").save(pages_dir / f"page_{number:03d}.png")
            output_path = Path(tmp) / "out" / "contacts.json"

            run = process_document(
                pages_dir,
                output_path=output_path,
                config=self.config,
                transport=transport,
                show_progress=False,
            )
            with open(output_path, encoding="utf-8") as f:
                saved = json.load(f)

        self.assertEqual(run.status, "complete")
        self.assertEqual(transport.calls, [[0, 1, 2]])
        self.assertEqual(saved["total_contacts"], 3)
        self.assertEqual(saved["contacts"][0]["source_file"], "unit_a")

    def test_unknown_document_type(self):
        """An unknown prompt is rejected before any request."""
        transport = PageEchoTransport()
        with tempfile.TemporaryDirectory() as tmp:
            Image.new("RGB", (10, 10)).save(Path(tmp) / "page.png")
            with self.assertRaises(ValueError):
                process_document(tmp, document_type="invoices", config=self.config, transport=transport)
        self.assertEqual(transport.calls, [])


class TestCli(unittest.TestCase):
    """Tests for the command line interface."""

    def test_parser_defaults(self):
        """Defaults come from configuration."""
        args = build_parser().parse_args(["-i", "deed.pdf"])
        self.assertEqual(args.format, "json")
        self.assertEqual(args.document_type, "oil-gas-contacts")
        self.assertIsNone(args.max_batch_mb)
        self.assertFalse(args.no_progress)

    @patch("contact_extractor.cli.logging.basicConfig")
    def test_missing_input_exits(self, _basic_config):
        """A missing input file exits with status 1."""
        with self.assertRaises(SystemExit) as ctx:
            main(["-i", "/nonexistent/deed.pdf"])
        self.assertEqual(ctx.exception.code, 1)

    @patch("contact_extractor.cli.signal.signal")
    @patch("contact_extractor.cli.logging.basicConfig")
    @patch("contact_extractor.cli.process_document")
    def test_batch_size_override(self, process, _basic_config, _signal):
        """--max-batch-mb is converted to bytes in the run configuration."""
        process.return_value = PipelineRun(batches_planned=1, batches_succeeded=1)
        with tempfile.TemporaryDirectory() as tmp:
            pdf_path = Path(tmp) / "deed.pdf"
            pdf_path.write_bytes(b"%PDF-1.4\n")
            main(["-i", str(pdf_path), "-o", str(Path(tmp) / "out.csv"), "--format", "csv", "--max-batch-mb", "2"])

        kwargs = process.call_args.kwargs
        self.assertEqual(kwargs["config"].max_batch_bytes, 2 * 1024 * 1024)
        self.assertEqual(kwargs["output_format"], "csv")

    @patch("contact_extractor.cli.logging.basicConfig")
    @patch("contact_extractor.cli.process_document")
    def test_zero_batch_size_rejected(self, process, _basic_config):
        """--max-batch-mb 0 is a configuration error, not the default."""
        with tempfile.TemporaryDirectory() as tmp:
            pdf_path = Path(tmp) / "deed.pdf"
            pdf_path.write_bytes(b"%PDF-1.4\n")
            with self.assertRaises(SystemExit) as ctx:
                main(["-i", str(pdf_path), "-o", str(Path(tmp) / "out.json"), "--max-batch-mb", "0"])

        self.assertEqual(ctx.exception.code, 2)
        process.assert_not_called()

    @patch("contact_extractor.cli.signal.signal")
    @patch("contact_extractor.cli.logging.basicConfig")
    @patch("contact_extractor.cli.process_document")
    def test_failed_run_exit_code(self, process, _basic_config, _signal):
        """A run where every batch failed exits with status 3."""
        process.return_value = PipelineRun(batches_planned=2, batches_failed=2)
        with tempfile.TemporaryDirectory() as tmp:
            pdf_path = Path(tmp) / "deed.pdf"
            pdf_path.write_bytes(b"%PDF-1.4\n")
            with self.assertRaises(SystemExit) as ctx:
                main(["-i", str(pdf_path), "-o", str(Path(tmp) / "out.json")])
        self.assertEqual(ctx.exception.code, 3)


if __name__ == "__main__":
    unittest.main()
