"""
Tests for pipeline configuration.
"""

import os
import sys
import unittest
from pathlib import Path
from unittest.mock import patch

# Add the project root to the Python path
sys.path.append(str(Path(__file__).parent.parent))

from contact_extractor.config import MIB, PipelineConfig


class TestPipelineConfig(unittest.TestCase):
    """Tests for the PipelineConfig class."""

    def test_defaults(self):
        """The default configuration is valid."""
        config = PipelineConfig()
        self.assertEqual(config.max_batch_bytes, 8 * MIB)
        self.assertEqual(config.inter_batch_delay_ms, 2000)
        self.assertEqual(config.backoff_base_ms, 1000)
        self.assertEqual(config.backoff_max_attempts, 5)
        self.assertIsNone(config.request_timeout_ms)

    def test_invalid_values(self):
        """Non-positive caps and negative delays are rejected."""
        with self.assertRaises(ValueError):
            PipelineConfig(max_batch_bytes=0)
        with self.assertRaises(ValueError):
            PipelineConfig(backoff_max_attempts=0)
        with self.assertRaises(ValueError):
            PipelineConfig(inter_batch_delay_ms=-1)
        with self.assertRaises(ValueError):
            PipelineConfig(request_timeout_ms=0)

    def test_from_env(self):
        """Fields are read from upper-cased environment variables."""
        env = {"MAX_BATCH_BYTES": "1048576", "BACKOFF_BASE_MS": "250", "INTER_BATCH_DELAY_MS": ""}
        with patch.dict(os.environ, env):
            config = PipelineConfig.from_env()

        self.assertEqual(config.max_batch_bytes, MIB)
        self.assertEqual(config.backoff_base_ms, 250)
        self.assertEqual(config.inter_batch_delay_ms, 2000)

    def test_overrides_win(self):
        """Explicit overrides beat the environment; None overrides are ignored."""
        with patch.dict(os.environ, {"BACKOFF_MAX_ATTEMPTS": "9"}):
            config = PipelineConfig.from_env(backoff_max_attempts=3, inter_batch_delay_ms=None)

        self.assertEqual(config.backoff_max_attempts, 3)
        self.assertEqual(config.inter_batch_delay_ms, 2000)

    def test_bad_env_value(self):
        """A non-integer variable raises ValueError naming it."""
        with patch.dict(os.environ, {"BACKOFF_BASE_MS": "fast"}):
            with self.assertRaisesRegex(ValueError, "BACKOFF_BASE_MS"):
                PipelineConfig.from_env()

    def test_timeout_scales_with_payload(self):
        """Timeout grows with payload size within its bounds."""
        config = PipelineConfig()
        self.assertEqual(config.timeout_for(0), 30.0)
        self.assertEqual(config.timeout_for(8 * MIB), 110.0)
        self.assertEqual(config.timeout_for(20 * MIB), 120.0)

    def test_explicit_timeout(self):
        """A configured timeout is used regardless of size."""
        config = PipelineConfig(request_timeout_ms=45_000)
        self.assertEqual(config.timeout_for(20 * MIB), 45.0)


if __name__ == "__main__":
    unittest.main()
