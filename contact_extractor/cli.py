import os
import signal
import argparse
import logging
import sys

from .cancellation import CancellationToken
from .config import DEFAULT_DOCUMENT_TYPE, LMM_MODEL, MIB, PipelineConfig
from .orchestrator import process_document
from .prompts import available_document_types

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Extract contact and ownership records from scanned PDFs with a vision model"
    )

    parser.add_argument(
        "-i", "--input",
        required=True,
        help="Path to the input PDF file, or a directory of page images"
    )
    parser.add_argument(
        "-o", "--output",
        help="Path to save the output file. If not provided, will use the input filename in ./output."
    )
    parser.add_argument(
        "--format", choices=["json", "csv"], default="json",
        help="Output format (default: json)"
    )
    parser.add_argument(
        "--document-type", choices=available_document_types(), default=DEFAULT_DOCUMENT_TYPE,
        help=f"Extraction prompt to use (default: {DEFAULT_DOCUMENT_TYPE})"
    )
    parser.add_argument(
        "--model", default=LMM_MODEL,
        help=f"Vision model to use (default: {LMM_MODEL})"
    )
    parser.add_argument(
        "--max-batch-mb", type=float,
        help="Maximum payload per request in MiB (default: 8)"
    )
    parser.add_argument(
        "--inter-batch-delay-ms", type=int,
        help="Pause between batches in milliseconds (default: 2000)"
    )
    parser.add_argument(
        "--no-progress", action="store_true",
        help="Disable the progress bar"
    )
    return parser


def main(argv=None):
    """
    Main entry point for the contact extraction CLI.
    """
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler("contact_extraction.log")
        ]
    )

    args = build_parser().parse_args(argv)

    # Validate input
    input_path = os.path.abspath(args.input)
    if not os.path.exists(input_path):
        logger.error(f"Input not found: {input_path}")
        sys.exit(1)

    if os.path.isfile(input_path) and not input_path.lower().endswith('.pdf'):
        logger.error(f"Input file must be a PDF: {input_path}")
        sys.exit(1)

    # Determine output path
    if args.output:
        output_path = os.path.abspath(args.output)
    else:
        input_name = os.path.splitext(os.path.basename(input_path))[0]
        output_dir = os.path.join(os.getcwd(), "output")
        output_path = os.path.join(output_dir, f"{input_name}_contacts.{args.format}")

    try:
        config = PipelineConfig.from_env(
            max_batch_bytes=int(args.max_batch_mb * MIB) if args.max_batch_mb is not None else None,
            inter_batch_delay_ms=args.inter_batch_delay_ms,
        )
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(2)

    # Ctrl-C stops after the current request and keeps what was extracted
    token = CancellationToken()

    def _cancel(signum, frame):
        logger.warning("Interrupt received, finishing current request and saving partial results")
        token.cancel()

    signal.signal(signal.SIGINT, _cancel)

    logger.info(f"Starting contact extraction on {input_path}")
    logger.info(f"Output will be saved to {output_path}")

    try:
        run = process_document(
            input_path,
            output_path=output_path,
            output_format=args.format,
            document_type=args.document_type,
            model_name=args.model,
            config=config,
            token=token,
            show_progress=not args.no_progress,
        )
    except Exception as e:
        logger.error(f"Error during processing: {str(e)}", exc_info=True)
        sys.exit(1)

    logger.info(
        f"Processing {run.status}. {run.total_contacts} contacts from "
        f"{run.batches_succeeded + run.batches_degraded}/{run.batches_planned} batches. "
        f"Results saved to {output_path}"
    )
    if run.status == "failed":
        sys.exit(3)


if __name__ == "__main__":
    main()
