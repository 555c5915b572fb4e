import os
import logging
from pathlib import Path
from typing import Optional, Union

from .cancellation import CancellationToken
from .config import DEFAULT_DOCUMENT_TYPE, DEFAULT_EXTRACTION_METHOD, LMM_MAX_TOKENS, LMM_MODEL, LMM_TEMPERATURE, PipelineConfig
from .export import save_run
from .extraction_client import ExtractionClient
from .models import PipelineRun
from .pipeline import ExtractionPipeline
from .prompts import PromptTemplate
from .rasterizer import PDFRasterizer
from .transport import VisionTransport

logger = logging.getLogger(__name__)


def process_document(
    input_path: Union[str, Path],
    output_path: Optional[Union[str, Path]] = None,
    output_format: str = "json",
    document_type: str = DEFAULT_DOCUMENT_TYPE,
    model_name: str = LMM_MODEL,
    config: Optional[PipelineConfig] = None,
    transport: Optional[VisionTransport] = None,
    rasterizer: Optional[PDFRasterizer] = None,
    token: Optional[CancellationToken] = None,
    show_progress: bool = True,
) -> PipelineRun:
    """
    Main orchestration function to extract contacts from a scanned document.

    Args:
        input_path: PDF file, or a directory of pre-rendered page images
        output_path: Where to save the run (not saved if None)
        output_format: "json" or "csv"
        document_type: Prompt catalog entry to use
        model_name: Vision model name, used when no transport is given
        config: Pipeline configuration (defaults to the environment)
        transport: Vision transport (created from model_name if None)
        rasterizer: Page renderer
        token: Cancellation token
        show_progress: Whether to display a progress bar

    Returns:
        The finished (possibly partial) PipelineRun
    """
    input_path = Path(input_path)
    logger.info(f"Starting contact extraction for: {input_path}")

    config = config or PipelineConfig.from_env()
    rasterizer = rasterizer or PDFRasterizer()
    transport = transport or VisionTransport.create(
        model_name, max_tokens=LMM_MAX_TOKENS, temperature=LMM_TEMPERATURE
    )

    if input_path.is_dir():
        images = rasterizer.load_directory(input_path)
    else:
        images = rasterizer.rasterize(input_path)

    client = ExtractionClient(transport, config=config, prompt=PromptTemplate(document_type))
    pipeline = ExtractionPipeline(
        client,
        config=config,
        source_file=os.path.basename(input_path),
        extraction_method=DEFAULT_EXTRACTION_METHOD,
        show_progress=show_progress,
    )
    run = pipeline.run(images, token=token)

    if output_path:
        save_run(run, output_path, output_format)

    return run
