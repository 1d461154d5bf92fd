# src/parapdf/cli.py
from __future__ import annotations

import argparse
import json
import logging
import time
from pathlib import Path
from queue import Queue
from typing import List, Optional

from .config import AnalysisConfig, DEFAULT_CLIENT, OUTPUT_FORMATS, PAYLOAD_MODES, load_api_key
from .costs import DEFAULT_MODEL, get_pricing, aggregate
from .exceptions import ConfigError, SetupError
from .llm_client import BaseAnalysisClient, load_client_class, normalize_client_alias
from .logger import configure_logging, reset_logging, setup_logging
from .models import BatchResult, Unit
from .parallel import BatchDispatcher, RetryPolicy
from .pdf_processor import BasePageSource, build_units, get_page_source
from .prompts import OUTPUT_LEVELS, build_prompt
from .reporting import log_unit_errors, render_summary, write_reports

__all__ = ["run_pipeline", "main"]

logger = logging.getLogger("parapdf")

# Helper

def _parse_client_kwargs(val: Optional[str]) -> dict:
    """Accept --client-kwargs as a JSON object."""
    if not val:
        return {}
    try:
        parsed = json.loads(val)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid --client-kwargs, expected a JSON object, {e}")
    if not isinstance(parsed, dict):
        raise ConfigError(f"Invalid --client-kwargs, expected a JSON object, got {type(parsed).__name__}")
    return parsed


def _preflight_client_import(dotted: str) -> type:
    """
    Import the client class now, so a bad --client fails before any page is
    extracted instead of inside the batch.
    """
    try:
        cls = load_client_class(dotted)
    except ImportError as e:
        raise ConfigError(f"Cannot load analysis client {dotted!r}, {e}")
    if not (isinstance(cls, type) and issubclass(cls, BaseAnalysisClient)):
        raise ConfigError(f"{dotted!r} is not a BaseAnalysisClient subclass")
    return cls


def build_client(config: AnalysisConfig, api_key: Optional[str]) -> BaseAnalysisClient:
    cls = _preflight_client_import(config.client)
    kwargs = {
        "api_key": api_key,
        "model": config.model,
        "max_tokens": config.max_tokens,
        "timeout": config.request_timeout,
    }
    kwargs.update(config.client_kwargs or {})
    return cls(**kwargs)


def run_pipeline(
    config: AnalysisConfig,
    client: Optional[BaseAnalysisClient] = None,
    page_source: Optional[BasePageSource] = None,
    api_key: Optional[str] = None,
) -> BatchResult:
    """
    Extract units, dispatch them and aggregate the results.
    Raises SetupError before any call is made if the batch cannot start.
    """
    config.validate()

    logger.info("Starting parapdf")
    logger.info("Document, %s", config.pdf_path)
    logger.info(
        "Model, %s | Concurrency, %s | Max attempts, %s | Chunk size, %s | Mode, %s",
        config.model, config.concurrency, config.max_attempts, config.chunk_size, config.payload_mode,
    )
    pricing = get_pricing(config.model)
    logger.info("Pricing, $%.2f/M input, $%.2f/M output", pricing.input_per_mtok, pricing.output_per_mtok)

    if client is None:
        client = build_client(config, api_key)

    source = page_source or get_page_source("pymupdf", dpi=config.dpi, max_image_edge=config.max_image_edge)
    units, total_pages = build_units(
        source, config.pdf_path, config.chunk_size, config.payload_mode, config.max_pages
    )

    def analyze(unit: Unit):
        return client.analyze(unit, build_prompt(unit, config.output_level, config.prompt))

    dispatcher = BatchDispatcher(
        analyze,
        concurrency=config.concurrency,
        retry_policy=RetryPolicy(config.max_attempts, config.base_delay),
        wave_size=config.wave_size,
        show_progress=config.show_progress,
    )

    start = time.perf_counter()
    results = dispatcher.dispatch(units)
    duration = time.perf_counter() - start

    batch = aggregate(
        results, pricing,
        source_path=str(config.pdf_path),
        model=config.model,
        total_pages=total_pages,
        duration_seconds=duration,
    )
    logger.info("Batch finished, %d ok, %d failed, %.2fs", len(batch.succeeded), len(batch.failed), duration)

    write_reports(batch, config.formats, config.output_dir)
    log_unit_errors(batch, config.error_log_path)
    return batch


# -------------------------------
# CLI parsing
# -------------------------------

def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="parapdf: analyze a PDF page by page with an LLM, in parallel")
    p.add_argument("pdf_path", type=Path, help="PDF document to analyze")

    p.add_argument("-l", "--level", dest="output_level", choices=OUTPUT_LEVELS, default="detailed",
                   help="Analysis depth for each page (default: detailed)")
    p.add_argument("-m", "--model", default=DEFAULT_MODEL, help="Model identifier")
    p.add_argument("--client", default=DEFAULT_CLIENT,
                   help="Analysis client alias ('anthropic') or dotted path to a client class")
    p.add_argument("--client-kwargs", help='Extra client init kwargs as JSON, e.g. \'{"max_tokens": 4096}\'')
    p.add_argument("--prompt", help="Custom instructions that replace the level template")

    run_group = p.add_argument_group("Dispatch")
    run_group.add_argument("-c", "--concurrency", type=int, help="Maximum units in flight at once (default: 4)")
    run_group.add_argument("--max-attempts", type=int, help="Attempts per unit for rate-limit errors (default: 3)")
    run_group.add_argument("--base-delay", type=float, help="First backoff delay in seconds, doubled per retry (default: 2)")
    run_group.add_argument("--wave-size", type=int, help="Run units in sequential waves of this size")
    run_group.add_argument("--timeout", dest="request_timeout", type=float, help="Per-call timeout in seconds")

    page_group = p.add_argument_group("Pages")
    page_group.add_argument("--chunk-size", type=int, help="Pages per unit (default: 1)")
    page_group.add_argument("--mode", dest="payload_mode", choices=PAYLOAD_MODES,
                            help="Send each unit as a sub-PDF, extracted text or a rendered image (default: pdf)")
    page_group.add_argument("--max-pages", type=int, help="Only analyze the first N pages")
    page_group.add_argument("-d", "--dpi", type=int, help="DPI for image mode")

    out_group = p.add_argument_group("Output")
    out_group.add_argument("-f", "--format", dest="formats", action="append", choices=OUTPUT_FORMATS,
                           help="Report format; can be used multiple times (default: json)")
    out_group.add_argument("-o", "--output-dir", type=Path, help="Directory for reports (default: next to the PDF)")
    out_group.add_argument("--error-log-path", type=Path, help="Append failed units to this JSONL file")
    out_group.add_argument("--env-file", type=Path, help="Path to a .env file holding ANTHROPIC_API_KEY")
    out_group.add_argument("--log-file", type=Path, help="Also write the run log to this file")
    out_group.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    out_group.add_argument("--no-progress", action="store_true", help="Hide the progress bar")
    return p


def _config_from_args(args: argparse.Namespace) -> AnalysisConfig:
    cfg_dict = {
        "pdf_path": args.pdf_path,
        "output_dir": args.output_dir,
        "formats": args.formats,
        "error_log_path": args.error_log_path,
        "model": args.model,
        "client": normalize_client_alias(args.client),
        "client_kwargs": _parse_client_kwargs(args.client_kwargs),
        "request_timeout": args.request_timeout,
        "concurrency": args.concurrency,
        "max_attempts": args.max_attempts,
        "base_delay": args.base_delay,
        "wave_size": args.wave_size,
        "chunk_size": args.chunk_size,
        "payload_mode": args.payload_mode,
        "max_pages": args.max_pages,
        "dpi": args.dpi,
        "output_level": args.output_level,
        "prompt": args.prompt,
        "log_file": args.log_file,
        "log_level": logging.DEBUG if args.verbose else logging.INFO,
        "show_progress": not args.no_progress,
    }
    cfg_dict = {k: v for k, v in cfg_dict.items() if v is not None}
    return AnalysisConfig.from_dict(cfg_dict)


# -------------------------------
# Entry point
# -------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    log_queue: Queue = Queue(-1)
    try:
        listener = setup_logging(
            log_queue,
            level=logging.DEBUG if args.verbose else logging.INFO,
            file_path=args.log_file,
        )
    except OSError as e:
        # logging is not configured yet, so this goes to the last resort handler
        logger.error("Cannot open log file %s, %s", args.log_file, e)
        return 1
    configure_logging(log_queue)
    listener.start()

    try:
        config = _config_from_args(args).validate()
        api_key = load_api_key(env_file=args.env_file)
        batch = run_pipeline(config, api_key=api_key)
    except SetupError as e:
        logger.error("%s", e)
        return 1
    finally:
        try:
            listener.stop()
        finally:
            reset_logging()

    print(render_summary(batch))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
