# src/parapdf/costs.py
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, Tuple

from .models import BatchResult, Pricing, UnitResult

logger = logging.getLogger("parapdf")

DEFAULT_MODEL = "claude-3-5-haiku-20241022"

# USD per million tokens
MODEL_PRICING: Dict[str, Pricing] = {
    "claude-3-5-haiku-20241022": Pricing(0.80, 4.00),
    "claude-3-haiku-20240307": Pricing(0.25, 1.25),
    "claude-haiku-4-5-20251001": Pricing(1.00, 5.00),
    "claude-3-5-sonnet-20241022": Pricing(3.00, 15.00),
    "claude-3-7-sonnet-20250219": Pricing(3.00, 15.00),
    "claude-sonnet-4-20250514": Pricing(3.00, 15.00),
    "claude-sonnet-4-5-20250929": Pricing(3.00, 15.00),
    "claude-3-opus-20240229": Pricing(15.00, 75.00),
    "claude-opus-4-20250514": Pricing(15.00, 75.00),
}


def get_pricing(model: str) -> Pricing:
    """
    Look up the price entry for a model id.
    Unknown ids fall back to the default model's entry instead of failing.
    """
    pricing = MODEL_PRICING.get(model)
    if pricing is None:
        logger.debug("No pricing for model %s, using %s prices", model, DEFAULT_MODEL)
        return MODEL_PRICING[DEFAULT_MODEL]
    return pricing


def unit_cost(input_tokens: int, output_tokens: int, pricing: Pricing) -> Tuple[float, float, float]:
    input_cost = input_tokens / 1_000_000 * pricing.input_per_mtok
    output_cost = output_tokens / 1_000_000 * pricing.output_per_mtok
    return input_cost, output_cost, input_cost + output_cost


def price_result(result: UnitResult, pricing: Pricing) -> UnitResult:
    """Return a copy of ``result`` with its cost fields filled in."""
    input_cost, output_cost, total = unit_cost(result.input_tokens, result.output_tokens, pricing)
    return replace(result, input_cost=input_cost, output_cost=output_cost, total_cost=total)


def aggregate(
    results: Iterable[UnitResult],
    pricing: Pricing,
    *,
    source_path: str = "",
    model: str = DEFAULT_MODEL,
    total_pages: int = 0,
    duration_seconds: float = 0.0,
) -> BatchResult:
    """
    Fold per-unit token counts into a BatchResult.

    Each unit is priced first, and the batch totals are sums of the per-unit
    fields, so the batch and its units can never disagree.
    """
    priced = [price_result(r, pricing) for r in results]
    return BatchResult(
        source_path=source_path,
        model=model,
        total_pages=total_pages,
        unit_count=len(priced),
        units=priced,
        total_input_tokens=sum(r.input_tokens for r in priced),
        total_output_tokens=sum(r.output_tokens for r in priced),
        total_input_cost=sum(r.input_cost for r in priced),
        total_output_cost=sum(r.output_cost for r in priced),
        total_cost=sum(r.total_cost for r in priced),
        duration_seconds=duration_seconds,
        generated_at=datetime.now().isoformat(timespec="seconds"),
    )
