from __future__ import annotations

import logging
import time
from typing import Any, Literal

from . import parser, tokenizer
from .cache import ExpressionCache
from .config import EngineConfig
from .errors import DiceError
from .evaluator import Evaluator
from .explanation import ExplainedResult, ExplanationOptions, ExplanationRecorder
from .models import DetailedResult, Node, Token, ValueRange
from .random_source import RandomSource, seeded_source, system_source
from .ranges import expression_range


logger = logging.getLogger(__name__)


class DiceEngine:
    """Entry point for evaluating, explaining, validating and bounding dice expressions.

    Parsed expressions are cached by exact source text when caching is enabled.
    A random source injected here or passed to a single call is used as is and
    its state keeps advancing. Otherwise each call gets a fresh source, seeded
    from the config when `seed` is set so identical calls replay identically.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        random_source: RandomSource | None = None,
        explanation_options: ExplanationOptions | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.explanation_options = explanation_options or ExplanationOptions()
        self._random_source = random_source
        self._cache = ExpressionCache(self.config.cache_size) if self.config.enable_caching else None

    def _source(self) -> RandomSource:
        if self._random_source is not None:
            return self._random_source
        if self.config.seed is not None:
            return seeded_source(self.config.seed)
        return system_source()

    def _evaluator(
        self,
        random_source: RandomSource | None = None,
        recorder: ExplanationRecorder | None = None,
    ) -> Evaluator:
        return Evaluator(
            random_source or self._source(),
            max_rerolls=self.config.max_rerolls,
            recorder=recorder,
            max_execution_time=self.config.max_execution_time,
        )

    def _tokenize(self, expression: str) -> list[Token]:
        return tokenizer.tokenize(expression, self.config.max_expression_length)

    def parse(self, expression: str, tokens: list[Token] | None = None) -> Node:
        """Return the AST for `expression`, from the cache when possible.

        Pre-scanned `tokens` are only used on a cache miss.
        """

        tokenizer.check_length(expression, self.config.max_expression_length)

        if self._cache is not None:
            cached = self._cache.get(expression)
            if cached is not None:
                logger.debug("Cache hit for %r", expression)
                return cached
            logger.debug("Cache miss for %r", expression)

        ast = parser.parse(tokens if tokens is not None else self._tokenize(expression))

        if self._cache is not None:
            self._cache.put(expression, ast)
        return ast

    def evaluate(self, expression: str, random_source: RandomSource | None = None) -> int:
        return self._evaluator(random_source).evaluate(self.parse(expression))

    def evaluate_detailed(self, expression: str, random_source: RandomSource | None = None) -> DetailedResult:
        ast = self.parse(expression)
        outcome = self._evaluator(random_source).evaluate_detailed(ast)
        bounds = expression_range(ast, self.config.explode_multiplier)
        return DetailedResult(
            expression=expression,
            value=outcome.value,
            rolls=outcome.rolls,
            min_value=bounds.min,
            max_value=bounds.max,
            execution_time=outcome.execution_time,
            metrics=outcome.metrics,
        )

    def evaluate_with_explanation(
        self,
        expression: str,
        options: ExplanationOptions | None = None,
        random_source: RandomSource | None = None,
    ) -> ExplainedResult:
        recorder = ExplanationRecorder(expression, options or self.explanation_options)

        # Explanations always show a fresh tokenization, even on a cache hit.
        tokens = self._tokenize(expression)
        recorder.record_tokenization(tokens)
        ast = self.parse(expression, tokens)
        recorder.record_parsing(f"Expression parsed as {parser.to_notation(ast)}", parser.count_nodes(ast))

        start = time.perf_counter()
        outcome = self._evaluator(random_source, recorder).evaluate_detailed(ast)
        recorder.record_final_result(outcome.value)
        elapsed_ms = (time.perf_counter() - start) * 1000.0

        bounds = expression_range(ast, self.config.explode_multiplier)
        result = DetailedResult(
            expression=expression,
            value=outcome.value,
            rolls=outcome.rolls,
            min_value=bounds.min,
            max_value=bounds.max,
            execution_time=elapsed_ms,
            metrics=outcome.metrics,
        )
        return ExplainedResult(result=result, explanation=recorder.build(elapsed_ms))

    def explain(self, expression: str, fmt: Literal["text", "markdown"] = "text") -> str:
        explanation = self.evaluate_with_explanation(expression).explanation
        if fmt == "markdown":
            return explanation.to_markdown()
        if fmt == "text":
            return explanation.to_text()
        raise ValueError(f"Unknown explanation format: {fmt!r}")

    def range(self, expression: str) -> ValueRange:
        return expression_range(self.parse(expression), self.config.explode_multiplier)

    def validate(self, expression: str) -> bool:
        return not self.get_validation_errors(expression)

    def get_validation_errors(self, expression: str) -> list[str]:
        try:
            self.parse(expression)
        except DiceError as e:
            return [str(e)]
        return []

    def clear_cache(self) -> None:
        if self._cache is not None:
            self._cache.clear()

    def cache_stats(self) -> dict[str, Any]:
        if self._cache is None:
            return {"size": 0, "capacity": 0, "hits": 0, "misses": 0, "hit_rate": 0.0}
        return self._cache.stats()
