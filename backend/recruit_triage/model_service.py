"""
Local transformers pipelines for the statistical tier.

Both pipelines are loaded lazily, exactly once per process. Concurrent first callers
block on the same lock and observe the same outcome; a failed load is remembered and
re-raised rather than retried.
"""
import asyncio
import logging
import threading
from typing import Optional, Sequence

from .collaborators import QuestionAnswer
from .config import Settings, settings as default_settings
from .errors import ModelInitializationError

logger = logging.getLogger(__name__)


class TransformersModels:
    """StatisticalModels over zero-shot-classification and question-answering pipelines."""

    def __init__(self, app_settings: Optional[Settings] = None, pipeline_factory=None):
        self._settings = app_settings or default_settings
        self._pipeline_factory = pipeline_factory
        self._lock = threading.Lock()
        self._classifier = None
        self._extractor = None
        self._init_error: Optional[BaseException] = None
        self.load_count = 0

    @property
    def is_loaded(self) -> bool:
        return self._classifier is not None and self._extractor is not None

    def _load(self):
        with self._lock:
            if self._init_error is not None:
                raise ModelInitializationError(str(self._init_error)) from self._init_error
            if self.is_loaded:
                return
            factory = self._pipeline_factory
            if factory is None:
                from transformers import pipeline as factory
            self.load_count += 1
            try:
                logger.info(f"Loading zero-shot model {self._settings.zero_shot_model}")
                classifier = factory(
                    "zero-shot-classification",
                    model=self._settings.zero_shot_model,
                    device=self._settings.statistical_device,
                )
                logger.info(f"Loading question-answering model {self._settings.question_answering_model}")
                extractor = factory(
                    "question-answering",
                    model=self._settings.question_answering_model,
                    device=self._settings.statistical_device,
                )
            except Exception as e:
                logger.error(f"Statistical model initialization failed: {e}")
                self._init_error = e
                raise ModelInitializationError(str(e)) from e
            self._classifier = classifier
            self._extractor = extractor

    async def ensure_loaded(self):
        if self.is_loaded:
            return
        await asyncio.to_thread(self._load)

    async def classify(self, text: str, labels: Sequence[str]) -> list[tuple[str, float]]:
        await self.ensure_loaded()
        result = await asyncio.to_thread(self._classifier, text, list(labels), multi_label=False)
        return list(zip(result["labels"], (float(s) for s in result["scores"])))

    async def answer_question(self, context: str, question: str) -> QuestionAnswer:
        await self.ensure_loaded()
        result = await asyncio.to_thread(
            self._extractor,
            question=question,
            context=context,
            max_answer_len=40,
            max_seq_len=512,
        )
        return QuestionAnswer(answer=(result.get("answer") or "").strip(), score=float(result.get("score") or 0.0))


_models: Optional[TransformersModels] = None
_models_lock = threading.Lock()


def get_statistical_models() -> TransformersModels:
    """Process-wide instance. Creating it does not load any model."""
    global _models
    with _models_lock:
        if _models is None:
            _models = TransformersModels()
        return _models
