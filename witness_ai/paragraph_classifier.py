"""
External paragraph classification through the LLM, in fixed-size batches.

The answer becomes a ClassificationOverride over the plain pass. A batch that fails for
any reason (network, API error, unusable JSON) contributes nothing; the heuristics then
decide those paragraphs on their own.
"""
import logging

from openai import OpenAIError

from witness_ai.json_utils import JsonParser
from witness_ai.prompts import CLASSIFIER_SYSTEM_PROMPT, build_paragraph_prompt
from witness_format.utils.override_map import ClassificationOverride, override_from_items
from witness_format.utils.paragraph_types import PLAIN_PASS, Paragraph

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 40


class ParagraphClassifier:
    """
    Sends "[index] text + hints" batches to an LLM client exposing generate(prompt, ...)
    and collects {"i", "type", "level"} items.
    """

    def __init__(self, llm_client, batch_size: int = DEFAULT_BATCH_SIZE):
        self._llm = llm_client
        self._batch_size = max(1, int(batch_size))

    def classify_batch(self, batch: list[Paragraph]) -> list[dict]:
        response = self._llm.generate(
            build_paragraph_prompt(batch),
            json_mode=True,
            max_tokens=4000,
            system=CLASSIFIER_SYSTEM_PROMPT,
        )
        data = JsonParser.extract_json_from_llm(response)
        if isinstance(data, dict):
            items = data.get("items")
        else:
            items = data
        if not isinstance(items, list):
            raise ValueError("classifier response has no 'items' list")
        return items

    def classify_paragraphs(self, paragraphs: list[Paragraph]) -> ClassificationOverride:
        pass_id = paragraphs[0].pass_id if paragraphs else PLAIN_PASS
        candidates = [p for p in paragraphs if not p.is_empty]
        items = []
        failed = 0
        for start in range(0, len(candidates), self._batch_size):
            batch = candidates[start:start + self._batch_size]
            first, last = batch[0].index, batch[-1].index
            try:
                batch_items = self.classify_batch(batch)
            except (OpenAIError, RuntimeError, ValueError) as e:
                failed += 1
                logger.warning("AI batch %d-%d failed, using heuristics for it: %s", first, last, e)
                continue
            logger.info("AI batch %d-%d: %d items", first, last, len(batch_items))
            items.extend(batch_items)
        override = override_from_items(
            items,
            pass_id=pass_id,
            valid_indices={p.index for p in candidates},
        )
        logger.info(
            "AI classification: %d types, %d levels for %d paragraphs (%d failed batches)",
            len(override.types), len(override.levels), len(candidates), failed,
        )
        return override
