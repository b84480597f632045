"""
LLM client for OpenAI/Azure, plus model selection.

The model is resolved once per run (resolve_model) and handed to LLMClient; nothing is
cached at module level.
"""
import logging

from witness_ai.config import Config

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"

MODEL_PRIORITY = (
    "gpt-5.1-mini",
    "gpt-5-mini",
    "gpt-5.1",
    "gpt-5",
    "gpt-4.1",
    "gpt-4.1-mini",
    "gpt-4o-mini",
    "gpt-4o",
)

# Ids containing any of these are not chat models
UNUSABLE_MODEL_MARKERS = ("codex", "whisper", "audio", "embed", "tts", "dall-e")


def is_usable_model(model_id: str) -> bool:
    lowered = (model_id or "").lower()
    return bool(lowered) and not any(m in lowered for m in UNUSABLE_MODEL_MARKERS)


def select_model(available_ids) -> str:
    """First priority model the account offers, else any gpt-4o variant, else the default."""
    ids = [i for i in available_ids or [] if is_usable_model(i)]
    id_set = set(ids)
    for candidate in MODEL_PRIORITY:
        if candidate in id_set:
            return candidate
    for model_id in ids:
        if model_id.startswith("gpt-4o"):
            return model_id
    return DEFAULT_MODEL


def _build_client(cfg: Config):
    if cfg.USE_AZURE_OPENAI:
        from openai import AzureOpenAI
        return AzureOpenAI(
            azure_endpoint=cfg.AZURE_OPENAI_ENDPOINT,
            api_key=cfg.AZURE_OPENAI_API_KEY,
            api_version=cfg.AZURE_OPENAI_API_VERSION,
            timeout=cfg.AI_TIMEOUT_SEC,
        )
    from openai import OpenAI
    return OpenAI(api_key=cfg.OPENAI_API_KEY, timeout=cfg.AI_TIMEOUT_SEC)


def resolve_model(config: Config | None = None, client=None) -> str:
    """
    Model for this run: Azure deployment or OPENAI_MODEL when configured, otherwise the best
    id from the account's model list. Listing failures fall back to the default model.
    """
    cfg = config or Config()
    if cfg.USE_AZURE_OPENAI:
        return cfg.AZURE_OPENAI_DEPLOYMENT
    if cfg.OPENAI_MODEL:
        return cfg.OPENAI_MODEL
    from openai import OpenAIError
    try:
        client = client or _build_client(cfg)
        ids = [m.id for m in client.models.list()]
    except OpenAIError as e:
        logger.warning("Model listing failed (%s); using %s", type(e).__name__, DEFAULT_MODEL)
        return DEFAULT_MODEL
    model = select_model(ids)
    logger.info("Selected model %s from %d listed models", model, len(ids))
    return model


class LLMClient:
    """
    Encapsulates the OpenAI or Azure OpenAI client and the model used for every request.
    """

    def __init__(self, config: Config | None = None, model: str | None = None, client=None):
        cfg = config or Config()
        self._client = client or _build_client(cfg)
        if model:
            self._model = model
        elif cfg.USE_AZURE_OPENAI:
            self._model = cfg.AZURE_OPENAI_DEPLOYMENT
        else:
            self._model = cfg.OPENAI_MODEL or DEFAULT_MODEL

    @property
    def model(self) -> str:
        return self._model

    def generate(
        self,
        prompt: str,
        max_tokens: int = 4096,
        json_mode: bool = False,
        temperature: float | None = None,
        system: str | None = None,
    ) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        kwargs = {
            "model": self._model,
            "messages": messages,
            "max_completion_tokens": max_tokens,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        if temperature is not None:
            kwargs["temperature"] = temperature
        try:
            response = self._client.chat.completions.create(**kwargs)
            return response.choices[0].message.content or ""
        except Exception as e:
            from openai import APIConnectionError, APIError, APIStatusError
            if isinstance(e, (APIConnectionError, APIError, APIStatusError)):
                msg = str(e).strip() or type(e).__name__
                if "connection" in msg.lower() or "getaddrinfo" in msg.lower():
                    msg += " Check AZURE_OPENAI_ENDPOINT (or OPENAI_API_KEY) and network/VPN/DNS."
                raise RuntimeError(f"Cannot reach OpenAI/Azure: {msg}") from e
            raise
