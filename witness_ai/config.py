"""
Load settings from the environment (and the project .env when present).
One Config per run or per app; the engine receives it explicitly.
"""
import os
from pathlib import Path

from dotenv import load_dotenv


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


class Config:
    """
    OpenAI/Azure credentials, model choice, AI batching and app settings.
    Values are read once in __init__ and exposed read-only.
    """

    _project_env = Path(__file__).resolve().parent.parent / ".env"

    def __init__(self, env_file: str | Path | None = None):
        self._load_env(Path(env_file) if env_file else self._project_env)
        self._openai_api_key = os.getenv("OPENAI_API_KEY", "").strip()
        self._azure_endpoint = os.getenv("AZURE_OPENAI_ENDPOINT", "").strip()
        self._azure_api_key = os.getenv("AZURE_OPENAI_API_KEY", "").strip()
        self._azure_api_version = os.getenv("AZURE_OPENAI_API_VERSION", "2024-12-01-preview").strip()
        self._azure_deployment = os.getenv("AZURE_OPENAI_DEPLOYMENT", "gpt-4o-mini").strip()
        self._use_azure_openai = bool(self._azure_endpoint and self._azure_api_key)
        self._openai_model = os.getenv("OPENAI_MODEL", "").strip()
        self._ai_batch_size = max(1, _int_env("AI_BATCH_SIZE", 40))
        self._ai_timeout_sec = max(1, _int_env("AI_TIMEOUT_SEC", 120))
        self._log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"
        self._output_dir = os.getenv("OUTPUT_DIR", "").strip() or str(Path(__file__).resolve().parent.parent / "output")

    @staticmethod
    def _load_env(path: Path) -> None:
        if path.exists():
            load_dotenv(path)

    @property
    def OPENAI_API_KEY(self) -> str:
        return self._openai_api_key

    @property
    def AZURE_OPENAI_ENDPOINT(self) -> str:
        return self._azure_endpoint

    @property
    def AZURE_OPENAI_API_KEY(self) -> str:
        return self._azure_api_key

    @property
    def AZURE_OPENAI_API_VERSION(self) -> str:
        return self._azure_api_version

    @property
    def AZURE_OPENAI_DEPLOYMENT(self) -> str:
        return self._azure_deployment

    @property
    def USE_AZURE_OPENAI(self) -> bool:
        return self._use_azure_openai

    @property
    def OPENAI_MODEL(self) -> str:
        """Explicit model id; empty means pick the best available one."""
        return self._openai_model

    @property
    def AI_BATCH_SIZE(self) -> int:
        return self._ai_batch_size

    @property
    def AI_TIMEOUT_SEC(self) -> int:
        return self._ai_timeout_sec

    @property
    def LOG_LEVEL(self) -> str:
        return self._log_level

    @property
    def OUTPUT_DIR(self) -> str:
        return self._output_dir

    @property
    def AI_AVAILABLE(self) -> bool:
        return bool(self._openai_api_key) or self._use_azure_openai
