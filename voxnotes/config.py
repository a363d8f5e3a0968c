import os
import logging
import importlib
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import load_dotenv

# Переменные окружения из .env (если файл есть)
load_dotenv()

# Определяем, запущены ли мы в контейнере
IN_CONTAINER = os.path.exists('/app') and os.access('/app', os.W_OK)

if IN_CONTAINER:
    DATA_DIR = Path(os.getenv('DATA_DIR', '/app/data'))
else:
    DATA_DIR = Path(os.getenv('DATA_DIR', './data'))
DATA_DIR.mkdir(parents=True, exist_ok=True)

ENVIRONMENT = os.getenv('ENVIRONMENT', 'development').lower()

# ===== ЛОГИРОВАНИЕ =====
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(DATA_DIR / 'voxnotes.log'),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger("voxnotes")

# ===== БАЗА ДАННЫХ =====
DATABASE_URL = os.getenv('DATABASE_URL', f'sqlite:///{DATA_DIR.absolute()}/voxnotes.db')

# ===== ОЧЕРЕДЬ =====
QUEUE_BACKEND = os.getenv('QUEUE_BACKEND', 'database').lower()
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
QUEUE_KEY_PREFIX = os.getenv('QUEUE_KEY_PREFIX', 'voxnotes:queue:')
QUEUE_POP_TIMEOUT = float(os.getenv('QUEUE_POP_TIMEOUT', '1'))
WORKER_IDLE_SLEEP = float(os.getenv('WORKER_IDLE_SLEEP', '1'))

# ===== АУДИО =====
FFMPEG_BINARY_PATH = os.getenv('FFMPEG_BINARY_PATH', 'ffmpeg')
FFPROBE_BINARY_PATH = os.getenv('FFPROBE_BINARY_PATH', 'ffprobe')
UPLOADS_DIR = Path(os.getenv('UPLOADS_DIR', str(DATA_DIR / 'uploads')))

# ===== ВНЕШНИЕ СЕРВИСЫ =====
TRANSCRIPTION_API_URL = os.getenv('TRANSCRIPTION_API_URL', 'https://api.openai.com/v1')
TRANSCRIPTION_API_KEY = os.getenv('TRANSCRIPTION_API_KEY', os.getenv('OPENAI_API_KEY', ''))
TRANSCRIPTION_MODEL = os.getenv('TRANSCRIPTION_MODEL', 'whisper-1')
TRANSCRIPTION_TIMEOUT = float(os.getenv('TRANSCRIPTION_TIMEOUT', '300'))

SUMMARY_API_URL = os.getenv('SUMMARY_API_URL', 'https://api.deepseek.com/v1')
SUMMARY_API_KEY = os.getenv('SUMMARY_API_KEY', os.getenv('DEEPSEEK_API_KEY', ''))
SUMMARY_MODEL = os.getenv('SUMMARY_MODEL', 'deepseek-chat')
SUMMARY_TIMEOUT = float(os.getenv('SUMMARY_TIMEOUT', '60'))

NOTION_API_URL = os.getenv('NOTION_API_URL', 'https://api.notion.com/v1')
NOTION_VERSION = os.getenv('NOTION_VERSION', '2022-06-28')
NOTION_TIMEOUT = float(os.getenv('NOTION_TIMEOUT', '30'))

# Никогда не храните реальные токены в коде/репозитории.
BOT_TOKEN = os.getenv('BOT_TOKEN', '')
TELEGRAM_API_URL = os.getenv('TELEGRAM_API_URL', 'https://api.telegram.org')

logger.debug(
    "Configuration loaded",
    extra={
        "environment": ENVIRONMENT,
        "queue_backend": QUEUE_BACKEND,
        "data_dir": str(DATA_DIR),
    },
)


def load_pipeline_service_overrides() -> Optional[Mapping[str, Any]]:
    """Загрузить переопределения сервисов пайплайна из переменной окружения.

    Ожидается значение формата ``module.path:factory``. Фабрика возвращает mapping
    с ключами transcode/transcribe/summarize/create_remote_note/
    create_remote_database/notify/probe_duration.
    """

    target = os.getenv("PIPELINE_SERVICE_OVERRIDES")
    if not target:
        return None

    module_name, _, attr = target.partition(":")
    if not module_name or not attr:
        logger.warning(
            "PIPELINE_SERVICE_OVERRIDES: expected 'module:attr'",
            extra={"value": target},
        )
        return None

    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        logger.warning(
            "PIPELINE_SERVICE_OVERRIDES: module import failed",
            extra={"module": module_name, "error": str(exc)},
        )
        return None

    value = getattr(module, attr, None)
    if value is None:
        logger.warning(
            "PIPELINE_SERVICE_OVERRIDES: attribute not found",
            extra={"module": module_name, "attr": attr},
        )
        return None

    if callable(value):
        try:
            value = value()
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "PIPELINE_SERVICE_OVERRIDES: factory raised",
                extra={"module": module_name, "attr": attr, "error": str(exc)},
            )
            return None

    if not isinstance(value, Mapping):
        logger.warning(
            "PIPELINE_SERVICE_OVERRIDES: factory must return a mapping",
            extra={"returned_type": type(value).__name__},
        )
        return None

    return value


__all__ = [
    "BOT_TOKEN",
    "DATABASE_URL",
    "IN_CONTAINER",
    "QUEUE_BACKEND",
    "REDIS_URL",
    "logger",
    "load_pipeline_service_overrides",
]
