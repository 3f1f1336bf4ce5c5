# granaapp/core/config.py

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from loguru import logger
from pathlib import Path


def find_dotenv_path(filename: str = '.env', usecwd: bool = False) -> str | None:
    """Procura o arquivo .env subindo a partir do diretório do módulo (ou do CWD)."""
    start_dir = Path.cwd() if usecwd else Path(__file__).resolve().parent
    current_dir = start_dir
    for _ in range(10):
        env_path = current_dir / filename
        if env_path.is_file():
            logger.debug(f"Found {filename} at: {env_path}")
            return str(env_path)
        parent_dir = current_dir.parent
        if parent_dir == current_dir:
            break
        current_dir = parent_dir
    if not usecwd:
        env_path_cwd = Path.cwd() / filename
        if env_path_cwd.is_file():
            logger.debug(f"Found {filename} at CWD: {env_path_cwd}")
            return str(env_path_cwd)
    logger.debug(f"{filename} not found in parent directories of {start_dir} or CWD.")
    return None


def find_env_files(filenames: tuple[str, ...] = ('.env', '.env.local')) -> tuple[str, ...] | None:
    """Arquivos .env existentes, na ordem de precedência; None quando não há nenhum."""
    found = tuple(path for path in (find_dotenv_path(name) for name in filenames) if path)
    return found or None


class Settings(BaseSettings):
    PROJECT_NAME: str = "GranaApp API"
    API_PREFIX: str = "/api"
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"
    LOG_SERIALIZE: bool = False  # JSON lines (para coletores de log)
    FRONTEND_ORIGIN: str = "*"

    # OpenAI
    OPENAI_API_KEY: str | None = None
    OPENAI_API_URL: str = "https://api.openai.com/v1"
    OPENAI_CHAT_MODEL: str = Field(default="gpt-4o-mini")
    OPENAI_TEMPERATURE: float = 0.2
    OPENAI_TRANSCRIBE_MODEL: str = Field(default="gpt-4o-mini-transcribe")
    OPENAI_TIMEOUT_SECONDS: float = 60.0

    # Supabase (service role, sem sessão persistente)
    SUPABASE_URL: str | None = None
    SUPABASE_SERVICE_KEY: str | None = None

    # Limite de chamadas de ferramenta por conversa
    ASSISTANT_MAX_TOOL_STEPS: int = Field(default=8, ge=1)

    # Cotações (Yahoo Finance direto ou via RapidAPI quando há chave)
    YAHOO_API_URL: str = "https://query1.finance.yahoo.com/v7/finance/quote"
    YAHOO_BATCH_SIZE: int = Field(default=50, ge=1)
    RAPID_API_KEY: str | None = None
    RAPID_API_HOST: str = "yh-finance.p.rapidapi.com"
    RAPID_API_PATH: str = "/market/v2/get-quotes"
    QUOTES_TIMEOUT_SECONDS: float = 30.0

    model_config = SettingsConfigDict(
        # .env primeiro, .env.local sobrescreve
        env_file=find_env_files(),
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=False,
    )


@lru_cache()
def get_settings() -> Settings:
    """Carrega e valida as configurações da aplicação."""
    logger.info("Loading application settings...")
    env_files_found = find_env_files() or ()
    if env_files_found:
        logger.info(f"Loading environment variables from: {', '.join(env_files_found)}")
    else:
        logger.warning("No .env file found. Loading settings from system environment variables only.")

    settings_instance = Settings()

    # Credenciais ausentes não impedem o boot; os endpoints respondem 500 por requisição
    if not settings_instance.OPENAI_API_KEY:
        logger.warning("OPENAI_API_KEY not set. Chat and transcription endpoints will answer 500.")
    missing_store = [k for k in ('SUPABASE_URL', 'SUPABASE_SERVICE_KEY') if not getattr(settings_instance, k, None)]
    if missing_store:
        logger.warning(f"Supabase keys missing ({', '.join(missing_store)}). Finance tools will be unavailable.")

    logger.info("Settings loaded successfully.")
    return settings_instance


settings = get_settings()
