import os
from dotenv import load_dotenv

# Carregar variáveis do arquivo .env
load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    # Busca (Google Custom Search JSON API)
    GOOGLE_API_KEY: str = os.getenv("GOOGLE_API_KEY", "")
    GOOGLE_CX: str = os.getenv("GOOGLE_CX", "")
    GOOGLE_SEARCH_URL: str = os.getenv(
        "GOOGLE_SEARCH_URL", "https://www.googleapis.com/customsearch/v1"
    )

    # Fetch de páginas / ads.txt
    PUBSPY_USER_AGENT: str = os.getenv(
        "PUBSPY_USER_AGENT",
        "Mozilla/5.0 (compatible; PubSpy/1.0; +https://pubspy.example.com)",
    )
    # Proxy opcional para buscar páginas-alvo (ex: gateway rotativo)
    PAGE_FETCH_PROXY_URL: str = os.getenv("PAGE_FETCH_PROXY_URL", "")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_JSON: bool = _env_bool("LOG_JSON", False)


settings = Settings()
