import os
import pathlib

from dataclasses import dataclass


IMAGE_STRATEGIES = ("proxy", "rehost", "none")


@dataclass
class AppConfig:
    """Application runtime configuration.

    Args:
        notion_api_key: Notion integration secret.
        notion_database_id: Target Notion database id.
        notion_base_url: Notion API base url.
        notion_version: Notion-Version header value.
        feishu_base_url: Feishu open platform base url.
        feishu_app_id: App id for Feishu custom app.
        feishu_app_secret: App secret for Feishu custom app.
        feishu_bitable_app_token: Bitable app token holding the index table.
        feishu_table_id: Bitable table id for saved article records.
        feishu_folder_token: Optional drive folder token for created documents.
        image_strategy: Image URL strategy: proxy, rehost or none.
        image_proxy_host: Public image proxy host used by proxy strategy.
        imgur_client_id: Client id for anonymous image re-hosting.
        image_upload_batch_size: Concurrent uploads per re-host batch.
        request_timeout: HTTP timeout in seconds.
        max_retries: Total attempts for one HTTP request.
        retry_backoff: Retry backoff multiplier in seconds.
        llm_base_url: OpenAI-compatible LLM base URL.
        llm_api_key: OpenAI-compatible LLM API key.
        llm_model: LLM model name for article summary.
    """

    notion_api_key: str = ""
    notion_database_id: str = ""
    notion_base_url: str = "https://api.notion.com"
    notion_version: str = "2022-06-28"
    feishu_base_url: str = "https://open.feishu.cn"
    feishu_app_id: str = ""
    feishu_app_secret: str = ""
    feishu_bitable_app_token: str = ""
    feishu_table_id: str = ""
    feishu_folder_token: str = ""
    image_strategy: str = "proxy"
    image_proxy_host: str = "images.weserv.nl"
    imgur_client_id: str = ""
    image_upload_batch_size: int = 3
    request_timeout: float = 30.0
    max_retries: int = 1
    retry_backoff: float = 1.0
    llm_base_url: str = ""
    llm_api_key: str = ""
    llm_model: str = ""

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Build configuration from environment variables.

        Args:
            cls: Class reference used by dataclass factory.
        """

        load_dotenv_if_exists()

        image_strategy = os.getenv("IMAGE_STRATEGY", "proxy").strip().lower()
        if image_strategy not in IMAGE_STRATEGIES:
            image_strategy = "proxy"

        return cls(
            notion_api_key = os.getenv("NOTION_API_KEY", ""),
            notion_database_id = os.getenv("NOTION_DATABASE_ID", ""),
            notion_base_url = os.getenv("NOTION_BASE_URL", "https://api.notion.com").rstrip("/"),
            notion_version = os.getenv("NOTION_VERSION", "2022-06-28"),
            feishu_base_url = os.getenv("FEISHU_BASE_URL", "https://open.feishu.cn").rstrip("/"),
            feishu_app_id = os.getenv("FEISHU_APP_ID", ""),
            feishu_app_secret = os.getenv("FEISHU_APP_SECRET", ""),
            feishu_bitable_app_token = os.getenv("FEISHU_BITABLE_APP_TOKEN", ""),
            feishu_table_id = os.getenv("FEISHU_TABLE_ID", ""),
            feishu_folder_token = os.getenv("FEISHU_FOLDER_TOKEN", ""),
            image_strategy = image_strategy,
            image_proxy_host = os.getenv("IMAGE_PROXY_HOST", "images.weserv.nl"),
            imgur_client_id = os.getenv("IMGUR_CLIENT_ID", ""),
            image_upload_batch_size = int(os.getenv("IMAGE_UPLOAD_BATCH_SIZE", "3")),
            request_timeout = float(os.getenv("REQUEST_TIMEOUT", "30")),
            max_retries = int(os.getenv("MAX_RETRIES", "1")),
            retry_backoff = float(os.getenv("RETRY_BACKOFF", "1.0")),
            llm_base_url = os.getenv("LLM_BASE_URL", ""),
            llm_api_key = os.getenv("LLM_API_KEY", ""),
            llm_model = os.getenv("LLM_MODEL", "")
        )


def get_project_root() -> pathlib.Path:
    """Return repository root directory.

    Args:
        None
    """

    return pathlib.Path(__file__).resolve().parent.parent


def load_dotenv_if_exists(dotenv_path: str = ".env") -> None:
    """Load .env key-values into process env if file exists.

    Args:
        dotenv_path: .env file path, relative to the working directory first
            and the project root second.
    """

    candidates = [pathlib.Path(dotenv_path), get_project_root() / dotenv_path]
    env_path = next((path for path in candidates if path.is_file()), None)
    if env_path is None:
        return

    with open(env_path, "r", encoding = "utf-8") as fp:
        for raw_line in fp:
            line = raw_line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue
            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip().strip('"').strip("'")
            if key and key not in os.environ:
                os.environ[key] = value
