import os
from dotenv import load_dotenv

load_dotenv()

# Application Configuration
APP_NAME = "Azure Lens API"
APP_VERSION = "1.0.0"
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE")

# Azure AI Vision Configuration
VISION_ENDPOINT = os.getenv("VISION_ENDPOINT")
VISION_API_KEY = os.getenv("VISION_API_KEY")
VISION_API_VERSION = "2024-02-01"
VISION_TIMEOUT = 30

# Azure Translator Configuration
TRANSLATOR_ENDPOINT = os.getenv(
    "TRANSLATOR_ENDPOINT", "https://api.cognitive.microsofttranslator.com"
)
TRANSLATOR_API_KEY = os.getenv("TRANSLATOR_API_KEY")
TRANSLATOR_REGION = os.getenv("TRANSLATOR_REGION", "global")
TRANSLATOR_API_VERSION = "3.0"

# Azure OpenAI Configuration
OPENAI_ENDPOINT = os.getenv("OPENAI_ENDPOINT")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_DEPLOYMENT_NAME = os.getenv("OPENAI_DEPLOYMENT_NAME", "gpt-4o")
OPENAI_API_VERSION = os.getenv("OPENAI_API_VERSION", "2024-02-01")
OPENAI_MAX_TOKENS = 4000
OPENAI_TEMPERATURE = 0.7

# Azure Blob Storage / Key Vault Configuration
STORAGE_CONNECTION_STRING = os.getenv("STORAGE_CONNECTION_STRING")
STORAGE_CONTAINER_NAME = os.getenv("STORAGE_CONTAINER_NAME", "images")
KEY_VAULT_URL = os.getenv("KEY_VAULT_URL")

# Rate limiting for /api/ routes
RATE_LIMIT_MAX_REQUESTS = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "100"))
RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "900"))

# Upload limits
MAX_UPLOAD_SIZE = 10 * 1024 * 1024  # 10MB, multipart uploads
MAX_IMAGE_SIZE = 20 * 1024 * 1024  # 20MB, decoded image sent to the AI services
ALLOWED_MIME_TYPES = {
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/bmp",
    "image/webp",
}

# Vision features and languages
VISUAL_FEATURES = [
    "Caption",
    "DenseCaptions",
    "Objects",
    "People",
    "Read",
    "SmartCrops",
    "Tags",
]
DEFAULT_ANALYSIS_FEATURES = ["Caption", "Objects", "Tags", "People"]
VISION_LANGUAGES = ["en", "es", "fr", "de", "it", "pt", "ru", "ja", "ko", "zh"]

# Translator languages
SUPPORTED_LANGUAGES = {
    "ar": "Arabic",
    "zh": "Chinese (Simplified)",
    "zh-Hant": "Chinese (Traditional)",
    "en": "English",
    "fr": "French",
    "de": "German",
    "hi": "Hindi",
    "it": "Italian",
    "ja": "Japanese",
    "ko": "Korean",
    "pt": "Portuguese",
    "ru": "Russian",
    "es": "Spanish",
    "th": "Thai",
    "tr": "Turkish",
    "vi": "Vietnamese",
}
DEFAULT_TARGET_LANGUAGE = "en"
MAX_TRANSLATION_TEXT_LENGTH = 10000
MAX_BATCH_TEXTS = 100

# CORS
if ENVIRONMENT == "production":
    CORS_ORIGINS = ["https://your-mobile-app-domain.com"]
else:
    CORS_ORIGINS = ["http://localhost:3000", "http://localhost:19006"]


def is_development() -> bool:
    return ENVIRONMENT == "development"
