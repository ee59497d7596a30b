"""Azure client registry.

Each client is only created when its configuration is present, so a partially
configured deployment still serves the routes it can.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from azure.identity import DefaultAzureCredential
from azure.keyvault.secrets import SecretClient
from azure.storage.blob import BlobServiceClient
from openai import AzureOpenAI

from azure_lens.core import config
from azure_lens.services.translation_service import TranslatorClient
from azure_lens.services.vision_service import AzureVisionClient

logger = logging.getLogger(__name__)


@dataclass
class AzureClients:
    vision: Optional[AzureVisionClient] = None
    translator: Optional[TranslatorClient] = None
    openai: Optional[Any] = None
    blob_service: Optional[Any] = None
    key_vault: Optional[Any] = None


_clients = AzureClients()


def _secret_from_vault(key_vault, name: str) -> Optional[str]:
    """Fetch a secret value, returning None when it cannot be read"""
    try:
        return key_vault.get_secret(name).value
    except Exception as e:
        logger.warning("Could not read secret %s from Key Vault: %s", name, e)
        return None


def initialize_azure_clients() -> AzureClients:
    """Build every configured Azure client and store them in the registry"""
    global _clients

    logger.info("Initializing Azure clients...")
    clients = AzureClients()

    try:
        vision_key = config.VISION_API_KEY
        translator_key = config.TRANSLATOR_API_KEY
        openai_key = config.OPENAI_API_KEY

        if config.KEY_VAULT_URL:
            clients.key_vault = SecretClient(
                vault_url=config.KEY_VAULT_URL, credential=DefaultAzureCredential()
            )
            logger.info("Key Vault client initialized")

            # Keys missing from the environment are looked up in Key Vault
            if not vision_key:
                vision_key = _secret_from_vault(clients.key_vault, "vision-api-key")
            if not translator_key:
                translator_key = _secret_from_vault(
                    clients.key_vault, "translator-api-key"
                )
            if not openai_key:
                openai_key = _secret_from_vault(clients.key_vault, "openai-api-key")

        if config.VISION_ENDPOINT and vision_key:
            clients.vision = AzureVisionClient(config.VISION_ENDPOINT, vision_key)
            logger.info("Vision client initialized")

        if translator_key:
            clients.translator = TranslatorClient(
                config.TRANSLATOR_ENDPOINT, translator_key, config.TRANSLATOR_REGION
            )
            logger.info("Translator client initialized")

        if config.OPENAI_ENDPOINT and openai_key:
            clients.openai = AzureOpenAI(
                azure_endpoint=config.OPENAI_ENDPOINT,
                api_key=openai_key,
                api_version=config.OPENAI_API_VERSION,
            )
            logger.info("OpenAI client initialized")

        if config.STORAGE_CONNECTION_STRING:
            clients.blob_service = BlobServiceClient.from_connection_string(
                config.STORAGE_CONNECTION_STRING
            )
            logger.info("Blob Storage client initialized")

    except Exception:
        logger.exception("Failed to initialize Azure clients")
        raise

    _clients = clients
    logger.info("Azure clients initialized")
    return clients


def get_azure_clients() -> AzureClients:
    return _clients


def set_azure_clients(clients: AzureClients) -> None:
    """Replace the registry, used by tests and scripts"""
    global _clients
    _clients = clients
