#!/usr/bin/env python3
"""
Azure Lens API - Main Entry Point

Backend that proxies Azure AI Vision, Translator, OpenAI and Blob Storage
for the Azure Lens mobile app.
"""

if __name__ == "__main__":
    import uvicorn
    from azure_lens.api.main import app
    from azure_lens.core import config

    uvicorn.run(app, host=config.HOST, port=config.PORT)
