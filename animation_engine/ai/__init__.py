"""
AI image providers.

- models: catalog of supported models and their image usage modes
- client: generate/edit capability used by AI blocks, with provider routing
- openai_image / google_ai: provider-specific services
"""
