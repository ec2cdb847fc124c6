"""
Core Layer - Configuration, Errors and Rule Texts
=================================================

Modules:
    constants: Limits, allow-lists, timeouts and Pydantic settings
    exceptions: AppException hierarchy, one subclass per failure category
    prompts: Default system prompt rule blocks and the injectable StyleGuide

Configuration (constants.py):
    Settings are loaded from environment variables and .env files
    (.env, .env.{APP_ENV}, .env.local) and cached behind get_settings().
    Tests call clear_settings_cache() or patch get_settings directly.
"""
