"""
Services Module - Request Orchestration
=======================================

Modules:
    validation: Agent config checks, field rules, prompt sanitization, provider parameter allow-lists
    prompt_composer: Form values to user prompt, language directive, modification block
    system_prompt: Nine-segment system prompt assembly with preloaded context
    model_cache: TTL-cached model listing and token pricing
    response_parsers: Provider response-shape parsers and the first-success combinator
    builders: Chat, image, video and voice request builders
    dispatcher: The orchestration entry point
"""
