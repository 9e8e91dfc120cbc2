"""
Embeddings module - text to vector provider abstraction.

Providers:
- none: No embeddings; recall falls back to keyword search (default)
- openai / voyage: Hosted models via LiteLLM

Providers return an explicit Unavailable value instead of a vector when
no embedding can be produced; configured-provider failures raise ProviderError.
"""
