"""
Integrations Module - Model Clients, Event Sinks and Project Files
==================================================================

Adapters between the pipeline and the outside world.

Modules:
    model_clients: ModelClient protocol with AsyncOpenAI and LangChain implementations
    event_sink: EventSink protocol, the data-stream line encoder, memory and queue sinks
    file_context: Project file filtering and serialization into the generator context
    context_selector: LLM-driven selection of the files relevant to a conversation

Every provider is reached through its OpenAI-compatible endpoint, so both
clients only need a base URL and a key from ``core.providers``. Provider
errors are re-raised as ``ModelInvocationError``.
"""
