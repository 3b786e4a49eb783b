"""
Pipeline agents.

Modules:
    base: Agent base class, AgentContext and AgentResult
    prompt_enhancer: Rewrites the last user message into a precise request
    code_generator: Answers the conversation with project files in context
    orchestrator: Runs both stages in order
    factory: Builds the standard or langchain pipeline
    tester: Runs agents against a sample prompt for the debug endpoint
"""
