"""
prompts/ — All LLM prompt templates.

One file per component. Import the prompt constant you need:

    from prompts.summarizer import PARTIAL_SYSTEM_PROMPT, GENERAL_PROMPT
    from prompts.search import ALTERNATIVE_QUERIES_PROMPT, RERANK_PROMPT
    from prompts.chat import CHAT_SYSTEM_PROMPT
"""
