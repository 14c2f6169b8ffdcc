"""
Framework integrations for toolguard.

Import the submodule for the framework you use; each needs its extra:
``toolguard.integrations.langchain`` (``toolguard[langchain]``) and
``toolguard.integrations.pydantic_ai`` (``toolguard[pydantic-ai]``).
"""
