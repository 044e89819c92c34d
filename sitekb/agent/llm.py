"""LLM provider configuration using LangChain abstractions."""

from langchain_core.language_models.chat_models import BaseChatModel

from config.settings import get_settings

# Phone replies are one to three sentences.
MAX_REPLY_TOKENS = 300


def get_llm() -> BaseChatModel:
    """Create and return the configured chat model.

    Default: Anthropic Claude via langchain-anthropic.
    """
    settings = get_settings()
    provider = settings.sitekb_llm_provider.lower()

    if provider == "anthropic":
        from langchain_anthropic import ChatAnthropic

        return ChatAnthropic(
            model=settings.sitekb_llm_model,
            temperature=0.3,
            max_tokens=MAX_REPLY_TOKENS,
            api_key=settings.anthropic_api_key,
        )
    elif provider == "google":
        from langchain_google_genai import ChatGoogleGenerativeAI

        return ChatGoogleGenerativeAI(
            model=settings.sitekb_llm_model,
            temperature=0.3,
            max_output_tokens=MAX_REPLY_TOKENS,
        )
    else:
        raise ValueError(
            f"Unsupported LLM provider: {provider}. "
            "Supported: 'anthropic', 'google'"
        )
