from langchain_mistralai import ChatMistralAI

from infrastructure.config import Settings


def get_llm(settings: Settings) -> ChatMistralAI:
    return ChatMistralAI(
        model=settings.mistral_model,
        api_key=settings.mistral_api_key,
        temperature=0,
    )
