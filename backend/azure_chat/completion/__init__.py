from azure_chat.completion.client import AzureOpenAIClient

__all__ = ["AzureOpenAIClient"]
