from crypto_sentiment.ai.provider import AIProvider, OpenRouterProvider, analyze_json, extract_json

__all__ = ["AIProvider", "OpenRouterProvider", "analyze_json", "extract_json"]
