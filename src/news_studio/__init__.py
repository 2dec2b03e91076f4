"""Relay for Naver News scraping and OpenAI/Gemini text generation."""

__all__ = ["config", "models", "providers", "scraper", "server"]
