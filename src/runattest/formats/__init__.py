from runattest.formats.registry import FormatterRegistry, Payloader, create_payload, default_registry

__all__ = ["FormatterRegistry", "Payloader", "create_payload", "default_registry"]
