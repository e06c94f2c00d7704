"""List the models available to the configured Anthropic API key.

Use it to pick PLAN_ANALYSIS_PRIMARY_MODEL and PLAN_ANALYSIS_FALLBACK_MODEL
when a configured name starts returning not-found.

Usage:
    uv run python scripts/list_models.py
"""

import asyncio
import sys

import anthropic

from plan_analysis.config import Settings


async def main() -> int:
    settings = Settings()
    api_key = settings.anthropic_api_key.get_secret_value()
    if not api_key:
        print("PLAN_ANALYSIS_ANTHROPIC_API_KEY is not set.")
        return 1

    client = anthropic.AsyncAnthropic(api_key=api_key)
    try:
        models = [model async for model in client.models.list()]
    except anthropic.APIStatusError as e:
        print(f"Error {e.status_code}: {e.message}")
        return 1
    finally:
        await client.close()

    configured = {settings.primary_model: "primary", settings.fallback_model: "fallback"}
    print("Models available for this key:")
    print("-" * 40)
    for model in models:
        marker = f"  <- {configured[model.id]}" if model.id in configured else ""
        print(f"- {model.id}{marker}")

    available = {m.id for m in models}
    missing = [name for name in configured if name and name not in available]
    for name in missing:
        print(f"\nWarning: configured {configured[name]} model '{name}' is not available.")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
