"""Prompt templates for gold ratio analysis."""

from typing import Any

PROMPTS = {
    "accumulation_memo": {
        "description": "Dividend accumulation memo with the asset priced in gold ounces",
        "arguments": [
            {"name": "ticker", "required": True},
            {"name": "horizon_years", "required": False},
            {"name": "language", "required": False},
        ],
    },
}


def get_prompt(name: str, arguments: dict[str, str]) -> dict[str, Any] | None:
    """
    Get a prompt by name with arguments filled in.

    Returns dict with 'messages' key for MCP GetPromptResult.
    """
    if name not in PROMPTS:
        return None

    ticker = arguments.get("ticker", "").upper().strip()
    horizon = arguments.get("horizon_years") or "10"
    language = arguments.get("language") or "en"
    reply_in = "Spanish" if language.lower() == "es" else "English"

    return {
        "messages": [
            {
                "role": "user",
                "content": f"""Write an accumulation memo for {ticker} measured in gold.

Use these tools in order:
1. analyze_gold_ratio("{ticker}", horizon_years={horizon}, language="{language}")
2. If any dividend fundamental is listed in warnings as missing and you know a
   better figure, call override_fundamental("{ticker}", field, value,
   horizon_years={horizon}) and use the updated metrics.

Then provide, in {reply_in}:
1. **Gold Ratio**: current ratio, percentile over {horizon}y, p10-p90 range, trend 12m
2. **Chowder Gate**: yield + 5y growth, pass/fail and expected return scenarios
3. **Dividend Safety**: payout FCF, debt/EBITDA, interest coverage, resilience score
4. **Scores**: core quality, MOS, gold purchase score and its interpretation
5. **Plan**: MOS zone with its size ladder, the action badge verbatim, and the
   follow-up triggers with their current status

Flag is_gold_proxy / is_benchmark_proxy and any warnings explicitly.
Be direct. No hedging.""",
            }
        ]
    }
