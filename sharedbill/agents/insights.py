"""
Billing Insights Agent

CRITICAL BOUNDARIES:
- CAN: Summarize the ledger history it is given
- CANNOT: Modify, persist or "correct" any record
- MUST: Answer "no data" for an empty history WITHOUT calling the model

The LLM only ever sees the records passed in. Its output is display text.
"""

import json
from collections import defaultdict
from typing import Optional, Sequence

import google.generativeai as genai
import structlog

from sharedbill.config import get_settings
from sharedbill.models.ledger import PARTICIPANTS, MonthlyRecord, Participant

logger = structlog.get_logger(__name__)

NO_DATA_RESPONSE = "No data available for analysis."
FAILURE_RESPONSE = "Could not generate insights at this time."


def describe_weights(participants: Sequence[Participant]) -> str:
    """e.g. 'NI and AM pay 2 shares each; AD and SB pay 1 share each.'"""
    by_weight: dict[int, list[str]] = defaultdict(list)
    for p in participants:
        by_weight[p.weight].append(p.name)

    parts = []
    for weight in sorted(by_weight, reverse=True):
        names = by_weight[weight]
        unit = "share" if weight == 1 else "shares"
        if len(names) == 1:
            parts.append(f"{names[0]} pays {weight} {unit}")
        else:
            who = ", ".join(names[:-1]) + f" and {names[-1]}"
            parts.append(f"{who} pay {weight} {unit} each")
    return "; ".join(parts) + "."


class BillInsightsAgent:
    """
    Turns the billing history into a short, friendly status summary.

    The model is created lazily so that an empty ledger (or a test with an
    injected fake) never needs Gemini credentials.
    """

    def __init__(
        self,
        model=None,
        participants: Sequence[Participant] = PARTICIPANTS,
    ):
        self._model = model
        self._participants = tuple(participants)

    def _get_model(self):
        if self._model is None:
            settings = get_settings().gemini
            genai.configure(api_key=settings.api_key)
            self._model = genai.GenerativeModel(
                model_name=settings.model_name,
                generation_config={
                    "temperature": settings.temperature,
                    "max_output_tokens": settings.max_tokens,
                }
            )
        return self._model

    def build_prompt(self, history: Sequence[MonthlyRecord]) -> str:
        names = ", ".join(p.name for p in self._participants)
        records = json.dumps([r.to_wire() for r in history], ensure_ascii=False)
        return f"""Analyze the following shared WiFi bill history for {len(self._participants)} siblings ({names}).
Rules: {describe_weights(self._participants)}
A positive balanceCarryForward means that sibling still owes money; negative means credit.
History: {records}

Provide a concise summary of:
1. Who is most consistent with payments.
2. Any notable trends in the total bill.
3. A friendly, light-hearted "status update" message for the group chat.
Keep the tone helpful and professional yet warm.

IMPORTANT: Use ONLY the data above. Do NOT invent months, amounts or payments."""

    async def summarize(self, history: Sequence[MonthlyRecord]) -> str:
        """
        Summarize the ledger.

        Returns:
            Summary text; the fixed no-data text for an empty history, or the
            fixed failure text if the model call fails
        """
        if not history:
            return NO_DATA_RESPONSE

        try:
            response = await self._get_model().generate_content_async(
                self.build_prompt(history)
            )
            text = (response.text or "").strip()
        except Exception as e:
            logger.error("gemini_summary_failed", error=str(e))
            return FAILURE_RESPONSE

        return text or FAILURE_RESPONSE
