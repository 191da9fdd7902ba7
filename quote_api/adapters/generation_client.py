from __future__ import annotations

import json
import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

import httpx

from quote_api.core.exceptions import UpstreamFailure
from quote_api.domain.validator import as_number
from quote_api.schemas.quote import Approval

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationRequest:
    user_prompt: str  # already sanitized
    rule_context: Optional[str] = None
    org_context: Optional[str] = None  # already sanitized (opaque)
    products: List[Dict[str, Any]] = field(default_factory=list)
    session_id: str = ""


class GenerationPort(Protocol):
    async def generate(self, request: GenerationRequest) -> Dict[str, Any]: ...


SYSTEM_PROMPT = """You are a CPQ pricing engine assistant. Your job is to parse natural language quote requests and generate accurate, rule-compliant quote line items.

You will be provided with:
1. A user's natural language quote request
2. Active pricing rules (structured text)
3. Available products and their list prices
4. Organisation context (environment, account type)

STRICT RULES:
- Apply ALL matching pricing rules exactly as specified
- NEVER invent products; only use products from the provided product list
- ALL prices must be mathematically correct: total_price = unit_price * quantity
- Discount percentage must match: unit_price = list_price * (1 - discount_percent/100)
- If a rule requires approval, set approval.required = true
- Tokens such as EMAIL_0 or [PHONE] are placeholders; keep them verbatim

OUTPUT FORMAT: Respond ONLY with valid JSON matching this exact schema, no markdown, no explanation:
{
  "intent": {"action": "create_quote", "products": ["PRODUCT_CODE_1"]},
  "quote_lines": [
    {
      "product_code": "string",
      "quantity": 0,
      "list_price": 0.00,
      "unit_price": 0.00,
      "discount_percent": 0.00,
      "total_price": 0.00,
      "rules_applied": ["Rule Name 1"]
    }
  ],
  "quote_summary": {"subtotal": 0.00, "total_discount": 0.00, "net_total": 0.00},
  "approval": {"required": false, "chain": "", "reason": ""},
  "warnings": [],
  "product_recommendations": []
}"""


_FENCE_OPEN = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\s*```$")


def build_user_message(request: GenerationRequest) -> str:
    parts = [f"USER REQUEST: {request.user_prompt}"]

    if request.products:
        parts.append("\nAVAILABLE PRODUCTS:")
        parts.append(json.dumps(request.products, indent=2))

    if request.rule_context:
        try:
            rules = json.loads(request.rule_context)
            parts.append("\nACTIVE BUSINESS RULES:")
            parts.append(json.dumps(rules, indent=2))
        except ValueError:
            parts.append("\nACTIVE BUSINESS RULES: " + request.rule_context)

    if request.org_context:
        # only structured org context is forwarded
        try:
            ctx = json.loads(request.org_context)
            parts.append("\nORGANISATION CONTEXT:")
            parts.append(json.dumps(ctx, indent=2))
        except ValueError:
            pass

    return "\n".join(parts)


def parse_candidate(raw: str) -> Any:
    """
    Parse model output as JSON.

    Strips markdown code fences, then falls back to the first '{' .. last '}'
    slice before giving up with UpstreamFailure.
    """
    cleaned = _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", (raw or "").strip())).strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        start = cleaned.find("{")
        end = cleaned.rfind("}")
        if start != -1 and end > start:
            try:
                return json.loads(cleaned[start:end + 1])
            except json.JSONDecodeError:
                pass
    raise UpstreamFailure("Generation service returned invalid JSON. Response: " + (raw or "")[:200])


class LLMGenerationClient(GenerationPort):
    def __init__(
        self,
        model: str = "gpt-4o-mini",
        temperature: float = 0.1,
        max_tokens: int = 4096,
        api_key: Optional[str] = None,
        llm: Any = None,
    ) -> None:
        from langchain_core.output_parsers import StrOutputParser
        from langchain_core.prompts import ChatPromptTemplate

        if llm is None:
            from langchain_openai import ChatOpenAI

            llm_kw: Dict[str, Any] = dict(model=model, temperature=temperature, max_tokens=max_tokens)
            if api_key:
                llm_kw["api_key"] = api_key
            llm = ChatOpenAI(**llm_kw)
        self.model = model
        prompt = ChatPromptTemplate.from_messages(
            [("system", "{system}"), ("human", "{request}")]
        )
        self._chain = prompt | llm | StrOutputParser()

    async def generate(self, request: GenerationRequest) -> Dict[str, Any]:
        message = build_user_message(request)
        logger.info(
            "llm_request session=%s model=%s prompt_length=%d",
            request.session_id, self.model, len(message),
        )
        try:
            raw = await self._chain.ainvoke({"system": SYSTEM_PROMPT, "request": message})
        except Exception as e:
            logger.error("llm_error session=%s error=%s", request.session_id, e)
            raise UpstreamFailure(f"LLM call failed: {e}") from e

        candidate = parse_candidate(raw)
        logger.info("llm_response session=%s response_length=%d", request.session_id, len(raw or ""))
        return candidate


class HttpGenerationClient(GenerationPort):
    def __init__(
        self,
        base_url: str,  # e.g. "http://localhost:8002/generate"
        timeout: float = 30.0,
        follow_redirects: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = base_url.rstrip("/")
        self.timeout = timeout
        self.follow_redirects = follow_redirects
        self._transport = transport

    async def generate(self, request: GenerationRequest) -> Dict[str, Any]:
        sid = request.session_id or str(uuid.uuid4())
        payload: Dict[str, Any] = {
            "user_prompt": request.user_prompt,
            "rule_context": request.rule_context,
            "org_context": request.org_context,
            "products": request.products,
        }
        headers = {"X-Session-Id": sid}
        logger.info("generation_request session=%s url=%s", sid, self.url)

        async with httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=self.follow_redirects,
            transport=self._transport,
        ) as client:
            try:
                resp = await client.post(self.url, json=payload, headers=headers)
            except httpx.HTTPError as e:
                logger.error("generation_error session=%s error=%s", sid, e)
                raise UpstreamFailure(f"Generation service unreachable at {self.url}: {e}") from e

            try:
                resp.raise_for_status()
                if (
                    "application/json"
                    not in (resp.headers.get("content-type") or "").lower()
                ):
                    raise UpstreamFailure(
                        f"Generation service returned non-JSON (status={resp.status_code})"
                    )
                return resp.json()
            except UpstreamFailure:
                raise
            except (httpx.HTTPStatusError, ValueError) as e:
                detail = (resp.text or "")[:800]
                logger.error("generation_error session=%s status=%s", sid, resp.status_code)
                raise UpstreamFailure(
                    f"Generation error at {self.url} (status={resp.status_code}): {detail}"
                ) from e


class MockGenerationClient(GenerationPort):
    """
    Offline stand-in for the generation service.

    Prices the caller's product list at a flat discount. It never reads the
    prompt, so it exercises the pipeline without guessing intent.
    """

    def __init__(self, discount_percent: float = 10.0, approval_threshold: float = 50000.0) -> None:
        self.discount_percent = discount_percent
        self.approval_threshold = approval_threshold

    async def generate(self, request: GenerationRequest) -> Dict[str, Any]:
        logger.info(
            "mock_quote session=%s product_count=%d", request.session_id, len(request.products)
        )
        lines: List[Dict[str, Any]] = []
        for p in request.products:
            list_price = as_number(p.get("list_price"))
            if list_price is None or list_price < 0:
                list_price = 0.0
            quantity = as_number(p.get("quantity"))
            if quantity is None or quantity <= 0:
                quantity = 1
            elif quantity.is_integer():
                quantity = int(quantity)
            unit_price = round(list_price * (1 - self.discount_percent / 100), 2)
            lines.append({
                "product_code": p.get("product_code"),
                "quantity": quantity,
                "list_price": list_price,
                "unit_price": unit_price,
                "discount_percent": self.discount_percent,
                "total_price": round(unit_price * quantity, 2),
                "rules_applied": [f"Standard Discount {self.discount_percent:g}%"],
            })

        subtotal = round(sum(l["list_price"] * l["quantity"] for l in lines), 2)
        net_total = round(sum(l["total_price"] for l in lines), 2)
        needs_approval = net_total > self.approval_threshold
        approval = Approval(
            required=needs_approval,
            chain="Sales Manager → VP Sales" if needs_approval else "",
            reason=(
                f"Quote total exceeds {self.approval_threshold:,.0f} approval threshold"
                if needs_approval else ""
            ),
        )

        return {
            "intent": {"action": "create_quote", "products": [l["product_code"] for l in lines]},
            "quote_lines": lines,
            "quote_summary": {
                "subtotal": subtotal,
                "total_discount": round(subtotal - net_total, 2),
                "net_total": net_total,
            },
            "approval": approval.model_dump(),
            "warnings": ["MOCK MODE: responses are simulated. Configure a generation backend for live quotes."],
            "product_recommendations": [],
        }
