from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterable, List, Mapping, NamedTuple, Optional, Union

from quote_api.core.exceptions import InputShapeError, LineDefectError, SummaryMismatchError

logger = logging.getLogger(__name__)

DEFAULT_PRICE_TOLERANCE = 0.01

# Unit prices keep four decimals, money amounts two
UNIT_PRICE_DIGITS = 4
MONEY_DIGITS = 2

Defect = Union[LineDefectError, SummaryMismatchError]


class AuditResult(NamedTuple):
    document: Dict[str, Any]
    defects: List[Defect]


def as_number(x: Any) -> Optional[float]:
    """Finite number from an int/float/numeric string, None otherwise."""
    if isinstance(x, bool) or x is None:
        return None
    if isinstance(x, (int, float)):
        v = float(x)
    elif isinstance(x, str):
        try:
            v = float(x.strip())
        except ValueError:
            return None
    else:
        return None
    return v if math.isfinite(v) else None


def _tidy(v: float) -> Union[int, float]:
    """Keep integral quantities as ints so they serialize as 2, not 2.0."""
    return int(v) if v.is_integer() else v


def build_price_reference(products: Optional[Iterable[Any]]) -> Dict[str, float]:
    """
    product_code -> list_price from the caller's product list.

    Accepts ProductReference models or plain dicts (productCode/product_code,
    list_price/unitPrice/price). Entries without a code or a usable price are
    skipped.
    """
    ref: Dict[str, float] = {}
    for p in products or []:
        if hasattr(p, "model_dump"):
            p = p.model_dump()
        if not isinstance(p, Mapping):
            continue
        code = p.get("product_code") or p.get("productCode") or p.get("code")
        price = None
        for key in ("list_price", "unitPrice", "price"):
            price = as_number(p.get(key))
            if price is not None:
                break
        if code and price is not None and price >= 0:
            ref[str(code)] = price
    return ref


class QuoteValidator:
    """
    Deterministic audit of an untrusted candidate quote document.

    Every price-derived field is recomputed from list price, discount and
    quantity; the generator's numbers are only compared, never kept. Each
    correction is recorded as exactly one warning. The validator keeps no
    state between calls, so ``validate`` is idempotent: running it on its
    own output with the same products changes nothing.
    """

    def __init__(self, tolerance: float = DEFAULT_PRICE_TOLERANCE) -> None:
        if tolerance < 0:
            raise ValueError("tolerance must be non-negative")
        self.tolerance = tolerance

    def _differs(self, reported: Optional[float], expected: float) -> bool:
        return reported is None or abs(reported - expected) > self.tolerance

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    def validate(self, candidate: Any, known_products: Optional[Iterable[Any]] = None) -> Dict[str, Any]:
        return self.audit(candidate, known_products).document

    def audit(self, candidate: Any, known_products: Optional[Iterable[Any]] = None) -> AuditResult:
        """Like ``validate`` but also returns the recorded defects, in warning order."""
        document = self._check_shape(candidate)
        reference = build_price_reference(known_products)

        warnings: List[str] = [str(w) for w in (document.get("warnings") or [])]
        defects: List[Defect] = []

        lines: List[Dict[str, Any]] = []
        for index, raw in enumerate(document.get("quote_lines") or [], start=1):
            line = self._validate_line(index, raw, reference, defects)
            if line is not None:
                lines.append(line)

        summary = self._validate_summary(lines, document.get("quote_summary"), defects)

        warnings.extend(d.message for d in defects)

        result = dict(document)
        result["quote_lines"] = lines
        result["quote_summary"] = summary
        result["warnings"] = warnings

        logger.info(
            "quote validated: lines_in=%d lines_out=%d corrections=%d",
            len(document.get("quote_lines") or []),
            len(lines),
            len(defects),
        )
        return AuditResult(result, defects)

    # ------------------------------------------------------------------
    # shape checks
    # ------------------------------------------------------------------
    @staticmethod
    def _check_shape(candidate: Any) -> Dict[str, Any]:
        if not isinstance(candidate, Mapping):
            raise InputShapeError(
                f"Candidate document must be a structured record, got {type(candidate).__name__}"
            )
        lines = candidate.get("quote_lines")
        if lines is not None and not isinstance(lines, list):
            raise InputShapeError("quote_lines must be a list")
        warnings = candidate.get("warnings")
        if warnings is not None and not isinstance(warnings, list):
            raise InputShapeError("warnings must be a list")
        return dict(candidate)

    # ------------------------------------------------------------------
    # per-line pass
    # ------------------------------------------------------------------
    def _validate_line(
        self,
        index: int,
        raw: Any,
        reference: Dict[str, float],
        defects: List[Defect],
    ) -> Optional[Dict[str, Any]]:
        if not isinstance(raw, Mapping):
            defects.append(LineDefectError(f"Line {index} is not a structured record; line skipped"))
            return None

        line = dict(raw)
        code = line.get("product_code")
        if code is not None and not isinstance(code, (str, int, float)):
            defects.append(LineDefectError(
                f"Line {index} has a non-scalar product_code; line skipped",
                field="product_code", reported=code,
            ))
            return None
        if code is None or not str(code).strip():
            defects.append(LineDefectError(
                f"Line {index} missing product_code; line skipped", field="product_code",
            ))
            return None
        # numeric codes are kept as their text form
        code = str(code)
        line["product_code"] = code

        # quantity
        qty = as_number(line.get("quantity"))
        if qty is None or qty <= 0:
            defects.append(LineDefectError(
                f"Invalid quantity ({line.get('quantity')!r}) for {code}; set to 1",
                product_code=code, field="quantity", reported=line.get("quantity"), corrected=1,
            ))
            qty = 1.0

        # list price
        list_price = self._resolve_list_price(code, line.get("list_price"), reference, defects)

        # discount
        discount = self._resolve_discount(code, line.get("discount_percent"), defects)

        # unit price, always recomputed
        expected_unit = round(list_price * (1 - discount / 100), UNIT_PRICE_DIGITS)
        reported_unit = as_number(line.get("unit_price"))
        if self._differs(reported_unit, expected_unit):
            defects.append(LineDefectError(
                f"Unit price corrected for {code}: reported={line.get('unit_price')}, expected={expected_unit}",
                product_code=code, field="unit_price",
                reported=line.get("unit_price"), corrected=expected_unit,
            ))

        # total price, always recomputed
        expected_total = round(expected_unit * qty, MONEY_DIGITS)
        reported_total = as_number(line.get("total_price"))
        if self._differs(reported_total, expected_total):
            defects.append(LineDefectError(
                f"Total price corrected for {code}: reported={line.get('total_price')}, expected={expected_total}",
                product_code=code, field="total_price",
                reported=line.get("total_price"), corrected=expected_total,
            ))

        rules = line.get("rules_applied")
        line.update(
            quantity=_tidy(qty),
            list_price=list_price,
            discount_percent=discount,
            unit_price=expected_unit,
            total_price=expected_total,
            rules_applied=[str(r) for r in rules] if isinstance(rules, list) else [],
        )
        return line

    def _resolve_list_price(
        self,
        code: Any,
        raw: Any,
        reference: Dict[str, float],
        defects: List[Defect],
    ) -> float:
        reported = as_number(raw)
        known = reference.get(str(code))

        if known is not None:
            if self._differs(reported, known):
                defects.append(LineDefectError(
                    f"List price corrected for {code}: reported={raw}, catalog={known}",
                    product_code=code, field="list_price", reported=raw, corrected=known,
                ))
            return known

        if reported is None or reported < 0:
            defects.append(LineDefectError(
                f"Invalid list price ({raw!r}) for {code}; set to 0",
                product_code=code, field="list_price", reported=raw, corrected=0.0,
            ))
            return 0.0
        return reported

    def _resolve_discount(self, code: Any, raw: Any, defects: List[Defect]) -> float:
        if raw is None:
            return 0.0

        discount = as_number(raw)
        if discount is None:
            defects.append(LineDefectError(
                f"Invalid discount ({raw!r}) for {code}; set to 0",
                product_code=code, field="discount_percent", reported=raw, corrected=0.0,
            ))
            return 0.0

        clamped = min(max(discount, 0.0), 100.0)
        if clamped != discount:
            defects.append(LineDefectError(
                f"Discount out of range for {code}: {raw} → {clamped:g}",
                product_code=code, field="discount_percent", reported=raw, corrected=clamped,
            ))
        return clamped

    # ------------------------------------------------------------------
    # aggregate pass
    # ------------------------------------------------------------------
    def _validate_summary(
        self,
        lines: List[Dict[str, Any]],
        reported_summary: Any,
        defects: List[Defect],
    ) -> Dict[str, Any]:
        summary = dict(reported_summary) if isinstance(reported_summary, Mapping) else {}

        expected = {
            "subtotal": round(sum(l["list_price"] * l["quantity"] for l in lines), MONEY_DIGITS),
            "net_total": round(sum(l["total_price"] for l in lines), MONEY_DIGITS),
        }
        labels = {"subtotal": "Subtotal", "net_total": "Net total"}

        for key, value in expected.items():
            if self._differs(as_number(summary.get(key)), value):
                defects.append(SummaryMismatchError(
                    f"{labels[key]} corrected: {summary.get(key)} → {value}",
                    field=key, reported=summary.get(key), corrected=value,
                ))
            summary[key] = value

        summary["total_discount"] = round(expected["subtotal"] - expected["net_total"], MONEY_DIGITS)
        return summary
