"""Print pricing: unit price options and cost aggregation."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List

from config import Config
from models.queue import QueuedFile


PAPER_SIZES = ("Letter", "A4", "Legal")
DEFAULT_PAPER_SIZE = "Letter"
DEFAULT_PRINT_TYPE = "bw"

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class PrintTypeOption:
    """One selectable print type and its price per page."""

    key: str
    label: str
    price_per_page: Decimal

    def to_dict(self) -> Dict[str, str]:
        return {"key": self.key, "label": self.label, "price_per_page": str(self.price_per_page)}


@dataclass(frozen=True)
class CostSummary:
    """Totals shown next to the queue."""

    total_pages: int
    price_per_page: Decimal
    total_cost: Decimal

    def to_dict(self) -> Dict[str, str | int]:
        return {
            "total_pages": self.total_pages,
            "price_per_page": str(self.price_per_page),
            "total_cost": str(self.total_cost),
        }


def build_print_types(bw_price: str | Decimal, color_price: str | Decimal) -> Dict[str, PrintTypeOption]:
    return {
        "bw": PrintTypeOption("bw", "Black & White", Decimal(str(bw_price))),
        "color": PrintTypeOption("color", "Colored", Decimal(str(color_price))),
    }


PRINT_TYPES = build_print_types(Config.PRICE_BW, Config.PRICE_COLOR)


def get_print_type(key: str, options: Dict[str, PrintTypeOption] = PRINT_TYPES) -> PrintTypeOption:
    """Look up a print type; raises KeyError for an unknown key."""
    return options[key]


def price_options(options: Dict[str, PrintTypeOption] = PRINT_TYPES) -> List[Dict[str, str]]:
    """Selectable print types in display order."""
    return [option.to_dict() for option in options.values()]


def cost_for_file(pages: int, price_per_page: Decimal) -> Decimal:
    return Decimal(pages) * price_per_page


def total_pages(files: Iterable[QueuedFile]) -> int:
    return sum(f.pages for f in files)


def total_cost(files: Iterable[QueuedFile], price_per_page: Decimal) -> Decimal:
    return sum((cost_for_file(f.pages, price_per_page) for f in files), Decimal("0"))


def summarize(files: Iterable[QueuedFile], price_per_page: Decimal) -> CostSummary:
    files = list(files)
    return CostSummary(
        total_pages=total_pages(files),
        price_per_page=price_per_page,
        total_cost=total_cost(files, price_per_page),
    )


def format_amount(amount: Decimal, currency_symbol: str = Config.CURRENCY_SYMBOL) -> str:
    """Render an amount with two decimals, e.g. '₱12.00'."""
    return f"{currency_symbol}{amount.quantize(CENTS, rounding=ROUND_HALF_UP)}"
