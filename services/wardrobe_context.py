# services/wardrobe_context.py
"""
Plain-text summaries of the wardrobe and shopping preferences for prompts.
"""
from typing import Dict, List

from contracts.models import PreferenceSet, WardrobeItem


def build_wardrobe_context(items: List[WardrobeItem]) -> str:
    """
    Summarize the wardrobe grouped by clothing type.

    Each piece is listed as ``[ID:<id>] <name> by <designer> - <color>, <style>``
    so the model can cite pieces back by id. Closes with the overall color
    palette and brand list.
    """
    if not items:
        return "The wardrobe is currently empty."

    by_type: Dict[str, List[WardrobeItem]] = {}
    for item in items:
        by_type.setdefault(item.type.upper(), []).append(item)

    lines = [f"Your wardrobe contains {len(items)} pieces:", ""]
    for clothing_type, type_items in by_type.items():
        lines.append(f"{clothing_type} ({len(type_items)}):")
        for item in type_items:
            details = ", ".join(d for d in (item.color, item.style) if d)
            designer = f" by {item.designer}" if item.designer else ""
            suffix = f" - {details}" if details else ""
            lines.append(f"- [ID:{item.id}] {item.name}{designer}{suffix}")
        lines.append("")

    colors = list(dict.fromkeys(i.color for i in items if i.color))
    designers = list(dict.fromkeys(i.designer for i in items if i.designer))
    lines.append(f"COLOR PALETTE: {', '.join(colors) or 'Various'}")
    lines.append(f"BRANDS: {', '.join(designers) or 'Various'}")

    return "\n".join(lines) + "\n"


def format_price(amount: float) -> str:
    """Plain decimal, no trailing zeros: 200.0 -> "200", 12345.67 -> "12345.67"."""
    return f"{amount:.2f}".rstrip("0").rstrip(".")


def build_preference_context(preferences: PreferenceSet) -> str:
    preferred = preferences.preferred_stores()
    avoided = preferences.avoided_stores()
    limits = ", ".join(f"{p.clothing_type}: max ${format_price(p.max_price)}" for p in preferences.price_limits)

    return (
        f"- Preferred stores: {', '.join(preferred) or 'None specified'}\n"
        f"- Avoided stores: {', '.join(avoided) or 'None'}\n"
        f"- Price limits: {limits or 'None specified'}"
    )
